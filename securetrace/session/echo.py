"""securetrace.session.echo

Simulated remote party.

Each outbound message may schedule one canned reply after a delay. Replies are
cancellable and tied to the session: once ``cancel_all()`` has run, a timer
that still fires does nothing.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable, Sequence
from typing import Any

from securetrace.core.exceptions import SecureTraceError

logger = logging.getLogger(__name__)


class EchoResponder:
    def __init__(
        self,
        deliver: Callable[[str], Any],
        *,
        delay_s: float,
        responses: Sequence[str],
        rng: random.Random | None = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        if not responses:
            raise ValueError("responses must not be empty")
        self._deliver = deliver
        self.delay_s = delay_s
        self.responses = tuple(responses)
        self._rng = rng or random.Random()
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._pending: dict[threading.Timer, None] = {}
        self._closed = False

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self) -> threading.Timer | None:
        with self._lock:
            if self._closed:
                return None
            reply = self._rng.choice(self.responses)
            holder: list[threading.Timer] = []
            timer = self._timer_factory(self.delay_s, lambda: self._fire(holder[0], reply))
            holder.append(timer)
            timer.daemon = True
            self._pending[timer] = None
        timer.start()
        return timer

    def _fire(self, timer: threading.Timer, reply: str) -> None:
        with self._lock:
            if self._closed or timer not in self._pending:
                return
            self._pending.pop(timer, None)
        try:
            self._deliver(reply)
        except SecureTraceError as e:
            # Session state changed between scheduling and firing.
            logger.info("echo_dropped", extra={"error": type(e).__name__})

    def cancel_all(self) -> int:
        with self._lock:
            self._closed = True
            timers = list(self._pending)
            self._pending.clear()
        for t in timers:
            t.cancel()
        return len(timers)

    def flush(self, timeout: float | None = None) -> None:
        """Wait for every currently scheduled reply to fire."""

        with self._lock:
            timers = list(self._pending)
        for t in timers:
            t.join(timeout)
