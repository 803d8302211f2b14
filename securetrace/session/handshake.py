"""securetrace.session.handshake

Hybrid RSA/AES session establishment.

INIT → KEYPAIR_GENERATED → KEY_WRAPPED → KEY_UNWRAPPED → SECURE
Any non-terminal state may move to FAILED. SECURE and FAILED are terminal.

The protocol runs once per instance. Every step is injectable so the state
machine can be driven without real RSA work.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from securetrace.core.codec import hash_text, to_base64
from securetrace.core.config import HandshakeConfig
from securetrace.core.events import AnomalyPayload, KeyExchangePayload, LogEventType, Severity
from securetrace.core.exceptions import HandshakeFailure
from securetrace.forensics.chain import ForensicLogChain
from securetrace.security.asymmetric import Keypair, generate_keypair, unwrap, wrap
from securetrace.security.symmetric import SessionKey, generate_session_key

logger = logging.getLogger(__name__)

FAILURE_MESSAGE: Final = "RSA Key Exchange Failed"


class HandshakeState(StrEnum):
    INIT = "INIT"
    KEYPAIR_GENERATED = "KEYPAIR_GENERATED"
    KEY_WRAPPED = "KEY_WRAPPED"
    KEY_UNWRAPPED = "KEY_UNWRAPPED"
    SECURE = "SECURE"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: Final[dict[HandshakeState, set[HandshakeState]]] = {
    HandshakeState.INIT: {HandshakeState.KEYPAIR_GENERATED, HandshakeState.FAILED},
    HandshakeState.KEYPAIR_GENERATED: {HandshakeState.KEY_WRAPPED, HandshakeState.FAILED},
    HandshakeState.KEY_WRAPPED: {HandshakeState.KEY_UNWRAPPED, HandshakeState.FAILED},
    HandshakeState.KEY_UNWRAPPED: {HandshakeState.SECURE, HandshakeState.FAILED},
    HandshakeState.SECURE: set(),
    HandshakeState.FAILED: set(),
}


@dataclass(frozen=True, slots=True)
class HandshakeResult:
    state: HandshakeState
    session_key: SessionKey | None
    fingerprint: str | None
    wrapped_key: bytes | None
    error: str | None
    transitions: tuple[HandshakeState, ...]

    @property
    def is_secure(self) -> bool:
        return self.state is HandshakeState.SECURE


def format_fingerprint(wrapped_key: bytes, chars: int = 16, group: int = 4) -> str:
    """Short, human-comparable digest of the wrapped key.

    SHA-256 over the base64 text of ``wrapped_key``, truncated to ``chars`` hex
    digits, uppercased and split into space-separated groups.
    """

    digest = hash_text(to_base64(wrapped_key))[:chars].upper()
    if group <= 0:
        return digest
    return " ".join(digest[i : i + group] for i in range(0, len(digest), group))


class Handshake:
    def __init__(
        self,
        chain: ForensicLogChain,
        *,
        user_id: str,
        config: HandshakeConfig | None = None,
        keypair_factory: Callable[[], Keypair] | None = None,
        session_key_factory: Callable[[], SessionKey] = generate_session_key,
        wrap_fn: Callable[..., bytes] = wrap,
        unwrap_fn: Callable[..., bytes] = unwrap,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.chain = chain
        self.user_id = user_id
        self.config = config or HandshakeConfig()
        self._keypair_factory = keypair_factory or (
            lambda: generate_keypair(self.config.rsa_key_size, self.config.public_exponent)
        )
        self._session_key_factory = session_key_factory
        self._wrap = wrap_fn
        self._unwrap = unwrap_fn
        self._clock = clock

        self._state = HandshakeState.INIT
        self._transitions: list[HandshakeState] = [HandshakeState.INIT]
        self._started = False
        self.result: HandshakeResult | None = None

    @property
    def state(self) -> HandshakeState:
        return self._state

    def _advance(self, new_state: HandshakeState) -> None:
        allowed = ALLOWED_TRANSITIONS.get(self._state, set())
        if new_state not in allowed:
            raise HandshakeFailure(f"Invalid transition {self._state} -> {new_state}")
        self._state = new_state
        self._transitions.append(new_state)

    def _check_deadline(self, deadline: float, stage: str) -> None:
        if self._clock() > deadline:
            raise TimeoutError(f"handshake exceeded {self.config.timeout_s}s at {stage}")

    def run(self) -> HandshakeResult:
        if self._started:
            raise HandshakeFailure("handshake already ran for this session; start a new session")
        self._started = True

        deadline = self._clock() + self.config.timeout_s
        stage = "keypair"
        issued: SessionKey | None = None
        session_key: SessionKey | None = None
        wrapped: bytes | None = None

        try:
            keypair = self._keypair_factory()
            self._advance(HandshakeState.KEYPAIR_GENERATED)
            self._check_deadline(deadline, stage)

            # Issued independently, as a counterparty would.
            stage = "session_key"
            issued = self._session_key_factory()

            stage = "wrap"
            wrapped = self._wrap(keypair.public_key, issued.raw())
            self._advance(HandshakeState.KEY_WRAPPED)
            self._check_deadline(deadline, stage)

            stage = "unwrap"
            session_key = SessionKey(self._unwrap(keypair.private_key, wrapped))
            self._advance(HandshakeState.KEY_UNWRAPPED)
            self._check_deadline(deadline, stage)

            stage = "fingerprint"
            fingerprint = format_fingerprint(
                wrapped,
                chars=self.config.fingerprint_chars,
                group=self.config.fingerprint_group,
            )
            self._check_deadline(deadline, stage)
            self._advance(HandshakeState.SECURE)
        except Exception as e:  # noqa: BLE001 - any step failure is fatal to the session
            reason = str(e) or type(e).__name__
            if session_key is not None:
                session_key.destroy()
            self._fail(stage, reason, wrapped)
            raise HandshakeFailure(f"{FAILURE_MESSAGE} at {stage}: {reason}") from e
        finally:
            if issued is not None:
                issued.destroy()

        self.chain.append(
            LogEventType.KEY_EXCHANGE,
            KeyExchangePayload(
                mechanism=f"HYBRID RSA-{keypair.key_size}/AES-256",
                rsa_key_fingerprint=fingerprint,
            ).to_metadata(),
            Severity.INFO,
            user_id=self.user_id,
        )
        logger.info("handshake_secure", extra={"fingerprint": fingerprint})

        self.result = HandshakeResult(
            state=self._state,
            session_key=session_key,
            fingerprint=fingerprint,
            wrapped_key=wrapped,
            error=None,
            transitions=tuple(self._transitions),
        )
        return self.result

    def _fail(self, stage: str, reason: str, wrapped: bytes | None) -> None:
        if self._state not in (HandshakeState.SECURE, HandshakeState.FAILED):
            self._advance(HandshakeState.FAILED)
        logger.error("handshake_failed", extra={"stage": stage, "reason": reason})
        self.chain.append(
            LogEventType.ANOMALY_DETECTED,
            AnomalyPayload(error=FAILURE_MESSAGE, stage=stage, reason=reason).to_metadata(),
            Severity.CRITICAL,
            user_id=self.user_id,
        )
        self.result = HandshakeResult(
            state=self._state,
            session_key=None,
            fingerprint=None,
            wrapped_key=wrapped,
            error=reason,
            transitions=tuple(self._transitions),
        )
