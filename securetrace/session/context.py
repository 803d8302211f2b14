"""securetrace.session.context

One chat session, owned explicitly.

The session holds the key, the pipeline, the DLP policy, the echo responder and
the forensic chain. Nothing is module-global. Sending or receiving is only
allowed in SECURE; a closed session refuses everything except reads.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from typing import Any

from securetrace.core.config import Config
from securetrace.core.events import AnomalyPayload, LoginPayload, LogEventType, LogoutPayload, Severity
from securetrace.core.exceptions import EnvelopeFormatError, HandshakeFailure, SessionNotSecureError
from securetrace.core.models import AnalysisResult, ForensicLogEntry
from securetrace.core.types import EncryptedEnvelope, Message
from securetrace.forensics import scoring
from securetrace.forensics.chain import ForensicLogChain
from securetrace.forensics.summarizer import HttpSummarizer, NullSummarizer, Summarizer, analyze_with_summary
from securetrace.security import symmetric
from securetrace.security.redaction import build_redacted_digest
from securetrace.security.symmetric import SessionKey
from securetrace.session.dlp import KeywordPolicy
from securetrace.session.echo import EchoResponder
from securetrace.session.handshake import Handshake, HandshakeResult, HandshakeState
from securetrace.session.pipeline import MessagePipeline, compute_integrity_hash

logger = logging.getLogger(__name__)

REMOTE_SENDER = "remote-user"


def _default_summarizer(cfg: Config) -> Summarizer:
    if cfg.summarizer.enabled and cfg.summarizer.url:
        return HttpSummarizer(cfg.summarizer)
    return NullSummarizer()


class SecureSession:
    def __init__(
        self,
        config: Config | None = None,
        *,
        user_id: str = "local-user",
        chain: ForensicLogChain | None = None,
        summarizer: Summarizer | None = None,
        handshake_factory: Callable[..., Handshake] = Handshake,
        rng: random.Random | None = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self.config = config or Config()
        self.user_id = user_id
        self._owns_chain = chain is None
        self.chain = chain if chain is not None else ForensicLogChain(default_user_id=user_id)
        self.policy = KeywordPolicy(self.config.dlp.keywords, chain=self.chain, user_id=user_id)
        self.pipeline = MessagePipeline(
            self.chain,
            self.policy,
            user_id=user_id,
            integrity_mode=self.config.integrity.mode,
        )
        self.summarizer = summarizer or _default_summarizer(self.config)
        self.echo = EchoResponder(
            self._echo_deliver,
            delay_s=self.config.echo.delay_s,
            responses=self.config.echo.responses,
            rng=rng,
            timer_factory=timer_factory,
        )
        self._handshake_factory = handshake_factory

        self._lock = threading.RLock()
        self._handshake: Handshake | None = None
        self._key: SessionKey | None = None
        self._messages: list[Message] = []
        self._closed = False

    # -----------------
    # Lifecycle
    # -----------------

    @property
    def state(self) -> HandshakeState:
        return self._handshake.state if self._handshake is not None else HandshakeState.INIT

    @property
    def is_secure(self) -> bool:
        return not self._closed and self.state is HandshakeState.SECURE and self._key is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def fingerprint(self) -> str | None:
        if self._handshake is None or self._handshake.result is None:
            return None
        return self._handshake.result.fingerprint

    def login(self) -> ForensicLogEntry:
        """Mocked sign-in; records the event only."""

        return self.log_event(LogEventType.LOGIN, LoginPayload().to_metadata())

    def start_handshake(self) -> HandshakeResult:
        with self._lock:
            if self._closed:
                raise SessionNotSecureError("session is closed")
            if self._handshake is not None:
                raise HandshakeFailure("handshake already attempted; start a new session")
            self._handshake = self._handshake_factory(
                self.chain,
                user_id=self.user_id,
                config=self.config.handshake,
            )
            result = self._handshake.run()
            self._key = result.session_key
            self._messages.append(self.pipeline.system_notice())
            return result

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            cancelled = self.echo.cancel_all()
            if not self.chain.closed:
                self.chain.append(LogEventType.LOGOUT, LogoutPayload().to_metadata(), user_id=self.user_id)
            if self._key is not None:
                self._key.destroy()
                self._key = None
            if self._owns_chain:
                self.chain.close()
        logger.info("session_closed", extra={"cancelled_echoes": cancelled})

    def __enter__(self) -> SecureSession:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    async def aclose(self) -> None:
        self.close()
        if isinstance(self.summarizer, HttpSummarizer):
            await self.summarizer.aclose()

    # -----------------
    # Messaging
    # -----------------

    def _require_secure(self) -> SessionKey:
        if self._closed:
            raise SessionNotSecureError("session is closed")
        if self.state is not HandshakeState.SECURE or self._key is None:
            raise SessionNotSecureError(f"session is not secure (state={self.state})")
        return self._key

    def send_message(self, text: str) -> Message:
        with self._lock:
            key = self._require_secure()
            message = self.pipeline.send(key, text)
            self._messages.append(message)
        if self.config.echo.enabled:
            self.echo.schedule()
        return message

    def on_incoming_ciphertext(
        self,
        envelope: EncryptedEnvelope | str,
        sender_id: str = REMOTE_SENDER,
        *,
        integrity_hash: str | None = None,
    ) -> Message:
        with self._lock:
            key = self._require_secure()
            if isinstance(envelope, str):
                try:
                    envelope = EncryptedEnvelope.from_wire(envelope)
                except EnvelopeFormatError as e:
                    self.chain.append(
                        LogEventType.ANOMALY_DETECTED,
                        AnomalyPayload(type="MALFORMED_ENVELOPE", sender_id=sender_id, reason=str(e)).to_metadata(),
                        Severity.CRITICAL,
                        user_id=self.user_id,
                    )
                    raise
            message = self.pipeline.receive(key, envelope, sender_id=sender_id, integrity_hash=integrity_hash)
            self._messages.append(message)
            return message

    def _echo_deliver(self, reply: str) -> Message | None:
        with self._lock:
            if not self.is_secure:
                return None
            key = self._require_secure()
            envelope = symmetric.encrypt(key, reply)
            digest = compute_integrity_hash(envelope, mode=self.config.integrity.mode, sender_id=REMOTE_SENDER)
            return self.on_incoming_ciphertext(envelope, REMOTE_SENDER, integrity_hash=digest)

    def messages(self) -> tuple[Message, ...]:
        with self._lock:
            return tuple(self._messages)

    def verify_message(self, message: Message) -> bool:
        return self.pipeline.verify_message(message)

    # -----------------
    # DLP
    # -----------------

    def keywords(self) -> tuple[str, ...]:
        return self.policy.keywords()

    def add_keyword(self, keyword: str) -> str:
        return self.policy.add(keyword)

    def remove_keyword(self, keyword: str) -> str:
        return self.policy.remove(keyword)

    # -----------------
    # Forensics
    # -----------------

    def log_event(
        self,
        event_type: LogEventType | str,
        metadata: dict[str, Any] | None = None,
        severity: Severity | str = Severity.INFO,
    ) -> ForensicLogEntry:
        return self.chain.append(event_type, metadata, severity, user_id=self.user_id)

    def report_incident(self, reason: str) -> ForensicLogEntry:
        return self.log_event(
            LogEventType.ANOMALY_DETECTED,
            AnomalyPayload(
                type="USER_REPORTED_INCIDENT",
                reason=reason,
                session_fingerprint=self.fingerprint or "N/A",
            ).to_metadata(),
            Severity.CRITICAL,
        )

    def get_log_entries(self) -> tuple[ForensicLogEntry, ...]:
        return self.chain.entries()

    def verify_chain_integrity(self) -> bool:
        return self.chain.verify_chain()

    def compute_risk_analysis(self) -> AnalysisResult:
        return scoring.compute_risk_analysis(self.get_log_entries())

    def build_digest(self) -> list[dict[str, Any]]:
        return build_redacted_digest(
            self.get_log_entries(),
            hash_prefix_chars=self.config.summarizer.hash_prefix_chars,
        )

    async def request_summary(self, digest: list[dict[str, Any]] | None = None) -> str:
        """Raises SummarizationUnavailable; use ``analyze()`` for the degrading form."""

        return await self.summarizer.summarize(digest if digest is not None else self.build_digest())

    async def analyze(self) -> AnalysisResult:
        return await analyze_with_summary(
            self.get_log_entries(),
            self.summarizer,
            hash_prefix_chars=self.config.summarizer.hash_prefix_chars,
            timeout_s=self.config.summarizer.timeout_s,
        )
