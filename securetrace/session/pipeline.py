"""securetrace.session.pipeline

Per-message path.

Outbound: DLP scan → encrypt → integrity hash → Message → MESSAGE_SENT.
Inbound: (optional hash check) → decrypt → MESSAGE_DECRYPTED, or a CRITICAL
anomaly and the error re-raised. A message that fails either check is never
returned.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from collections.abc import Callable
from typing import Final, Literal

from securetrace.core.codec import sha256_hex, to_base64
from securetrace.core.events import (
    AnomalyPayload,
    LogEventType,
    MessageDecryptedPayload,
    MessageSentPayload,
    Severity,
    SuspiciousKeywordPayload,
)
from securetrace.core.exceptions import AuthenticationError
from securetrace.core.time import now_ms
from securetrace.core.types import EncryptedEnvelope, Message
from securetrace.forensics.chain import ForensicLogChain
from securetrace.security import symmetric
from securetrace.security.symmetric import SessionKey
from securetrace.session.dlp import KeywordPolicy

logger = logging.getLogger(__name__)

IntegrityMode = Literal["ciphertext", "envelope"]

WELCOME_NOTICE: Final = "Secure Hybrid Channel Established. RSA Handshake Verified."
SYSTEM_SENDER: Final = "system"


def wire_size(envelope: EncryptedEnvelope) -> int:
    """Length of the ciphertext as it travels: base64 text, tag included."""

    return len(to_base64(envelope.ciphertext))


def compute_integrity_hash(
    envelope: EncryptedEnvelope,
    *,
    mode: IntegrityMode = "ciphertext",
    sender_id: str = "",
) -> str:
    if mode == "ciphertext":
        return sha256_hex(to_base64(envelope.ciphertext).encode("ascii"))
    if mode == "envelope":
        return sha256_hex(envelope.nonce + envelope.ciphertext + sender_id.encode("utf-8"))
    raise ValueError(f"unknown integrity mode: {mode!r}")


class MessagePipeline:
    def __init__(
        self,
        chain: ForensicLogChain,
        policy: KeywordPolicy,
        *,
        user_id: str,
        integrity_mode: IntegrityMode = "ciphertext",
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.chain = chain
        self.policy = policy
        self.user_id = user_id
        self.integrity_mode = integrity_mode
        self._clock = clock

    def _hash(self, envelope: EncryptedEnvelope, sender_id: str) -> str:
        return compute_integrity_hash(envelope, mode=self.integrity_mode, sender_id=sender_id)

    def send(self, key: SessionKey, plaintext: str) -> Message:
        if not plaintext or not plaintext.strip():
            raise ValueError("message text must not be empty")

        matches = self.policy.scan(plaintext)
        if matches:
            logger.warning("dlp_keyword_match", extra={"keywords": matches, "length": len(plaintext)})
            self.chain.append(
                LogEventType.SUSPICIOUS_KEYWORD,
                SuspiciousKeywordPayload(keywords=matches, length=len(plaintext)).to_metadata(),
                Severity.WARNING,
                user_id=self.user_id,
            )

        envelope = symmetric.encrypt(key, plaintext)
        message = Message(
            id=str(uuid.uuid4()),
            sender_id=self.user_id,
            plaintext=plaintext,
            envelope=envelope,
            timestamp=int(self._clock()),
            integrity_hash=self._hash(envelope, self.user_id),
        )

        self.chain.append(
            LogEventType.MESSAGE_SENT,
            MessageSentPayload(
                msg_id=message.id,
                size=wire_size(envelope),
                hash=message.integrity_hash,
            ).to_metadata(),
            Severity.INFO,
            user_id=self.user_id,
        )
        return message

    def receive(
        self,
        key: SessionKey,
        envelope: EncryptedEnvelope,
        *,
        sender_id: str,
        integrity_hash: str | None = None,
    ) -> Message:
        """Authenticate and decrypt an inbound envelope.

        Raises:
            AuthenticationError: the claimed integrity hash does not match, or
                the envelope does not decrypt under ``key``. Either way a
                CRITICAL anomaly is already on the chain.
        """

        msg_id = str(uuid.uuid4())
        local_hash = self._hash(envelope, sender_id)

        if integrity_hash is not None and not hmac.compare_digest(local_hash, integrity_hash):
            logger.error("integrity_hash_mismatch", extra={"sender_id": sender_id})
            self.chain.append(
                LogEventType.ANOMALY_DETECTED,
                AnomalyPayload(
                    type="INTEGRITY_HASH_MISMATCH",
                    sender_id=sender_id,
                    msg_id=msg_id,
                    integrity_mismatch=True,
                ).to_metadata(),
                Severity.CRITICAL,
                user_id=self.user_id,
            )
            raise AuthenticationError("integrity hash does not match the received ciphertext")

        try:
            plaintext = symmetric.decrypt(key, envelope)
        except AuthenticationError:
            logger.error("decryption_failed", extra={"sender_id": sender_id})
            self.chain.append(
                LogEventType.ANOMALY_DETECTED,
                AnomalyPayload(
                    type="DECRYPTION_FAILED",
                    sender_id=sender_id,
                    msg_id=msg_id,
                    size=wire_size(envelope),
                ).to_metadata(),
                Severity.CRITICAL,
                user_id=self.user_id,
            )
            raise

        self.chain.append(
            LogEventType.MESSAGE_DECRYPTED,
            MessageDecryptedPayload(msg_id=msg_id, sender_id=sender_id).to_metadata(),
            Severity.INFO,
            user_id=self.user_id,
        )
        return Message(
            id=msg_id,
            sender_id=sender_id,
            plaintext=plaintext,
            envelope=envelope,
            timestamp=int(self._clock()),
            integrity_hash=local_hash,
        )

    def verify_message(self, message: Message) -> bool:
        """Recompute the integrity hash of a stored message."""

        if message.is_system_notice or message.envelope is None:
            return True
        expected = self._hash(message.envelope, message.sender_id)
        if hmac.compare_digest(expected, message.integrity_hash):
            return True

        self.chain.append(
            LogEventType.ANOMALY_DETECTED,
            AnomalyPayload(
                type="INTEGRITY_HASH_MISMATCH",
                msg_id=message.id,
                sender_id=message.sender_id,
                integrity_mismatch=True,
            ).to_metadata(),
            Severity.CRITICAL,
            user_id=self.user_id,
        )
        return False

    def system_notice(self, text: str = WELCOME_NOTICE) -> Message:
        return Message(
            id=str(uuid.uuid4()),
            sender_id=SYSTEM_SENDER,
            plaintext=text,
            envelope=None,
            timestamp=int(self._clock()),
            integrity_hash="",
            is_system_notice=True,
        )
