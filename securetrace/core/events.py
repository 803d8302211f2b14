"""securetrace.core.events

The event contract is the primitive.

Event types and severities are closed sets. Metadata is an open mapping, but the
pipeline emits it through the typed payloads below so the keys stay stable for
dashboards and for the risk rubric.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LogEventType(StrEnum):
    """Canonical forensic event registry."""

    LOGIN = "LOGIN"
    KEY_EXCHANGE = "KEY_EXCHANGE"
    MESSAGE_SENT = "MESSAGE_SENT"
    MESSAGE_DECRYPTED = "MESSAGE_DECRYPTED"
    SUSPICIOUS_KEYWORD = "SUSPICIOUS_KEYWORD"
    LOGOUT = "LOGOUT"
    ANOMALY_DETECTED = "ANOMALY_DETECTED"


class Severity(StrEnum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


# -----------------
# Typed payloads
# -----------------


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_metadata(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LoginPayload(_Payload):
    method: str = "PASSWORD"
    status: str = "SUCCESS"


class LogoutPayload(_Payload):
    status: str = "SUCCESS"


class KeyExchangePayload(_Payload):
    """Payload for :pydata:`LogEventType.KEY_EXCHANGE`."""

    mechanism: str
    rsa_key_fingerprint: str = Field(alias="rsaKeyFingerprint")
    status: str = "SUCCESS"


class SuspiciousKeywordPayload(_Payload):
    """DLP match. Carries the matched keywords and the plaintext length, never the text."""

    keywords: list[str]
    length: int


class MessageSentPayload(_Payload):
    msg_id: str = Field(alias="msgId")
    size: int
    hash: str


class MessageDecryptedPayload(_Payload):
    msg_id: str = Field(alias="msgId")
    sender_id: str = Field(alias="senderId")
    status: str = "SUCCESS"


class AnomalyPayload(_Payload):
    """Free-form anomaly record.

    ``integrity_mismatch`` is the flag the risk rubric looks for.
    """

    type: str | None = None
    action: str | None = None
    error: str | None = None
    reason: str | None = None
    stage: str | None = None
    keyword: str | None = None
    sender_id: str | None = Field(default=None, alias="senderId")
    msg_id: str | None = Field(default=None, alias="msgId")
    size: int | None = None
    session_fingerprint: str | None = Field(default=None, alias="sessionFingerprint")
    integrity_mismatch: bool | None = Field(default=None, alias="integrityMismatch")
