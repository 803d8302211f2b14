"""securetrace.core.types

Lightweight dataclasses for hot-path objects.

Pydantic models own the forensic/reporting boundary; dataclasses keep the
per-message path lean.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from securetrace.core.codec import from_base64, to_base64
from securetrace.core.exceptions import EnvelopeFormatError

NONCE_BYTES = 12


@dataclass(frozen=True, slots=True)
class EncryptedEnvelope:
    """AEAD output. ``ciphertext`` includes the authentication tag."""

    nonce: bytes
    ciphertext: bytes

    def to_wire(self) -> str:
        """``base64(nonce):base64(ciphertext)``"""

        return f"{to_base64(self.nonce)}:{to_base64(self.ciphertext)}"

    @classmethod
    def from_wire(cls, wire: str) -> EncryptedEnvelope:
        """Parse the colon-joined wire form.

        Raises:
            EnvelopeFormatError: on a missing separator, bad base64, or a nonce
                that is not exactly 12 bytes.
        """

        if not isinstance(wire, str):
            raise EnvelopeFormatError("envelope wire form must be a string")
        parts = wire.split(":")
        if len(parts) != 2:
            raise EnvelopeFormatError("envelope wire form must be 'nonce:ciphertext'")
        nonce = from_base64(parts[0])
        ciphertext = from_base64(parts[1])
        if len(nonce) != NONCE_BYTES:
            raise EnvelopeFormatError(f"nonce must be {NONCE_BYTES} bytes, got {len(nonce)}")
        if not ciphertext:
            raise EnvelopeFormatError("ciphertext is empty")
        return cls(nonce=nonce, ciphertext=ciphertext)


@dataclass(frozen=True, slots=True)
class Message:
    """A chat message as seen by the local party.

    ``plaintext`` is a local convenience only. It is never part of the wire form.
    System notices carry no envelope and no hash.
    """

    id: str
    sender_id: str
    plaintext: str
    envelope: EncryptedEnvelope | None
    timestamp: int
    integrity_hash: str
    is_system_notice: bool = False

    def to_wire_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "envelope": self.envelope.to_wire() if self.envelope is not None else "",
            "timestamp": self.timestamp,
            "integrityHash": self.integrity_hash,
            "isSystemNotice": self.is_system_notice,
        }
