"""securetrace.security.symmetric

AES-256-GCM under a per-session key.

Every encryption draws a fresh 96-bit nonce from the OS CSPRNG. Decryption is
all-or-nothing: a tampered nonce, ciphertext, tag, or the wrong key raises
``AuthenticationError``; there is no partial or best-effort plaintext.
"""

from __future__ import annotations

import hmac
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from securetrace.core.exceptions import AuthenticationError, SessionNotSecureError
from securetrace.core.types import NONCE_BYTES, EncryptedEnvelope

SESSION_KEY_BYTES = 32


class SessionKey:
    """A 256-bit symmetric key scoped to one session.

    The raw bytes never appear in ``repr``. ``destroy()`` drops them; any later
    use raises ``SessionNotSecureError``.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes) -> None:
        if not isinstance(raw, (bytes, bytearray)) or len(raw) != SESSION_KEY_BYTES:
            raise ValueError(f"session key must be exactly {SESSION_KEY_BYTES} bytes")
        self._raw: bytes | None = bytes(raw)

    @property
    def destroyed(self) -> bool:
        return self._raw is None

    def raw(self) -> bytes:
        if self._raw is None:
            raise SessionNotSecureError("session key has been destroyed")
        return self._raw

    def destroy(self) -> None:
        self._raw = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionKey) or self._raw is None or other._raw is None:
            return NotImplemented
        return hmac.compare_digest(self._raw, other._raw)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return "SessionKey(destroyed)" if self._raw is None else "SessionKey(<256-bit>)"


def generate_session_key() -> SessionKey:
    return SessionKey(AESGCM.generate_key(bit_length=SESSION_KEY_BYTES * 8))


def encrypt(key: SessionKey, plaintext: str, *, associated_data: bytes | None = None) -> EncryptedEnvelope:
    nonce = os.urandom(NONCE_BYTES)
    ciphertext = AESGCM(key.raw()).encrypt(nonce, plaintext.encode("utf-8"), associated_data)
    return EncryptedEnvelope(nonce=nonce, ciphertext=ciphertext)


def decrypt(key: SessionKey, envelope: EncryptedEnvelope, *, associated_data: bytes | None = None) -> str:
    """Authenticate and decrypt.

    Raises:
        AuthenticationError: if the envelope does not authenticate under ``key``.
    """

    if len(envelope.nonce) != NONCE_BYTES:
        raise AuthenticationError(f"nonce must be {NONCE_BYTES} bytes")
    try:
        data = AESGCM(key.raw()).decrypt(envelope.nonce, envelope.ciphertext, associated_data)
    except InvalidTag as e:
        raise AuthenticationError("ciphertext failed authentication") from e
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        # Authenticated but not text we produced.
        raise AuthenticationError("authenticated payload is not UTF-8 text") from e
