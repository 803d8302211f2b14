"""securetrace.security.asymmetric

RSA-OAEP key transport.

Keypairs live in memory only. The public half can be exported (PEM/DER) and
fingerprinted; there is deliberately no private-key export.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from securetrace.core.codec import sha256_hex
from securetrace.core.exceptions import UnwrapError

MIN_KEY_SIZE = 2048
_HASH_BYTES = 32  # SHA-256


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


@dataclass(frozen=True)
class Keypair:
    public_key: rsa.RSAPublicKey
    private_key: rsa.RSAPrivateKey = field(repr=False)

    @property
    def key_size(self) -> int:
        return self.public_key.key_size

    def public_der(self) -> bytes:
        return self.public_key.public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def public_pem(self) -> str:
        return self.public_key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")


def generate_keypair(key_size: int = MIN_KEY_SIZE, public_exponent: int = 65537) -> Keypair:
    if key_size < MIN_KEY_SIZE:
        raise ValueError(f"RSA key size must be >= {MIN_KEY_SIZE}, got {key_size}")
    private_key = rsa.generate_private_key(public_exponent=public_exponent, key_size=key_size)
    return Keypair(public_key=private_key.public_key(), private_key=private_key)


def max_wrap_bytes(public_key: rsa.RSAPublicKey) -> int:
    """Largest payload OAEP-SHA256 can carry under ``public_key``."""

    return public_key.key_size // 8 - 2 * _HASH_BYTES - 2


def wrap(public_key: rsa.RSAPublicKey, payload: bytes) -> bytes:
    """Encrypt a short payload (a raw symmetric key) under ``public_key``."""

    limit = max_wrap_bytes(public_key)
    if len(payload) > limit:
        raise ValueError(f"payload too large to wrap: {len(payload)} > {limit} bytes")
    return public_key.encrypt(payload, _oaep())


def unwrap(private_key: rsa.RSAPrivateKey, wrapped: bytes) -> bytes:
    """Inverse of :func:`wrap`.

    Raises:
        UnwrapError: if ``wrapped`` was not produced for this key or was altered.
    """

    try:
        return private_key.decrypt(wrapped, _oaep())
    except ValueError as e:
        raise UnwrapError("wrapped key does not correspond to this private key") from e


def public_key_fingerprint(public_key: rsa.RSAPublicKey) -> str:
    """SHA-256 over the DER SubjectPublicKeyInfo."""

    der = public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return sha256_hex(der)
