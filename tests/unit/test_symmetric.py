from __future__ import annotations

import pytest

from securetrace.core.exceptions import AuthenticationError, EnvelopeFormatError, SessionNotSecureError
from securetrace.core.types import NONCE_BYTES, EncryptedEnvelope
from securetrace.security.symmetric import SessionKey, decrypt, encrypt, generate_session_key


def _flip(data: bytes, i: int) -> bytes:
    b = bytearray(data)
    b[i] ^= 0x01
    return bytes(b)


@pytest.mark.parametrize("text", ["", "hello", "ünïcødé ✓", "x" * 10_000, "line1\nline2\x00"])
def test_encrypt_decrypt_roundtrip(text: str) -> None:
    key = generate_session_key()
    assert decrypt(key, encrypt(key, text)) == text


def test_nonce_is_fresh_per_call() -> None:
    key = generate_session_key()
    a = encrypt(key, "same")
    b = encrypt(key, "same")
    assert len(a.nonce) == NONCE_BYTES
    assert a.nonce != b.nonce
    assert a.ciphertext != b.ciphertext


def test_tampered_ciphertext_fails_authentication() -> None:
    key = generate_session_key()
    env = encrypt(key, "wire me 1000")
    for i in (0, len(env.ciphertext) // 2, len(env.ciphertext) - 1):
        bad = EncryptedEnvelope(nonce=env.nonce, ciphertext=_flip(env.ciphertext, i))
        with pytest.raises(AuthenticationError):
            decrypt(key, bad)


def test_tampered_nonce_fails_authentication() -> None:
    key = generate_session_key()
    env = encrypt(key, "wire me 1000")
    with pytest.raises(AuthenticationError):
        decrypt(key, EncryptedEnvelope(nonce=_flip(env.nonce, 0), ciphertext=env.ciphertext))


def test_wrong_key_fails_authentication() -> None:
    env = encrypt(generate_session_key(), "secret")
    with pytest.raises(AuthenticationError):
        decrypt(generate_session_key(), env)


def test_associated_data_is_bound() -> None:
    key = generate_session_key()
    env = encrypt(key, "hi", associated_data=b"alice")
    assert decrypt(key, env, associated_data=b"alice") == "hi"
    with pytest.raises(AuthenticationError):
        decrypt(key, env, associated_data=b"mallory")


def test_session_key_hides_bytes_and_can_be_destroyed() -> None:
    key = generate_session_key()
    assert key.raw() not in repr(key).encode()
    key.destroy()
    assert key.destroyed
    assert repr(key) == "SessionKey(destroyed)"
    with pytest.raises(SessionNotSecureError):
        encrypt(key, "too late")


def test_session_key_length_is_enforced() -> None:
    with pytest.raises(ValueError):
        SessionKey(b"short")


def test_envelope_wire_roundtrip() -> None:
    env = encrypt(generate_session_key(), "hello")
    wire = env.to_wire()
    assert wire.count(":") == 1
    assert EncryptedEnvelope.from_wire(wire) == env


@pytest.mark.parametrize(
    "wire",
    [
        "no-colon",
        "a:b:c",
        "AAAA:AAAA",  # nonce too short
        "AAAAAAAAAAAAAAAA:",  # empty ciphertext
        "AAAAAAAAAAAAAAAA:not base64!",
    ],
)
def test_envelope_from_wire_rejects_malformed(wire: str) -> None:
    with pytest.raises(EnvelopeFormatError):
        EncryptedEnvelope.from_wire(wire)
