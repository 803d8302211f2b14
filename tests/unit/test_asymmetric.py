from __future__ import annotations

import os

import pytest

from securetrace.core.exceptions import UnwrapError
from securetrace.security.asymmetric import (
    Keypair,
    generate_keypair,
    max_wrap_bytes,
    public_key_fingerprint,
    unwrap,
    wrap,
)


def test_wrap_unwrap_roundtrip(rsa_keypair: Keypair) -> None:
    payload = os.urandom(32)
    wrapped = wrap(rsa_keypair.public_key, payload)
    assert wrapped != payload
    assert len(wrapped) == rsa_keypair.key_size // 8
    assert unwrap(rsa_keypair.private_key, wrapped) == payload


def test_wrap_is_randomized(rsa_keypair: Keypair) -> None:
    payload = b"k" * 32
    assert wrap(rsa_keypair.public_key, payload) != wrap(rsa_keypair.public_key, payload)


def test_unwrap_with_other_key_fails(rsa_keypair: Keypair) -> None:
    other = generate_keypair()
    wrapped = wrap(other.public_key, b"k" * 32)
    with pytest.raises(UnwrapError):
        unwrap(rsa_keypair.private_key, wrapped)


def test_unwrap_tampered_fails(rsa_keypair: Keypair) -> None:
    wrapped = bytearray(wrap(rsa_keypair.public_key, b"k" * 32))
    wrapped[10] ^= 0xFF
    with pytest.raises(UnwrapError):
        unwrap(rsa_keypair.private_key, bytes(wrapped))


def test_wrap_rejects_oversized_payload(rsa_keypair: Keypair) -> None:
    limit = max_wrap_bytes(rsa_keypair.public_key)
    assert limit == 190
    with pytest.raises(ValueError):
        wrap(rsa_keypair.public_key, b"x" * (limit + 1))


def test_small_keys_rejected() -> None:
    with pytest.raises(ValueError):
        generate_keypair(1024)


def test_public_export_only(rsa_keypair: Keypair) -> None:
    pem = rsa_keypair.public_pem()
    assert pem.startswith("-----BEGIN PUBLIC KEY-----")
    assert "private_key" not in repr(rsa_keypair)
    fp = public_key_fingerprint(rsa_keypair.public_key)
    assert len(fp) == 64
    assert fp == public_key_fingerprint(rsa_keypair.public_key)
