"""securetrace.core.codec

Byte/text conversions and the one hash function everything above relies on.

All helpers are pure. Hashing input for anything structured goes through
``canonical_json`` so the same logical value always hashes the same way.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from typing import Any

from securetrace.core.exceptions import EnvelopeFormatError


def sha256_hex(data: bytes) -> str:
    """SHA-256 digest of ``data`` as lowercase hex."""

    return hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    return sha256_hex(text.encode("utf-8"))


def to_hex(data: bytes) -> str:
    return data.hex()


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def from_base64(text: str) -> bytes:
    """Strict base64 decode.

    Raises:
        EnvelopeFormatError: if ``text`` is not valid base64.
    """

    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise EnvelopeFormatError(f"invalid base64: {e}") from e


def canonical_json(data: Any) -> str:
    """Canonical JSON serialization used for hashing."""

    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
