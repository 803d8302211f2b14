"""securetrace.security

Cryptographic primitives and redaction.

- symmetric: AES-256-GCM under a per-session key
- asymmetric: RSA-OAEP key transport
- redaction: secrets out of logs, content out of digests
"""

from .asymmetric import Keypair, generate_keypair, unwrap, wrap
from .symmetric import SessionKey, decrypt, encrypt, generate_session_key

__all__ = [
    "Keypair",
    "SessionKey",
    "decrypt",
    "encrypt",
    "generate_keypair",
    "generate_session_key",
    "unwrap",
    "wrap",
]
