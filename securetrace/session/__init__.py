"""securetrace.session

Handshake, message pipeline, DLP and the session that owns them.
"""

from .context import SecureSession
from .dlp import KeywordPolicy
from .handshake import Handshake, HandshakeResult, HandshakeState, format_fingerprint
from .pipeline import MessagePipeline, compute_integrity_hash

__all__ = [
    "Handshake",
    "HandshakeResult",
    "HandshakeState",
    "KeywordPolicy",
    "MessagePipeline",
    "SecureSession",
    "compute_integrity_hash",
    "format_fingerprint",
]
