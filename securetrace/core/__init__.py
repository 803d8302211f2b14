"""securetrace.core

Core primitives: config, errors, events, codec, wire types.

Nothing in here imports from the security, session or forensics packages.
"""

from .config import Config
from .events import LogEventType, Severity
from .exceptions import SecureTraceError
from .models import GENESIS_HASH, AnalysisResult, ForensicLogEntry, RiskFactor
from .time import ms_to_iso, now_ms, utc_now
from .types import EncryptedEnvelope, Message

__all__ = [
    "AnalysisResult",
    "Config",
    "EncryptedEnvelope",
    "ForensicLogEntry",
    "GENESIS_HASH",
    "LogEventType",
    "Message",
    "RiskFactor",
    "SecureTraceError",
    "Severity",
    "ms_to_iso",
    "now_ms",
    "utc_now",
]
