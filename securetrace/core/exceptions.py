"""securetrace.core.exceptions

Errors are part of the interface.

Cryptographic failures are hard failures. Nothing here is retried silently.
"""

from __future__ import annotations


class SecureTraceError(Exception):
    """Base exception for securetrace."""


class ConfigError(SecureTraceError):
    """Configuration is missing, invalid, or inconsistent."""


class CryptoError(SecureTraceError):
    """A cryptographic operation failed."""


class AuthenticationError(CryptoError):
    """Ciphertext failed authentication: tampered, truncated, or wrong key."""


class UnwrapError(CryptoError):
    """A wrapped key does not correspond to the private key."""


class EnvelopeFormatError(CryptoError):
    """An encrypted envelope could not be parsed from its wire form."""


class HandshakeFailure(SecureTraceError):
    """Session establishment failed. The session is unusable; start a new one."""


class SessionNotSecureError(SecureTraceError):
    """Operation requires a session in the SECURE state."""


class LogChainError(SecureTraceError):
    """Forensic log chain misuse: bad event, bad severity, or closed chain."""


class SummarizationUnavailable(SecureTraceError):
    """The external summarizer failed or returned something unusable."""
