"""securetrace

Hybrid RSA/AES messaging core with a forensic audit trail.

Every security-relevant event lands in a hash-linked chain. The chain is the record.
"""

__version__ = "0.1.0"
