"""securetrace.core.logging

Process logging setup.

Module loggers use snake_case event names (``handshake_failed``) and pass details
through ``extra=``. Anything in ``extra`` is sanitized before it is rendered.
Process logs are operational; the forensic chain is the security record.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from securetrace.core.codec import canonical_json
from securetrace.core.config import LoggingConfig
from securetrace.security.redaction import redact_secrets, sanitize_for_log

_HANDLER_NAME = "securetrace"

# Attributes every LogRecord carries; everything else came from ``extra=``.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    raw = {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}
    return sanitize_for_log(raw)


class KeyValueFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _extras(record)
        if extras:
            base += " " + " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
        return redact_secrets(base)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "event": redact_secrets(record.getMessage()),
        }
        data.update(_extras(record))
        if record.exc_info:
            data["exc"] = redact_secrets(self.formatException(record.exc_info))
        return canonical_json(data)


def configure_logging(cfg: LoggingConfig | None = None) -> logging.Logger:
    """Install the securetrace handler on the package logger (idempotent)."""

    cfg = cfg or LoggingConfig()
    logger = logging.getLogger("securetrace")
    logger.setLevel(cfg.level.upper())

    for h in list(logger.handlers):
        if h.get_name() == _HANDLER_NAME:
            logger.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    if cfg.json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(KeyValueFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
