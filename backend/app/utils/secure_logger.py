"""
Logging utility with automatic redaction of provider credentials.

- Masks ``api_key=...`` query parameters (the search providers take their
  key in the request URL, which httpx errors echo back)
- Masks bare provider keys and bearer tokens
- Omits stack traces in production
"""

import logging
import os
import re
import traceback
from typing import Any

# (pattern, replacement) pairs applied in order
_SENSITIVE_PATTERNS = [
    (re.compile(r"(api_key=)[^&\s'\"]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"\b[a-f0-9]{64}\b"), "[REDACTED]"),  # SerpApi keys
    (re.compile(r"\b[A-F0-9]{32}\b"), "[REDACTED]"),  # ValueSERP keys
    (re.compile(r"Bearer\s+[a-zA-Z0-9._\-]{20,}"), "Bearer [REDACTED]"),
]

_IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"


def redact_sensitive(text: str) -> str:
    """Replace known secret patterns with [REDACTED]."""
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


class _RedactingFormatter(logging.Formatter):
    """Logging formatter that automatically redacts sensitive data."""

    def format(self, record: logging.LogRecord) -> str:
        record.msg = redact_sensitive(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_sensitive(str(a)) if isinstance(a, str) else a
                for a in record.args
            )
        formatted = super().format(record)
        return redact_sensitive(formatted)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger with automatic sensitive data redaction.

    Usage:
        from app.utils.secure_logger import get_logger
        logger = get_logger(__name__)
        logger.info("Resolving %s", domain)
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        handler.setFormatter(_RedactingFormatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG if not _IS_PRODUCTION else logging.INFO)
        logger.propagate = False

    return logger


def log_error(context: str, error: Exception, extra: dict[str, Any] | None = None) -> None:
    """Log an error with context, redacting sensitive data."""
    logger = get_logger(context)
    msg = redact_sensitive(str(error))

    extra_str = ""
    if extra:
        safe_extra = {
            k: redact_sensitive(str(v)) if isinstance(v, str) else v
            for k, v in extra.items()
        }
        extra_str = f" | {safe_extra}"

    if _IS_PRODUCTION:
        logger.error(f"{msg}{extra_str}")
    else:
        tb = traceback.format_exception(type(error), error, error.__traceback__)
        tb_str = redact_sensitive("".join(tb))
        logger.error(f"{msg}{extra_str}\n{tb_str}")
