"""
Logging utilities for the FastAPI application and the refresh worker.

Provides a consistent logging format and configuration. Context passed through
``extra=`` is appended to each line as ``key=value`` pairs.
"""

import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_REDACTED = "[REDACTED]"
_SECRET_KEY_MARKERS = ("token", "secret", "password", "authorization")

# Attributes present on every LogRecord; anything else came from ``extra=``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


def _redact(key: str, value: object) -> object:
    if isinstance(value, str) and any(marker in key.lower() for marker in _SECRET_KEY_MARKERS):
        return _REDACTED
    return value


class ContextFormatter(logging.Formatter):
    """Render ``extra`` context after the message, never printing secret values."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: _redact(key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        if not context:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{line} | {rendered}"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(_FORMAT))
    logging.basicConfig(level=level.upper(), handlers=[handler])
    # httpx logs every request line at INFO, including token endpoint URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["ContextFormatter", "configure_logging"]
