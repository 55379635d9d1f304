"""tracksort utilities — logging and redaction helpers."""

from tracksort.utils.logging import configure_logging, get_logger
from tracksort.utils.redaction import redact_error_message

__all__ = [
    "configure_logging",
    "get_logger",
    "redact_error_message",
]
