"""Redaction utilities for credentials in error messages and logs.

The GitHub credential travels in an ``Authorization: token ...`` header;
upstream error bodies and httpx exception text can echo it back.
"""

import re

# Regex patterns for credentials in free text
_KEY_PATTERNS = [
    # Authorization: token XXXXX
    re.compile(r"(token\s+)[^\s\"',]+", re.IGNORECASE),
    # Bearer tokens
    re.compile(r"(Bearer\s+)[^\s\"',]+", re.IGNORECASE),
    # Query string credentials
    re.compile(r"(access_token=)[^\s&]+", re.IGNORECASE),
    # GitHub personal access tokens
    re.compile(r"(gh[pousr]_)[A-Za-z0-9]+"),
]


def redact_error_message(message: str) -> str:
    """Strip potential tokens from an error message.

    Args:
        message: Error string that may contain leaked credentials.

    Returns:
        Message with sensitive values replaced by '[REDACTED]'.
    """
    result = message
    for pattern in _KEY_PATTERNS:
        result = pattern.sub(r"\1[REDACTED]", result)
    return result
