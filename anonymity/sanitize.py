"""Sanitization for client-supplied identifiers."""

import re
from typing import Any, Optional


class ValidationLimits:
    STRING_MAX_LENGTH = 2048
    SHORT_STRING_MAX_LENGTH = 255
    SESSION_ID_MAX_LENGTH = 128
    BATCH_MAX_SIZE = 100


_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_UNSAFE_CHARS = re.compile(r"[<>'\"&]")
_WHITESPACE = re.compile(r"\s+")
_SESSION_ID = re.compile(r"^[a-zA-Z0-9_-]+$")


def sanitize_string(value: Any, max_length: Optional[int] = None) -> str:
    """
    Trim, truncate and strip control and markup characters.

    Non-string input yields an empty string.
    """
    if not isinstance(value, str):
        return ""

    limit = max_length if max_length is not None else ValidationLimits.STRING_MAX_LENGTH

    cleaned = _CONTROL_CHARS.sub("", value.strip()[:limit])
    cleaned = _UNSAFE_CHARS.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned)


def validate_session_id(value: Any) -> str:
    """Return the sanitized session id, or '' if it is not [A-Za-z0-9_-]+"""
    sanitized = sanitize_string(value, ValidationLimits.SESSION_ID_MAX_LENGTH)
    if not _SESSION_ID.match(sanitized):
        return ""
    return sanitized
