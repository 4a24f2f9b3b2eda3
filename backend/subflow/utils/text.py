"""Text utilities for safe string handling.

Truncation helpers for log previews plus the small string transforms shared
by the cue classifier and the theme canonicalizer.
"""

import re
import string

_WHITESPACE_RE = re.compile(r"\s+")
_BASE36_DIGITS = string.digits + string.ascii_lowercase


def safe_truncate(text: str, max_chars: int, suffix: str = "...") -> str:
    """Truncate text for previews, preferring a word boundary.

    Args:
        text: Text to truncate
        max_chars: Maximum characters (excluding suffix)
        suffix: Suffix to append if truncated (default "...")

    Returns:
        Truncated text with suffix if needed
    """
    if not text or len(text) <= max_chars:
        return text

    truncated = text[:max_chars]

    # Look back up to 20 characters for a good break point
    break_chars = {' ', '\n', '\t', ',', '.', '!', '?', ';', ':', '-', '。', '，', '、'}
    for i in range(min(20, max_chars - 1), 0, -1):
        if truncated[-i] in break_chars:
            truncated = truncated[:-(i - 1)].rstrip() if i > 1 else truncated
            break

    return truncated + suffix


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim the ends."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def to_base36(value: int) -> str:
    """Render a non-negative integer in lowercase base 36.

    Args:
        value: Integer to encode

    Returns:
        Base 36 representation (``"0"`` for zero)

    Raises:
        ValueError: If value is negative
    """
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"

    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))
