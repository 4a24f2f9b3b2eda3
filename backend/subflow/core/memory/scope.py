"""Translation memory scope keys.

Theme songs are shared by every episode of a series, so memory is scoped to
the series folder rather than to the individual subtitle file.
"""

import re

_SUBTITLE_FOLDER_RE = re.compile(r"^(subs|subtitle|subtitles)$", re.IGNORECASE)


def get_memory_scope_key(file_path: str) -> str:
    """Derive the memory scope of a subtitle file from its path.

    The file name is dropped, and so is a trailing ``subs``/``subtitle``/
    ``subtitles`` folder when it has a parent. A bare file name is its own
    scope.

    Args:
        file_path: Subtitle file path (either separator style)

    Returns:
        Scope key with forward slashes
    """
    normalized = file_path.replace("\\", "/")
    has_leading_slash = normalized.startswith("/")
    parts = [part for part in normalized.split("/") if part]

    if len(parts) <= 1:
        return normalized

    parts.pop()

    if len(parts) > 1 and _SUBTITLE_FOLDER_RE.match(parts[-1]):
        parts.pop()

    joined = "/".join(parts)
    return f"/{joined}" if has_leading_slash else joined
