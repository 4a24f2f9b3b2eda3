"""Subtitle format contracts."""

from .contracts import SubtitleParser, SubtitleReconstructor, get_subtitle_extension

__all__ = [
    "SubtitleParser",
    "SubtitleReconstructor",
    "get_subtitle_extension",
]
