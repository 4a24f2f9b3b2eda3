"""Utility modules."""

from .text import collapse_whitespace, safe_truncate, to_base36

__all__ = ["collapse_whitespace", "safe_truncate", "to_base36"]
