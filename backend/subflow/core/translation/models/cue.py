"""Cue data models.

This module defines the immutable records that flow between the pipeline
components: parsed cues with their placeholder tables, translated cues
returned by the backend, and the subtitle file handed in by the caller.
"""

import re
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


@lru_cache(maxsize=1024)
def _token_pattern(tokens: FrozenSet[str]) -> "re.Pattern[str]":
    # Longest first so that e.g. TAG_10 wins over TAG_1
    ordered = sorted(tokens, key=lambda t: (-len(t), t))
    return re.compile("|".join(re.escape(token) for token in ordered))


class SubtitleFormat(str, Enum):
    """Subtitle container formats understood by the parser collaborator."""

    SRT = "srt"
    ASS = "ass"
    SSA = "ssa"
    VTT = "vtt"


class Placeholder(BaseModel):
    """A formatting marker replaced by an opaque token in the skeleton."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1, description="Token embedded in the skeleton")
    original_value: str = Field(..., description="Markup the token stands for")


class Cue(BaseModel):
    """One subtitle entry as produced by the format parser.

    ``text_skeleton`` carries the translatable prose with every formatting
    marker replaced by one of the tokens listed in ``placeholders``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Cue id, unique within a file")
    text_skeleton: str = Field(..., description="Text with placeholder tokens")
    placeholders: List[Placeholder] = Field(default_factory=list)
    style: Optional[str] = Field(default=None, description="ASS/SSA style name")
    format: SubtitleFormat = Field(default=SubtitleFormat.SRT)

    @property
    def token_pattern(self) -> Optional["re.Pattern[str]"]:
        """Regex matching any of this cue's placeholder tokens."""
        if not self.placeholders:
            return None
        return _token_pattern(frozenset(p.token for p in self.placeholders))

    def tokens_in_text(self, text: Optional[str] = None) -> List[str]:
        """List placeholder tokens in order of appearance.

        Args:
            text: Text to scan (defaults to the cue's own skeleton)

        Returns:
            Tokens as they occur, duplicates included
        """
        text = self.text_skeleton if text is None else text
        if self.token_pattern is None:
            return []
        return self.token_pattern.findall(text)

    def visible_text(self) -> str:
        """Skeleton with every placeholder token removed."""
        if self.token_pattern is None:
            return self.text_skeleton
        return self.token_pattern.sub("", self.text_skeleton)

    def original_text(self) -> str:
        """Skeleton with every token replaced by its original markup."""
        if self.token_pattern is None:
            return self.text_skeleton
        values = {p.token: p.original_value for p in self.placeholders}
        return self.token_pattern.sub(lambda m: values[m.group(0)], self.text_skeleton)


class TranslatedCue(BaseModel):
    """Translation of one cue, keyed by the originating cue id."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Id of the translated cue")
    translated_text: str = Field(..., description="Translated skeleton")


class ParsedSubtitle(BaseModel):
    """Output contract of the format parser collaborator.

    ``document`` is opaque to the pipeline; it is handed back unchanged to
    the reconstructor.
    """

    cues: List[Cue] = Field(default_factory=list)
    format: Optional[SubtitleFormat] = None
    document: Dict[str, Any] = Field(default_factory=dict)


class ReconstructedSubtitle(BaseModel):
    """Output contract of the format reconstructor collaborator."""

    content: str


class SubtitleFile(BaseModel):
    """A subtitle file submitted for translation."""

    path: str = Field(..., description="Absolute or project-relative file path")
    name: str = Field(default="", description="Display name")
    format: SubtitleFormat = Field(default=SubtitleFormat.SRT)
    content: str = Field(..., description="Raw file content")

    @property
    def size(self) -> int:
        """Content size in bytes (UTF-8)."""
        return len(self.content.encode("utf-8"))
