"""Subtitle format collaborator contracts.

Parsing and reconstructing subtitle formats is not done here; the pipeline
consumes implementations of these interfaces.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from subflow.core.translation.models import (
    ParsedSubtitle,
    ReconstructedSubtitle,
    SubtitleFormat,
    TranslatedCue,
)

SUBTITLE_EXTENSIONS = {
    SubtitleFormat.SRT: ".srt",
    SubtitleFormat.ASS: ".ass",
    SubtitleFormat.SSA: ".ssa",
    SubtitleFormat.VTT: ".vtt",
}


class SubtitleParser(ABC):
    """Turns raw subtitle content into cues with placeholder tables."""

    @abstractmethod
    def parse(self, raw_content: str) -> Optional[ParsedSubtitle]:
        """Parse raw content.

        Args:
            raw_content: File content as text

        Returns:
            ParsedSubtitle, or None if the content is not a supported format
        """
        pass


class SubtitleReconstructor(ABC):
    """Writes translated cues back into the original document."""

    @abstractmethod
    def reconstruct(
        self,
        parsed: ParsedSubtitle,
        translated_cues: List[TranslatedCue],
        original_raw_content: str,
    ) -> ReconstructedSubtitle:
        """Rebuild the subtitle file.

        Args:
            parsed: Output of the parser for the same content
            translated_cues: One translation per cue, in cue order
            original_raw_content: Content the parser was given

        Returns:
            ReconstructedSubtitle with the translated file content
        """
        pass


def get_subtitle_extension(fmt: Union[SubtitleFormat, str]) -> str:
    """File extension (with dot) for a subtitle format, ``.txt`` if unknown."""
    try:
        return SUBTITLE_EXTENSIONS[SubtitleFormat(fmt)]
    except ValueError:
        return ".txt"
