"""Cue classifier.

Assigns every cue of a file exactly one role: passthrough (masks, drawings,
tag-only cues), theme candidate (song/karaoke lines) or main translatable
dialogue.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..models.cue import Cue, SubtitleFormat, TranslatedCue


class CueRole(str, Enum):
    """Role a cue plays in the pipeline."""

    PASSTHROUGH = "passthrough"
    THEME_CANDIDATE = "theme_candidate"
    MAIN = "main"


@dataclass
class ClassificationStats:
    """Aggregate counts for one classified file."""

    total_cues: int = 0
    passthrough_cues: int = 0
    theme_cues: int = 0
    main_cues: int = 0
    skipped_mask_cues: int = 0
    total_chars: int = 0
    translatable_chars: int = 0

    @property
    def estimated_reduction_pct(self) -> float:
        """Share of skeleton characters kept away from the LLM, in percent."""
        if self.total_chars <= 0:
            return 0.0
        elided = self.total_chars - self.translatable_chars
        return round(elided * 100 / self.total_chars, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_cues": self.total_cues,
            "passthrough_cues": self.passthrough_cues,
            "theme_cues": self.theme_cues,
            "main_cues": self.main_cues,
            "skipped_mask_cues": self.skipped_mask_cues,
            "total_chars": self.total_chars,
            "translatable_chars": self.translatable_chars,
            "estimated_reduction_pct": self.estimated_reduction_pct,
        }


@dataclass
class CueClassification:
    """Partitioned cues, each list in original file order."""

    passthrough: List[Cue] = field(default_factory=list)
    theme_candidates: List[Cue] = field(default_factory=list)
    main: List[Cue] = field(default_factory=list)
    roles: Dict[str, CueRole] = field(default_factory=dict)
    stats: ClassificationStats = field(default_factory=ClassificationStats)

    @property
    def all_passthrough(self) -> bool:
        return not self.theme_candidates and not self.main

    def passthrough_translations(self) -> List[TranslatedCue]:
        """Passthrough cues keep their skeleton untouched."""
        return [
            TranslatedCue(id=cue.id, translated_text=cue.text_skeleton)
            for cue in self.passthrough
        ]


class CueClassifier:
    """Classify subtitle cues by role."""

    # Overlay styles that carry no dialogue (ASS/SSA only)
    NON_TRANSLATABLE_STYLES = {"mask", "masktop"}

    # Theme/lyric style keywords - matched against word tokens of the style name
    THEME_STYLE_KEYWORDS = {
        "op", "ed", "opening", "ending", "theme",
        "song", "songs", "lyric", "lyrics", "insert",
        "karaoke", "kara", "romaji", "kanji",
    }

    # Timed karaoke syllables: \k, \K, \kf, \ko followed by a duration
    _karaoke_re = re.compile(r"\\(?:k[fo]?|K)\d+")
    # Drawing mode switch with a non-zero scale: \p1, \p2, ...
    _drawing_re = re.compile(r"\\p[1-9]\d*")
    # Split style names like "OP-Romaji", "Song_Lyrics", "EDKaraoke"
    _style_token_re = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")

    def classify_cue(self, cue: Cue) -> CueRole:
        """Determine the role of a single cue.

        Args:
            cue: Cue to classify

        Returns:
            CueRole enum value
        """
        if self.is_mask_style(cue) or self.is_drawing(cue):
            return CueRole.PASSTHROUGH

        if not cue.visible_text().strip():
            return CueRole.PASSTHROUGH

        if self.has_theme_style(cue.style) or self.has_karaoke_markup(cue):
            return CueRole.THEME_CANDIDATE

        return CueRole.MAIN

    def classify(self, cues: Sequence[Cue]) -> CueClassification:
        """Partition a file's cues by role.

        Args:
            cues: Cues in file order

        Returns:
            CueClassification with partitions and stats
        """
        result = CueClassification()
        stats = result.stats
        stats.total_cues = len(cues)

        for cue in cues:
            chars = len(cue.text_skeleton)
            stats.total_chars += chars

            role = self.classify_cue(cue)
            result.roles[cue.id] = role

            if role == CueRole.PASSTHROUGH:
                result.passthrough.append(cue)
                stats.passthrough_cues += 1
                if self.is_mask_style(cue):
                    stats.skipped_mask_cues += 1
            elif role == CueRole.THEME_CANDIDATE:
                result.theme_candidates.append(cue)
                stats.theme_cues += 1
                stats.translatable_chars += chars
            else:
                result.main.append(cue)
                stats.main_cues += 1
                stats.translatable_chars += chars

        return result

    def is_mask_style(self, cue: Cue) -> bool:
        if cue.format not in (SubtitleFormat.ASS, SubtitleFormat.SSA):
            return False
        style = (cue.style or "").strip().lower()
        return bool(style) and style in self.NON_TRANSLATABLE_STYLES

    def is_drawing(self, cue: Cue) -> bool:
        return any(self._drawing_re.search(p.original_value) for p in cue.placeholders)

    def has_karaoke_markup(self, cue: Cue) -> bool:
        return any(self._karaoke_re.search(p.original_value) for p in cue.placeholders)

    def has_theme_style(self, style: Optional[str]) -> bool:
        if not style:
            return False
        tokens = {token.lower() for token in self._style_token_re.findall(style)}
        return not tokens.isdisjoint(self.THEME_STYLE_KEYWORDS)
