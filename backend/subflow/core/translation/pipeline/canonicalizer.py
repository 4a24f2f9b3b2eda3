"""Theme canonicalizer and deduplicator.

Opening/ending songs repeat the same lines many times per file and across
episodes. Each theme cue is rewritten into a canonical template in which its
placeholder tokens are replaced by positional tokens (``~p0:``, ``~p1:``, ...),
so that occurrences that differ only in placeholder numbering collapse into
one group, are translated once, and are re-expanded with their own tokens.
"""

import hashlib
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import PlaceholderMismatchError
from ..models.cue import Cue, TranslatedCue
from subflow.utils.text import collapse_whitespace, to_base36

logger = logging.getLogger(__name__)

CANONICAL_TOKEN_RE = re.compile(r"~p([0-9a-z]+):")


def canonical_token(index: int) -> str:
    """Positional token for the index-th placeholder of a template."""
    return f"~p{to_base36(index)}:"


def compute_signature(normalized_template: str) -> str:
    """Content signature used as the translation memory key suffix."""
    return hashlib.sha256(normalized_template.encode("utf-8")).hexdigest()


@dataclass
class ThemeOccurrence:
    """One concrete theme cue and its tokens in skeleton order."""

    cue: Cue
    tokens: List[str]


@dataclass
class ThemeSignatureGroup:
    """Theme cues sharing one canonical template."""

    group_id: str
    signature: str
    template: str
    occurrences: List[ThemeOccurrence] = field(default_factory=list)

    @property
    def placeholder_count(self) -> int:
        return len(self.occurrences[0].tokens) if self.occurrences else 0

    @property
    def cue_ids(self) -> List[str]:
        return [occurrence.cue.id for occurrence in self.occurrences]

    @property
    def cues(self) -> List[Cue]:
        return [occurrence.cue for occurrence in self.occurrences]

    def validate_translation(self, translated_template: str) -> None:
        """Check that a translated template carries each canonical token once.

        Raises:
            PlaceholderMismatchError: If a token is missing, repeated or unknown
        """
        found = Counter(CANONICAL_TOKEN_RE.findall(translated_template))
        expected = Counter(to_base36(i) for i in range(self.placeholder_count))
        if found != expected:
            raise PlaceholderMismatchError(
                f"Theme group {self.group_id}: expected placeholders "
                f"{sorted(expected)}, got {sorted(found.elements())}"
            )

    def expand(self, translated_template: str) -> List[TranslatedCue]:
        """Substitute each occurrence's own tokens into the translated template.

        Args:
            translated_template: Translation of ``template`` with canonical tokens

        Returns:
            One TranslatedCue per occurrence, in occurrence order

        Raises:
            PlaceholderMismatchError: If the template fails validation
        """
        self.validate_translation(translated_template)

        expanded: List[TranslatedCue] = []
        for occurrence in self.occurrences:
            tokens = occurrence.tokens
            text = CANONICAL_TOKEN_RE.sub(
                lambda m: tokens[int(m.group(1), 36)], translated_template
            )
            expanded.append(TranslatedCue(id=occurrence.cue.id, translated_text=text))
        return expanded


@dataclass
class ThemeDeduplication:
    """Result of grouping a file's theme candidates."""

    groups: List[ThemeSignatureGroup] = field(default_factory=list)
    excluded: List[Cue] = field(default_factory=list)

    @property
    def occurrence_count(self) -> int:
        return sum(len(group.occurrences) for group in self.groups)


def canonicalize_cue(cue: Cue) -> Optional[Tuple[str, List[str]]]:
    """Rewrite a cue skeleton into its canonical template.

    Args:
        cue: Theme candidate cue

    Returns:
        Tuple of (canonical template, tokens in skeleton order), or None when
        the skeleton's tokens do not map one-to-one onto its placeholder list
    """
    if CANONICAL_TOKEN_RE.search(cue.text_skeleton):
        return None

    tokens = cue.tokens_in_text()
    declared = [p.token for p in cue.placeholders]
    if len(tokens) != len(declared) or len(set(tokens)) != len(tokens):
        return None
    if set(tokens) != set(declared):
        return None

    if not tokens:
        return cue.text_skeleton, []

    counter = iter(range(len(tokens)))
    template = cue.token_pattern.sub(lambda _: canonical_token(next(counter)), cue.text_skeleton)
    return template, tokens


def deduplicate_theme_cues(cues: Sequence[Cue]) -> ThemeDeduplication:
    """Group theme candidates by whitespace-normalized canonical template.

    Args:
        cues: Theme candidate cues in file order

    Returns:
        ThemeDeduplication with groups in first-occurrence order and the cues
        that could not be canonicalized
    """
    result = ThemeDeduplication()
    by_key: Dict[str, ThemeSignatureGroup] = {}

    for cue in cues:
        canonical = canonicalize_cue(cue)
        if canonical is None:
            logger.warning(
                f"Theme cue {cue.id}: placeholder tokens do not match its placeholder list, "
                "translating it as an ordinary cue"
            )
            result.excluded.append(cue)
            continue

        template, tokens = canonical
        normalized = collapse_whitespace(template)
        group = by_key.get(normalized)
        if group is None:
            group = ThemeSignatureGroup(
                group_id=f"theme-{len(result.groups)}",
                signature=compute_signature(normalized),
                template=template,
            )
            by_key[normalized] = group
            result.groups.append(group)

        group.occurrences.append(ThemeOccurrence(cue=cue, tokens=tokens))

    return result
