"""Response validator.

Two levels of checking:

- per batch: returned cues are matched against the ids that were requested;
  unknown ids are discarded and missing ids reported back to the scheduler
- per file: the combined translation is checked for exact id coverage and
  placeholder fidelity before reconstruction
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from ..models.cue import Cue, TranslatedCue

logger = logging.getLogger(__name__)


@dataclass
class BatchValidation:
    """Outcome of matching one batch response against its request."""

    accepted: List[TranslatedCue] = field(default_factory=list)
    ignored_ids: List[str] = field(default_factory=list)
    missing_ids: List[str] = field(default_factory=list)


def sanitize_batch_response(
    requested: Sequence[str],
    returned: Sequence[TranslatedCue],
    *,
    allow_empty: Optional[Set[str]] = None,
) -> BatchValidation:
    """Keep only answers to requested ids and report the unanswered ones.

    Args:
        requested: Ids sent in the batch, in request order
        returned: Cues parsed from the response
        allow_empty: Requested ids for which an empty translation is legal

    Returns:
        BatchValidation with accepted cues in request order
    """
    allow_empty = allow_empty or set()
    requested_set = set(requested)
    answers: Dict[str, TranslatedCue] = {}
    result = BatchValidation()

    for cue in returned:
        if cue.id not in requested_set:
            result.ignored_ids.append(cue.id)
            continue
        if cue.id in answers:
            result.ignored_ids.append(cue.id)
            continue
        if not cue.translated_text.strip() and cue.id not in allow_empty:
            logger.warning(f"Empty translation for cue {cue.id}, treating it as unanswered")
            continue
        answers[cue.id] = cue

    for cue_id in requested:
        if cue_id in answers:
            result.accepted.append(answers[cue_id])
        else:
            result.missing_ids.append(cue_id)

    return result


@dataclass
class ValidationIssue:
    """One problem found in the combined translation."""

    cue_id: str
    kind: str  # missing | duplicate | unexpected | placeholder_mismatch
    message: str


@dataclass
class ValidationReport:
    """Result of validating a full translation."""

    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    @property
    def errors(self) -> List[str]:
        return [issue.message for issue in self.issues]

    def by_kind(self, kind: str) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.kind == kind]


def placeholder_multiset(cue: Cue, text: str) -> Counter:
    """Multiset of the cue's placeholder tokens found in a text."""
    return Counter(cue.tokens_in_text(text))


def validate_translation(
    original: Sequence[Cue],
    translated: Sequence[TranslatedCue],
) -> ValidationReport:
    """Check that every original cue is translated exactly once.

    Args:
        original: Parsed cues of the file
        translated: Passthrough, theme and main translations combined

    Returns:
        ValidationReport listing every issue found
    """
    report = ValidationReport()
    cues_by_id = {cue.id: cue for cue in original}
    counts = Counter(cue.id for cue in translated)

    for cue_id, count in counts.items():
        if cue_id not in cues_by_id:
            report.issues.append(
                ValidationIssue(cue_id, "unexpected", f"Unexpected cue id in translation: {cue_id}")
            )
        elif count > 1:
            report.issues.append(
                ValidationIssue(cue_id, "duplicate", f"Cue {cue_id} translated {count} times")
            )

    for cue in original:
        if counts.get(cue.id, 0) == 0:
            report.issues.append(
                ValidationIssue(cue.id, "missing", f"Missing translation for cue {cue.id}")
            )

    seen: Set[str] = set()
    for item in translated:
        cue = cues_by_id.get(item.id)
        if cue is None or item.id in seen:
            continue
        seen.add(item.id)
        expected = placeholder_multiset(cue, cue.text_skeleton)
        actual = placeholder_multiset(cue, item.translated_text)
        if expected != actual:
            report.issues.append(
                ValidationIssue(
                    cue.id,
                    "placeholder_mismatch",
                    f"Cue {cue.id}: placeholders {sorted(expected.elements())} "
                    f"became {sorted(actual.elements())}",
                )
            )

    return report
