"""Tests for batch response sanitizing and full-file validation."""

from subflow.core.translation.models import TranslatedCue
from subflow.core.translation.pipeline.validator import (
    sanitize_batch_response,
    validate_translation,
)

from fakes import make_cue


def tc(cue_id, text):
    return TranslatedCue(id=cue_id, translated_text=text)


class TestSanitizeBatchResponse:
    def test_accepted_cues_follow_request_order(self):
        result = sanitize_batch_response(["1", "2"], [tc("2", "b"), tc("1", "a")])
        assert [c.id for c in result.accepted] == ["1", "2"]
        assert result.ignored_ids == []
        assert result.missing_ids == []

    def test_unknown_and_repeated_ids_are_ignored(self):
        result = sanitize_batch_response(
            ["1", "2"], [tc("1", "a"), tc("9", "x"), tc("1", "again")]
        )
        assert [c.translated_text for c in result.accepted] == ["a"]
        assert result.ignored_ids == ["9", "1"]
        assert result.missing_ids == ["2"]

    def test_empty_translation_is_unanswered_unless_allowed(self):
        returned = [tc("1", ""), tc("2", "  ")]
        result = sanitize_batch_response(["1", "2"], returned, allow_empty={"2"})
        assert [c.id for c in result.accepted] == ["2"]
        assert result.missing_ids == ["1"]


class TestValidateTranslation:
    def setup_method(self):
        self.cues = [
            make_cue("1", "⟦TAG_0⟧Hello", {"⟦TAG_0⟧": "<i>"}),
            make_cue("2", "World"),
        ]

    def test_valid_translation(self):
        report = validate_translation(self.cues, [tc("1", "⟦TAG_0⟧Bonjour"), tc("2", "Monde")])
        assert report.valid
        assert report.errors == []

    def test_missing_duplicate_and_unexpected(self):
        report = validate_translation(
            self.cues,
            [tc("1", "⟦TAG_0⟧Bonjour"), tc("1", "⟦TAG_0⟧Encore"), tc("3", "?")],
        )
        assert not report.valid
        assert [i.cue_id for i in report.by_kind("missing")] == ["2"]
        assert [i.cue_id for i in report.by_kind("duplicate")] == ["1"]
        assert [i.cue_id for i in report.by_kind("unexpected")] == ["3"]

    def test_placeholder_multiset_mismatch(self):
        report = validate_translation(
            self.cues, [tc("1", "Bonjour ⟦TAG_0⟧⟦TAG_0⟧"), tc("2", "Monde")]
        )
        assert [i.kind for i in report.issues] == ["placeholder_mismatch"]

    def test_moved_placeholder_is_fine(self):
        report = validate_translation(self.cues, [tc("1", "Bonjour⟦TAG_0⟧"), tc("2", "Monde")])
        assert report.valid
