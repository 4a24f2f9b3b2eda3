"""Tests for the cue classifier."""

from subflow.core.translation.models import SubtitleFormat
from subflow.core.translation.pipeline.classifier import CueClassifier, CueRole

from fakes import make_cue

ASS = SubtitleFormat.ASS


class TestClassifyCue:
    def setup_method(self):
        self.classifier = CueClassifier()

    def test_plain_dialogue_is_main(self):
        assert self.classifier.classify_cue(make_cue("1", "Hello there")) == CueRole.MAIN

    def test_mask_style_is_passthrough_for_ass(self):
        cue = make_cue("1", "Hidden", style="MaskTop", fmt=ASS)
        assert self.classifier.classify_cue(cue) == CueRole.PASSTHROUGH

    def test_mask_style_ignored_for_srt(self):
        cue = make_cue("1", "Visible", style="mask")
        assert self.classifier.classify_cue(cue) == CueRole.MAIN

    def test_drawing_is_passthrough(self):
        cue = make_cue("1", "⟦TAG_0⟧m 0 0 l 10 10", {"⟦TAG_0⟧": r"{\p1}"}, fmt=ASS)
        assert self.classifier.classify_cue(cue) == CueRole.PASSTHROUGH

    def test_drawing_scale_zero_is_not_a_drawing(self):
        cue = make_cue("1", "⟦TAG_0⟧Text", {"⟦TAG_0⟧": r"{\p0}"}, fmt=ASS)
        assert self.classifier.classify_cue(cue) == CueRole.MAIN

    def test_tag_only_cue_is_passthrough(self):
        cue = make_cue("1", "⟦TAG_0⟧  ⟦TAG_1⟧", {"⟦TAG_0⟧": "<i>", "⟦TAG_1⟧": "</i>"})
        assert self.classifier.classify_cue(cue) == CueRole.PASSTHROUGH

    def test_theme_style_keyword(self):
        for style in ("OP", "ED-Romaji", "Song_Lyrics", "Insert Song", "Opening", "kara"):
            cue = make_cue("1", "Sora ni", style=style, fmt=ASS)
            assert self.classifier.classify_cue(cue) == CueRole.THEME_CANDIDATE, style

    def test_keyword_inside_word_does_not_match(self):
        # "Default" and "Speaker" contain no theme word token
        for style in ("Default", "Speaker", "Notes"):
            cue = make_cue("1", "Hello", style=style, fmt=ASS)
            assert self.classifier.classify_cue(cue) == CueRole.MAIN, style

    def test_karaoke_markup_is_theme(self):
        for tag in (r"{\k20}", r"{\K35}", r"{\kf12}", r"{\ko8}"):
            cue = make_cue("1", "⟦TAG_0⟧la", {"⟦TAG_0⟧": tag}, fmt=ASS)
            assert self.classifier.classify_cue(cue) == CueRole.THEME_CANDIDATE, tag

    def test_mask_wins_over_theme_style(self):
        cue = make_cue("1", "⟦TAG_0⟧la", {"⟦TAG_0⟧": r"{\k20}"}, style="mask", fmt=ASS)
        assert self.classifier.classify_cue(cue) == CueRole.PASSTHROUGH


class TestClassify:
    def test_partitions_preserve_order_and_cover_all_cues(self):
        cues = [
            make_cue("1", "Hello"),
            make_cue("2", "Hidden", style="mask", fmt=ASS),
            make_cue("3", "Sora ni", style="OP", fmt=ASS),
            make_cue("4", "Bye"),
            make_cue("5", "Kaze ga", style="OP", fmt=ASS),
        ]
        result = CueClassifier().classify(cues)

        assert [c.id for c in result.main] == ["1", "4"]
        assert [c.id for c in result.passthrough] == ["2"]
        assert [c.id for c in result.theme_candidates] == ["3", "5"]
        assert set(result.roles) == {"1", "2", "3", "4", "5"}
        assert not result.all_passthrough

    def test_stats(self):
        cues = [
            make_cue("1", "abcd"),
            make_cue("2", "efgh", style="mask", fmt=ASS),
            make_cue("3", "ij", style="OP", fmt=ASS),
        ]
        stats = CueClassifier().classify(cues).stats

        assert stats.total_cues == 3
        assert stats.passthrough_cues == 1
        assert stats.skipped_mask_cues == 1
        assert stats.theme_cues == 1
        assert stats.main_cues == 1
        assert stats.total_chars == 10
        assert stats.translatable_chars == 6
        assert stats.estimated_reduction_pct == 40.0
        assert stats.to_dict()["estimated_reduction_pct"] == 40.0

    def test_passthrough_translations_keep_skeleton(self):
        cue = make_cue("9", "⟦TAG_0⟧", {"⟦TAG_0⟧": "<b>"})
        result = CueClassifier().classify([cue])

        assert result.all_passthrough
        translations = result.passthrough_translations()
        assert [(t.id, t.translated_text) for t in translations] == [("9", "⟦TAG_0⟧")]

    def test_empty_input(self):
        result = CueClassifier().classify([])
        assert result.stats.total_cues == 0
        assert result.stats.estimated_reduction_pct == 0.0
