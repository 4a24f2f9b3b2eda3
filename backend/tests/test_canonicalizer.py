"""Tests for theme canonicalization and deduplication."""

import hashlib

import pytest

from subflow.core.translation.errors import PlaceholderMismatchError
from subflow.core.translation.pipeline.canonicalizer import (
    canonical_token,
    canonicalize_cue,
    compute_signature,
    deduplicate_theme_cues,
)

from fakes import make_cue


def karaoke_cue(cue_id, first, second, text="⟦{a}⟧Sora ni ⟦{b}⟧kaeru"):
    return make_cue(
        cue_id,
        text.format(a=first, b=second),
        {f"⟦{first}⟧": r"{\k20}", f"⟦{second}⟧": r"{\k35}"},
        style="OP",
    )


class TestCanonicalToken:
    def test_base36_positions(self):
        assert canonical_token(0) == "~p0:"
        assert canonical_token(10) == "~pa:"
        assert canonical_token(36) == "~p10:"


class TestCanonicalizeCue:
    def test_replaces_tokens_in_order_of_appearance(self):
        cue = make_cue(
            "1",
            "⟦B⟧one ⟦A⟧two",
            {"⟦A⟧": r"{\k1}", "⟦B⟧": r"{\k2}"},
        )
        template, tokens = canonicalize_cue(cue)
        assert template == "~p0:one ~p1:two"
        assert tokens == ["⟦B⟧", "⟦A⟧"]

    def test_cue_without_placeholders(self):
        assert canonicalize_cue(make_cue("1", "just text")) == ("just text", [])

    def test_repeated_token_is_rejected(self):
        cue = make_cue("1", "⟦A⟧x⟦A⟧", {"⟦A⟧": r"{\k1}"})
        assert canonicalize_cue(cue) is None

    def test_listed_token_missing_from_skeleton_is_rejected(self):
        cue = make_cue("1", "⟦A⟧x", {"⟦A⟧": r"{\k1}", "⟦B⟧": r"{\k2}"})
        assert canonicalize_cue(cue) is None


class TestDeduplicateThemeCues:
    def test_groups_occurrences_that_differ_only_in_tokens(self):
        cues = [
            karaoke_cue("1", "T0", "T1"),
            karaoke_cue("2", "T5", "T6"),
            karaoke_cue("3", "T9", "T10", text="⟦{a}⟧Sora ni   ⟦{b}⟧kaeru "),
            make_cue("4", "Another line", style="OP"),
        ]
        result = deduplicate_theme_cues(cues)

        assert len(result.groups) == 2
        first, second = result.groups
        assert first.group_id == "theme-0"
        assert first.cue_ids == ["1", "2", "3"]
        assert first.template == "~p0:Sora ni ~p1:kaeru"
        assert first.signature == hashlib.sha256(b"~p0:Sora ni ~p1:kaeru").hexdigest()
        assert first.signature == compute_signature("~p0:Sora ni ~p1:kaeru")
        assert second.cue_ids == ["4"]
        assert result.occurrence_count == 4
        assert result.excluded == []

    def test_mismatched_cue_is_excluded(self):
        bad = make_cue("2", "⟦A⟧x⟦A⟧", {"⟦A⟧": r"{\k1}"}, style="OP")
        result = deduplicate_theme_cues([karaoke_cue("1", "T0", "T1"), bad])

        assert [c.id for c in result.excluded] == ["2"]
        assert result.occurrence_count == 1

    def test_expand_substitutes_each_occurrence_tokens(self):
        cues = [karaoke_cue("1", "T0", "T1"), karaoke_cue("2", "T5", "T6")]
        group = deduplicate_theme_cues(cues).groups[0]

        expanded = group.expand("~p1:vers le ciel ~p0:rentrer")

        assert [(c.id, c.translated_text) for c in expanded] == [
            ("1", "⟦T1⟧vers le ciel ⟦T0⟧rentrer"),
            ("2", "⟦T6⟧vers le ciel ⟦T5⟧rentrer"),
        ]

    @pytest.mark.parametrize(
        "translated",
        [
            "~p0: only one token",
            "~p0:~p0:~p1: repeated",
            "~p0:~p1:~p2: unknown extra",
        ],
    )
    def test_expand_rejects_templates_without_each_token_once(self, translated):
        group = deduplicate_theme_cues([karaoke_cue("1", "T0", "T1")]).groups[0]
        with pytest.raises(PlaceholderMismatchError):
            group.expand(translated)
