"""Tests for small helpers: languages, extensions, settings, text utils."""

import pytest

from subflow.config import Settings
from subflow.core.languages import get_language_name
from subflow.core.subtitles import get_subtitle_extension
from subflow.core.translation.models import SubtitleFormat
from subflow.utils.text import collapse_whitespace, safe_truncate, to_base36


class TestLanguages:
    def test_known_unknown_and_auto(self):
        assert get_language_name("fr") == "French"
        assert get_language_name("xx") == "xx"
        assert get_language_name("auto") == "auto-detect"


class TestSubtitleExtension:
    def test_extensions(self):
        assert get_subtitle_extension(SubtitleFormat.ASS) == ".ass"
        assert get_subtitle_extension("vtt") == ".vtt"
        assert get_subtitle_extension("sub") == ".txt"


class TestSettings:
    def test_api_key_lookup(self):
        settings = Settings(
            openai_api_key="sk-1", gemini_api_key="g-1", anthropic_api_key=None, _env_file=None
        )
        assert settings.get_api_key("OpenAI") == "sk-1"
        assert settings.get_api_key("google") == "g-1"
        assert settings.get_api_key("anthropic") is None
        assert settings.get_api_key("unknown") is None


class TestTextUtils:
    def test_to_base36(self):
        assert [to_base36(n) for n in (0, 9, 10, 35, 36, 1295)] == ["0", "9", "a", "z", "10", "zz"]
        with pytest.raises(ValueError):
            to_base36(-1)

    def test_collapse_whitespace(self):
        assert collapse_whitespace("  a \n\t b  ") == "a b"

    def test_safe_truncate(self):
        assert safe_truncate("short", 10) == "short"
        truncated = safe_truncate("one two three four five", 12)
        assert truncated.endswith("...")
        assert len(truncated) <= 15
