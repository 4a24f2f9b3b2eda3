"""Shared fixtures for pipeline tests."""

import pytest

from subflow.core.memory import InMemoryKeyValueStore, TranslationMemory
from subflow.core.translation.models import ParsedSubtitle, SubtitleFile, SubtitleFormat
from subflow.core.translation.pipeline import SubtitleTranslationPipeline

from fakes import FakeBackendClient, FakeParser, FakeReconstructor, make_cue


@pytest.fixture
def memory() -> TranslationMemory:
    return TranslationMemory(InMemoryKeyValueStore(), write_attempts=1)


@pytest.fixture
def dialogue_cues():
    return [make_cue(str(i), f"Line number {i}") for i in range(1, 11)]


@pytest.fixture
def subtitle_file() -> SubtitleFile:
    return SubtitleFile(
        path="/shows/Series/Season 1/subs/episode01.srt",
        name="episode01.srt",
        format=SubtitleFormat.SRT,
        content="raw subtitle content",
    )


@pytest.fixture
def build_pipeline():
    """Factory for pipelines over a fixed parse result."""

    def _build(cues, client=None, memory=None, api_key="sk-test", fmt=SubtitleFormat.SRT):
        parser = FakeParser(ParsedSubtitle(cues=cues, format=fmt) if cues is not None else None)
        reconstructor = FakeReconstructor()
        client = client or FakeBackendClient()
        pipeline = SubtitleTranslationPipeline(
            parser,
            reconstructor,
            client,
            memory=memory,
            api_key_resolver=lambda provider: api_key,
        )
        return pipeline, client, reconstructor

    return _build
