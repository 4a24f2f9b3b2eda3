"""Translation pipeline data models.

This module provides structured data models for the translation pipeline,
ensuring type safety and clear contracts between components.
"""

from .cue import (
    SubtitleFormat,
    Placeholder,
    Cue,
    TranslatedCue,
    ParsedSubtitle,
    ReconstructedSubtitle,
    SubtitleFile,
)
from .prompt import Message, PromptBundle
from .response import TokenUsage, BackendRequest, BackendResponse
from .result import (
    CANCELLED_MESSAGE,
    PipelineStatus,
    PipelinePhase,
    BatchProgressInfo,
    PipelineResult,
)

__all__ = [
    # Cue models
    "SubtitleFormat",
    "Placeholder",
    "Cue",
    "TranslatedCue",
    "ParsedSubtitle",
    "ReconstructedSubtitle",
    "SubtitleFile",
    # Prompt models
    "Message",
    "PromptBundle",
    # Backend models
    "TokenUsage",
    "BackendRequest",
    "BackendResponse",
    # Result models
    "CANCELLED_MESSAGE",
    "PipelineStatus",
    "PipelinePhase",
    "BatchProgressInfo",
    "PipelineResult",
]
