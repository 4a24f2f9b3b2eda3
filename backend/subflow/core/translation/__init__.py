"""Translation package.

This package provides the subtitle translation pipeline and orchestration
components.

Architecture:
- models/: Data models (Cue, PromptBundle, PipelineResult, etc.)
- pipeline/: Pipeline components (CueClassifier, BatchScheduler, etc.)
- orchestrator.py: Multi-model orchestration and job registry
"""

# Re-export models for convenience
from .models import (
    # Cue models
    SubtitleFormat,
    Placeholder,
    Cue,
    TranslatedCue,
    ParsedSubtitle,
    ReconstructedSubtitle,
    SubtitleFile,
    # Prompt models
    Message,
    PromptBundle,
    # Backend models
    TokenUsage,
    BackendRequest,
    BackendResponse,
    # Result models
    CANCELLED_MESSAGE,
    PipelineStatus,
    PipelinePhase,
    BatchProgressInfo,
    PipelineResult,
)
from .cancellation import CancellationToken
from .errors import (
    TranslationError,
    ResponseFormatError,
    PlaceholderMismatchError,
    MemoryStoreError,
)

__all__ = [
    # Models
    "SubtitleFormat",
    "Placeholder",
    "Cue",
    "TranslatedCue",
    "ParsedSubtitle",
    "ReconstructedSubtitle",
    "SubtitleFile",
    "Message",
    "PromptBundle",
    "TokenUsage",
    "BackendRequest",
    "BackendResponse",
    "CANCELLED_MESSAGE",
    "PipelineStatus",
    "PipelinePhase",
    "BatchProgressInfo",
    "PipelineResult",
    # Cancellation and errors
    "CancellationToken",
    "TranslationError",
    "ResponseFormatError",
    "PlaceholderMismatchError",
    "MemoryStoreError",
]
