"""Pipeline result models.

This module defines the externally visible outcome of a translation run and
the progress events emitted while it executes.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .cue import SubtitleFile, TranslatedCue
from .response import TokenUsage

CANCELLED_MESSAGE = "Translation cancelled"


class PipelineStatus(str, Enum):
    """Terminal state of a translation run."""

    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class PipelinePhase(str, Enum):
    """Phases of a per-file translation run, in execution order."""

    START = "start"
    PARSE = "parse"
    CLASSIFY = "classify"
    THEME_CACHE = "theme_cache"
    THEME_LLM = "theme_llm"
    MAIN = "main"
    VALIDATE = "validate"
    RECONSTRUCT = "reconstruct"
    DONE = "done"


class BatchProgressInfo(BaseModel):
    """Progress event reported to callers."""

    progress: int = Field(..., ge=0, le=100, description="Overall percentage")
    current_batch: int = Field(default=0, description="Batches completed in the phase")
    total_batches: int = Field(default=0, description="Batches in the phase")
    phase: PipelinePhase = Field(default=PipelinePhase.START)


class PipelineResult(BaseModel):
    """Outcome of one full translation run.

    This is the output contract of the translation pipeline.
    """

    original_file: Optional[SubtitleFile] = Field(default=None, repr=False)
    status: PipelineStatus = Field(..., description="Terminal state")
    translated_content: str = Field(default="", description="Reconstructed file content")
    translated_cues: List[TranslatedCue] = Field(default_factory=list, repr=False)
    error: Optional[str] = Field(default=None, description="Blocking error message")
    warning: Optional[str] = Field(default=None, description="Non-fatal issue summary")
    truncated: bool = Field(default=False, description="A batch hit the length limit")
    usage: Optional[TokenUsage] = Field(default=None)
    stats: Dict[str, Any] = Field(default_factory=dict, description="Run statistics")

    @property
    def success(self) -> bool:
        return self.status == PipelineStatus.SUCCESS

    @property
    def cancelled(self) -> bool:
        return self.status == PipelineStatus.CANCELLED

    @classmethod
    def failed(
        cls,
        file: Optional[SubtitleFile],
        error: str,
        *,
        truncated: bool = False,
        usage: Optional[TokenUsage] = None,
    ) -> "PipelineResult":
        """Build an error result."""
        return cls(
            original_file=file,
            status=PipelineStatus.ERROR,
            error=error,
            truncated=truncated,
            usage=usage if usage is not None and not usage.is_empty else None,
        )

    @classmethod
    def cancelled_result(cls, file: Optional[SubtitleFile]) -> "PipelineResult":
        """Build the uniform cancelled result."""
        return cls(
            original_file=file,
            status=PipelineStatus.CANCELLED,
            error=CANCELLED_MESSAGE,
        )
