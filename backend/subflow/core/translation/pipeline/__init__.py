"""Translation pipeline components.

This module provides the core pipeline components for subtitle translation:
- CueClassifier: Assigns passthrough/theme/main roles to cues
- Canonicalizer: Groups repeated theme cues into canonical templates
- PromptEngine: Builds batch prompts
- LiteLLMBackendClient: Default backend client
- OutputProcessor: Validates raw backend responses
- BatchScheduler: Runs batches through a bounded worker pool
- SubtitleTranslationPipeline: Orchestrates the complete flow
"""

from .classifier import CueClassifier, CueClassification, CueRole, ClassificationStats
from .canonicalizer import (
    ThemeSignatureGroup,
    ThemeDeduplication,
    canonicalize_cue,
    compute_signature,
    deduplicate_theme_cues,
)
from .prompt_engine import PromptEngine, PromptItem, MAIN_KIND, THEME_KIND
from .llm_gateway import BackendClient, LiteLLMBackendClient, GatewayFactory, validate_api_key
from .output_processor import OutputProcessor
from .validator import ValidationReport, sanitize_batch_response, validate_translation
from .batch_scheduler import BatchScheduler, SchedulerConfig, PhaseResult, split_into_batches
from .pipeline import SubtitleTranslationPipeline, TranslateOptions

__all__ = [
    "CueClassifier",
    "CueClassification",
    "CueRole",
    "ClassificationStats",
    "ThemeSignatureGroup",
    "ThemeDeduplication",
    "canonicalize_cue",
    "compute_signature",
    "deduplicate_theme_cues",
    "PromptEngine",
    "PromptItem",
    "MAIN_KIND",
    "THEME_KIND",
    "BackendClient",
    "LiteLLMBackendClient",
    "GatewayFactory",
    "validate_api_key",
    "OutputProcessor",
    "ValidationReport",
    "sanitize_batch_response",
    "validate_translation",
    "BatchScheduler",
    "SchedulerConfig",
    "PhaseResult",
    "split_into_batches",
    "SubtitleTranslationPipeline",
    "TranslateOptions",
]
