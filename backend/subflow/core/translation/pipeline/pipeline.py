"""Subtitle translation pipeline.

This module provides the SubtitleTranslationPipeline class that coordinates
all pipeline components for one subtitle file:

parse -> classify -> theme (memory, then LLM) -> main batches -> validate -> reconstruct
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

from subflow.config import settings
from subflow.core.memory import (
    TranslationMemory,
    TranslationMemoryEntry,
    build_memory_key,
    get_memory_scope_key,
)
from subflow.core.subtitles.contracts import SubtitleParser, SubtitleReconstructor
from ..cancellation import CancellationToken, is_cancelled
from ..errors import PlaceholderMismatchError
from ..models.cue import Cue, SubtitleFile, TranslatedCue
from ..models.response import TokenUsage
from ..models.result import (
    BatchProgressInfo,
    PipelinePhase,
    PipelineResult,
    PipelineStatus,
)
from .batch_scheduler import (
    BatchScheduler,
    ProgressCallback,
    SchedulerConfig,
)
from .canonicalizer import ThemeSignatureGroup, deduplicate_theme_cues
from .classifier import CueClassifier
from .llm_gateway import BackendClient
from .prompt_engine import MAIN_KIND, THEME_KIND, PromptEngine, PromptItem
from .validator import validate_translation

logger = logging.getLogger(__name__)

ApiKeyResolver = Callable[[str], Optional[str]]

# Progress milestones (percent)
PROGRESS_START = 5
PROGRESS_PARSED = 10
PROGRESS_CLASSIFIED = 15
PROGRESS_THEME_DONE = 40
PROGRESS_MAIN_DONE = 85
PROGRESS_VALIDATED = 90
PROGRESS_DONE = 100


@dataclass
class TranslateOptions:
    """Per-run options for SubtitleTranslationPipeline.translate."""

    batch_count: int = field(default_factory=lambda: settings.default_batch_count)
    batch_concurrency: int = field(default_factory=lambda: settings.default_batch_concurrency)
    token: Optional[CancellationToken] = None
    on_progress: Optional[ProgressCallback] = None
    run_id: Optional[str] = None
    log_context: Dict[str, str] = field(default_factory=dict)


@dataclass
class _ThemeOutcome:
    """Theme resolution result for one run."""

    translated: List[TranslatedCue] = field(default_factory=list)
    fallback: List[Cue] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    cache_hits: int = 0
    llm_groups: int = 0
    group_count: int = 0
    error: Optional[str] = None
    cancelled: bool = False


class SubtitleTranslationPipeline:
    """Main orchestrator for translating one subtitle file.

    Coordinates the flow:
    Parser -> CueClassifier -> Theme dedup/memory -> BatchScheduler -> Validator -> Reconstructor

    Supports:
    - Theme/lyric deduplication with a persistent translation memory
    - Bounded-concurrency batch translation
    - Cooperative cancellation and progress reporting
    - Prompt preview for token counting
    """

    def __init__(
        self,
        parser: SubtitleParser,
        reconstructor: SubtitleReconstructor,
        client: BackendClient,
        memory: Optional[TranslationMemory] = None,
        api_key_resolver: Optional[ApiKeyResolver] = None,
        cue_classifier: Optional[CueClassifier] = None,
    ):
        """Initialize the pipeline.

        Args:
            parser: Subtitle format parser
            reconstructor: Subtitle format reconstructor
            client: Backend client used for every batch
            memory: Translation memory for theme templates (None disables it)
            api_key_resolver: Maps a provider to its API key (defaults to settings)
            cue_classifier: Classifier override
        """
        self.parser = parser
        self.reconstructor = reconstructor
        self.client = client
        self.memory = memory
        self.api_key_resolver = api_key_resolver or settings.get_api_key
        self.classifier = cue_classifier or CueClassifier()
        self.scheduler = BatchScheduler(client)

    async def translate(
        self,
        file: SubtitleFile,
        provider: str,
        model: str,
        source_lang: str,
        target_lang: str,
        options: Optional[TranslateOptions] = None,
    ) -> PipelineResult:
        """Translate a subtitle file end to end.

        Expected failures are returned as results, never raised.

        Args:
            file: Subtitle file to translate
            provider: Backend provider name
            model: Model identifier
            source_lang: Source language code (or ``auto``)
            target_lang: Target language code
            options: Batching, cancellation and progress options

        Returns:
            PipelineResult with status success, error or cancelled
        """
        touches: List["asyncio.Task[None]"] = []
        try:
            return await self._translate(
                file,
                provider,
                model,
                source_lang,
                target_lang,
                options or TranslateOptions(),
                touches,
            )
        finally:
            # Hit-count updates run alongside later phases but finish within the run
            if touches:
                await asyncio.gather(*touches, return_exceptions=True)

    async def _translate(
        self,
        file: SubtitleFile,
        provider: str,
        model: str,
        source_lang: str,
        target_lang: str,
        options: TranslateOptions,
        touches: List["asyncio.Task[None]"],
    ) -> PipelineResult:
        token = options.token
        log_context = {
            "provider": provider,
            "model": model,
            "run_id": options.run_id or "n/a",
            **options.log_context,
        }

        def report(progress: int, phase: PipelinePhase, current: int = 0, total: int = 0) -> None:
            if options.on_progress is not None:
                options.on_progress(
                    BatchProgressInfo(
                        progress=progress,
                        current_batch=current,
                        total_batches=total,
                        phase=phase,
                    )
                )

        # Pre-check
        if is_cancelled(token):
            return PipelineResult.cancelled_result(file)
        api_key = self.api_key_resolver(provider)
        if not api_key:
            return PipelineResult.failed(file, f"No API key configured for {provider}.")
        if not model:
            return PipelineResult.failed(file, "No model selected.")

        logger.info(f"Translation started: file={file.name or file.path} {log_context}")
        report(PROGRESS_START, PipelinePhase.START)

        # Parse
        parsed = self.parser.parse(file.content)
        if parsed is None:
            return PipelineResult.failed(file, "Could not parse subtitle file. Unsupported format.")
        if not parsed.cues:
            return PipelineResult.failed(file, "No subtitle cues found in file.")
        if is_cancelled(token):
            return PipelineResult.cancelled_result(file)

        report(PROGRESS_PARSED, PipelinePhase.PARSE)

        # Classify
        classification = self.classifier.classify(parsed.cues)
        stats = classification.stats
        logger.info(
            f"Prepared cues: {stats.theme_cues + stats.main_cues}/{stats.total_cues} translatable "
            f"({stats.theme_cues} theme), skipped {stats.passthrough_cues} "
            f"({stats.skipped_mask_cues} mask). Estimated text reduction: "
            f"{stats.estimated_reduction_pct}% {log_context}"
        )
        run_stats = stats.to_dict()

        if classification.all_passthrough:
            report(PROGRESS_DONE, PipelinePhase.DONE)
            return PipelineResult(
                original_file=file,
                status=PipelineStatus.SUCCESS,
                translated_content=file.content,
                translated_cues=classification.passthrough_translations(),
                stats=run_stats,
            )

        if is_cancelled(token):
            return PipelineResult.cancelled_result(file)
        report(PROGRESS_CLASSIFIED, PipelinePhase.CLASSIFY)

        base_config = SchedulerConfig(
            provider=provider,
            model=model,
            api_key=api_key,
            source_lang=source_lang,
            target_lang=target_lang,
            batch_count=max(1, options.batch_count),
            batch_concurrency=max(1, options.batch_concurrency),
            temperature=settings.translation_temperature,
            max_tokens=settings.translation_max_tokens,
            log_context=log_context,
        )

        # Theme resolution
        theme = await self._resolve_themes(
            file, classification.theme_candidates, base_config, token, options.on_progress, touches
        )
        usage = theme.usage
        run_stats.update(
            theme_groups=theme.group_count,
            theme_cache_hits=theme.cache_hits,
            theme_llm_groups=theme.llm_groups,
            theme_fallback_cues=len(theme.fallback),
        )
        if theme.cancelled:
            return PipelineResult.cancelled_result(file)
        if theme.error:
            return PipelineResult.failed(file, theme.error, usage=usage)

        # Main translation
        positions = {cue.id: index for index, cue in enumerate(parsed.cues)}
        main_cues = sorted(
            classification.main + theme.fallback, key=lambda cue: positions[cue.id]
        )
        main_start = PROGRESS_THEME_DONE if theme.llm_groups else PROGRESS_CLASSIFIED

        if is_cancelled(token):
            return PipelineResult.cancelled_result(file)

        main_translated: List[TranslatedCue] = []
        if main_cues:
            config = _phase_config(
                base_config,
                kind=MAIN_KIND,
                allow_partial=False,
                phase=PipelinePhase.MAIN,
                progress_start=main_start,
                progress_end=PROGRESS_MAIN_DONE,
            )
            phase = await self.scheduler.run(
                [PromptItem(id=cue.id, text=cue.text_skeleton) for cue in main_cues],
                config,
                token=token,
                on_progress=options.on_progress,
                allow_empty={cue.id for cue in main_cues if not cue.visible_text().strip()},
            )
            usage = usage + phase.usage
            run_stats["main_batches"] = phase.total_batches

            if phase.cancelled:
                return PipelineResult.cancelled_result(file)
            if phase.error:
                logger.error(f"Translation failed: {phase.error} {log_context}")
                return PipelineResult.failed(
                    file, phase.error, truncated=phase.truncated, usage=usage
                )
            main_translated = phase.cues

        if is_cancelled(token):
            return PipelineResult.cancelled_result(file)
        report(PROGRESS_MAIN_DONE, PipelinePhase.MAIN)

        # Validate
        all_translated = (
            classification.passthrough_translations() + theme.translated + main_translated
        )
        validation = validate_translation(parsed.cues, all_translated)
        warning: Optional[str] = None
        if not validation.valid:
            warning = f"Warning: {len(validation.issues)} validation issue(s) detected"
            for message in validation.errors[:10]:
                logger.warning(f"Validation: {message} {log_context}")

        if is_cancelled(token):
            return PipelineResult.cancelled_result(file)
        report(PROGRESS_VALIDATED, PipelinePhase.VALIDATE)

        # Reconstruct
        ordered = sorted(all_translated, key=lambda cue: positions.get(cue.id, len(positions)))
        reconstructed = self.reconstructor.reconstruct(parsed, ordered, file.content)

        report(PROGRESS_DONE, PipelinePhase.DONE)
        logger.info(
            f"Translation finished: {len(ordered)} cue(s), "
            f"{usage.total_tokens} token(s){', with warnings' if warning else ''} {log_context}"
        )

        return PipelineResult(
            original_file=file,
            status=PipelineStatus.SUCCESS,
            translated_content=reconstructed.content,
            translated_cues=ordered,
            warning=warning,
            usage=usage if not usage.is_empty else None,
            stats=run_stats,
        )

    async def _resolve_themes(
        self,
        file: SubtitleFile,
        theme_cues: List[Cue],
        base_config: SchedulerConfig,
        token: Optional[CancellationToken],
        on_progress: Optional[ProgressCallback],
        touches: List["asyncio.Task[None]"],
    ) -> _ThemeOutcome:
        """Translate theme candidates through the memory and then the backend."""
        outcome = _ThemeOutcome()
        if not theme_cues:
            return outcome

        dedup = deduplicate_theme_cues(theme_cues)
        outcome.fallback.extend(dedup.excluded)
        outcome.group_count = len(dedup.groups)
        if not dedup.groups:
            return outcome

        log_context = base_config.log_context
        logger.info(
            f"Theme cues: {dedup.occurrence_count} occurrence(s) in "
            f"{len(dedup.groups)} group(s), {len(dedup.excluded)} excluded {log_context}"
        )

        scope = get_memory_scope_key(file.path)
        keys = {
            group.group_id: build_memory_key(
                base_config.source_lang,
                base_config.target_lang,
                base_config.provider,
                base_config.model,
                group.signature,
            )
            for group in dedup.groups
        }

        # Memory lookup
        misses: List[ThemeSignatureGroup] = list(dedup.groups)
        if self.memory is not None:
            hits = await self.memory.lookup(scope, keys.values())
            misses = []
            hit_keys: List[str] = []
            for group in dedup.groups:
                entry = hits.get(keys[group.group_id])
                if entry is None:
                    misses.append(group)
                    continue
                try:
                    outcome.translated.extend(group.expand(entry.translated_canonical_skeleton))
                except PlaceholderMismatchError as e:
                    logger.warning(f"Ignoring remembered translation: {e} {log_context}")
                    misses.append(group)
                    continue
                hit_keys.append(keys[group.group_id])

            outcome.cache_hits = len(hit_keys)
            if hit_keys:
                touches.append(self.memory.touch_in_background(scope, hit_keys))

        if not misses:
            return outcome
        if is_cancelled(token):
            outcome.cancelled = True
            return outcome

        # Backend translation of the remaining templates
        outcome.llm_groups = len(misses)
        config = _phase_config(
            base_config,
            kind=THEME_KIND,
            allow_partial=True,
            phase=PipelinePhase.THEME_LLM,
            progress_start=PROGRESS_CLASSIFIED,
            progress_end=PROGRESS_THEME_DONE,
        )
        phase = await self.scheduler.run(
            [PromptItem(id=group.group_id, text=group.template) for group in misses],
            config,
            token=token,
            on_progress=on_progress,
        )
        outcome.usage = phase.usage

        if phase.cancelled:
            outcome.cancelled = True
            return outcome
        if phase.worker_failure:
            outcome.error = phase.error
            return outcome
        for batch_error in phase.batch_errors:
            logger.warning(f"Theme batch failed, falling back to main phase: {batch_error} {log_context}")

        returned = {cue.id: cue.translated_text for cue in phase.cues}
        new_entries: Dict[str, TranslationMemoryEntry] = {}
        for group in misses:
            translated_template = returned.get(group.group_id)
            if translated_template is None:
                outcome.fallback.extend(group.cues)
                continue
            try:
                outcome.translated.extend(group.expand(translated_template))
            except PlaceholderMismatchError as e:
                logger.warning(f"{e}; translating its cues individually {log_context}")
                outcome.fallback.extend(group.cues)
                continue
            new_entries[keys[group.group_id]] = TranslationMemoryEntry(
                signature=group.signature,
                source_language=base_config.source_lang,
                target_language=base_config.target_lang,
                provider=base_config.provider,
                model=base_config.model,
                translated_canonical_skeleton=translated_template,
            )

        if self.memory is not None and new_entries:
            await self.memory.upsert(scope, new_entries)

        return outcome

    def preview_prompt(self, content: str, source_lang: str, target_lang: str) -> str:
        """Full prompt text a single-batch run would send, for token counting.

        Args:
            content: Raw subtitle content
            source_lang: Source language code
            target_lang: Target language code

        Returns:
            System and user prompt text; system prompt plus the raw content
            when the content cannot be parsed
        """
        parsed = self.parser.parse(content)
        if parsed is None:
            return f"{PromptEngine.get_system_prompt(MAIN_KIND)}\n\n{content}"

        classification = self.classifier.classify(parsed.cues)
        skipped = {cue.id for cue in classification.passthrough}
        translatable = [cue for cue in parsed.cues if cue.id not in skipped]
        bundle = PromptEngine.build(
            [PromptItem(id=cue.id, text=cue.text_skeleton) for cue in translatable],
            source_lang,
            target_lang,
            kind=MAIN_KIND,
        )
        return bundle.full_text()


def _phase_config(base: SchedulerConfig, *, phase: PipelinePhase, **overrides) -> SchedulerConfig:
    log_context = {**base.log_context, "phase": phase.value}
    return replace(base, phase=phase, log_context=log_context, **overrides)
