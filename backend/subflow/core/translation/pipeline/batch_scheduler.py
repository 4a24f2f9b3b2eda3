"""Batch scheduler.

Translates a list of prompt items by splitting them into contiguous batches
and running the batches through a fixed-size pool of asyncio workers. Every
batch outcome is classified (cancelled, backend error, truncated, empty,
unparsable, success with unanswered ids) and the outcomes of a phase are
merged back in batch order.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, TypeVar

from ..cancellation import CancellationToken, is_cancellation_message, is_cancelled
from ..errors import ResponseFormatError
from ..models.cue import TranslatedCue
from ..models.response import BackendRequest, TokenUsage
from ..models.result import CANCELLED_MESSAGE, BatchProgressInfo, PipelinePhase
from .llm_gateway import BackendClient
from .output_processor import OutputProcessor
from .prompt_engine import MAIN_KIND, PromptEngine, PromptItem
from .validator import sanitize_batch_response

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[BatchProgressInfo], None]

DEFAULT_BATCH_CONCURRENCY = 2


def split_into_batches(items: Sequence[T], batch_count: int) -> List[List[T]]:
    """Split items into at most ``batch_count`` contiguous batches.

    Args:
        items: Items to split
        batch_count: Number of batches to create (1 = no splitting)

    Returns:
        List of batches; a single (possibly empty) batch when not splitting
    """
    if batch_count <= 1 or not items:
        return [list(items)]

    per_batch = math.ceil(len(items) / batch_count)
    return [list(items[i:i + per_batch]) for i in range(0, len(items), per_batch)]


@dataclass
class SchedulerConfig:
    """Model selection and batching parameters for one phase."""

    provider: str
    model: str
    api_key: str
    source_lang: str
    target_lang: str
    kind: str = MAIN_KIND
    batch_count: int = 1
    batch_concurrency: int = DEFAULT_BATCH_CONCURRENCY
    allow_partial: bool = False
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    phase: PipelinePhase = PipelinePhase.MAIN
    progress_start: float = 0.0
    progress_end: float = 100.0
    log_context: Dict[str, str] = field(default_factory=dict)


@dataclass
class BatchResult:
    """Outcome of one batch."""

    batch_index: int
    cues: List[TranslatedCue] = field(default_factory=list)
    usage: Optional[TokenUsage] = None
    error: Optional[str] = None
    truncated: bool = False
    cancelled: bool = False
    failed_ids: List[str] = field(default_factory=list)


@dataclass
class PhaseResult:
    """Merged outcome of every batch of a phase."""

    cues: List[TranslatedCue] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    error: Optional[str] = None
    truncated: bool = False
    cancelled: bool = False
    worker_failure: bool = False
    total_batches: int = 0
    batch_errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


class BatchScheduler:
    """Runs prompt batches through a bounded worker pool.

    Supports:
    - Contiguous batch splitting (batch_count = 1 disables it)
    - Bounded concurrency with cooperative cancellation
    - Strict mode (first batch error fails the phase) and partial mode
      (failed ids are returned for rerouting)
    """

    def __init__(
        self,
        client: BackendClient,
        output_processor: Optional[OutputProcessor] = None,
    ):
        self.client = client
        self.output_processor = output_processor or OutputProcessor()

    async def run(
        self,
        items: Sequence[PromptItem],
        config: SchedulerConfig,
        *,
        token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
        allow_empty: Optional[Set[str]] = None,
    ) -> PhaseResult:
        """Translate prompt items in batches.

        Args:
            items: Prompt items in output order
            config: Phase configuration
            token: Run cancellation token
            on_progress: Called after each batch completes
            allow_empty: Item ids for which an empty translation is legal

        Returns:
            PhaseResult with cues in input order
        """
        if not items:
            return PhaseResult()

        batches = split_into_batches(items, max(1, config.batch_count))
        total = len(batches)
        worker_count = min(max(1, config.batch_concurrency), total)

        logger.info(
            f"Scheduling {len(items)} {config.kind} item(s) in {total} batch(es) "
            f"with {worker_count} worker(s), allow_partial={config.allow_partial} {config.log_context}"
        )

        results: List[BatchResult] = []
        next_index = 0
        completed = 0
        stop_scheduling = False

        async def worker() -> None:
            nonlocal next_index, completed, stop_scheduling
            while not stop_scheduling:
                if is_cancelled(token):
                    stop_scheduling = True
                    return

                batch_index = next_index
                if batch_index >= total:
                    return
                next_index += 1

                result = await self._translate_batch(
                    batches[batch_index], batch_index, total, config, token, allow_empty
                )
                results.append(result)

                completed += 1
                self._report_progress(on_progress, config, completed, total)

                if result.cancelled or is_cancelled(token):
                    stop_scheduling = True

        outcomes = await asyncio.gather(
            *(worker() for _ in range(worker_count)), return_exceptions=True
        )

        usage = sum((r.usage for r in results if r.usage), TokenUsage())

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.error(f"Batch worker failed: {outcome!r} {config.log_context}")
                return PhaseResult(
                    error=f"Batch worker failed: {outcome}",
                    worker_failure=True,
                    usage=usage,
                    total_batches=total,
                )

        if is_cancelled(token) or any(r.cancelled for r in results):
            return PhaseResult(
                cancelled=True, error=CANCELLED_MESSAGE, usage=usage, total_batches=total
            )

        if len(results) != total:
            return PhaseResult(
                error=f"Batch translation incomplete: {len(results)}/{total} finished",
                usage=usage,
                total_batches=total,
            )

        results.sort(key=lambda r: r.batch_index)
        return self._merge(results, batches, config, usage)

    def _merge(
        self,
        results: List[BatchResult],
        batches: List[List[PromptItem]],
        config: SchedulerConfig,
        usage: TokenUsage,
    ) -> PhaseResult:
        phase = PhaseResult(usage=usage, total_batches=len(batches))

        for result in results:
            if result.error:
                phase.batch_errors.append(result.error)
                if not config.allow_partial:
                    phase.error = result.error
                    phase.truncated = result.truncated
                    phase.cues = []
                    phase.failed_ids = []
                    return phase
                phase.truncated = phase.truncated or result.truncated
                phase.failed_ids.extend(item.id for item in batches[result.batch_index])
                continue

            phase.cues.extend(result.cues)
            phase.failed_ids.extend(result.failed_ids)

        return phase

    def _report_progress(
        self,
        on_progress: Optional[ProgressCallback],
        config: SchedulerConfig,
        completed: int,
        total: int,
    ) -> None:
        if on_progress is None:
            return
        span = config.progress_end - config.progress_start
        progress = config.progress_start + (completed / total) * span
        on_progress(
            BatchProgressInfo(
                progress=round(progress),
                current_batch=completed,
                total_batches=total,
                phase=config.phase,
            )
        )

    async def _translate_batch(
        self,
        batch: List[PromptItem],
        batch_index: int,
        total: int,
        config: SchedulerConfig,
        token: Optional[CancellationToken],
        allow_empty: Optional[Set[str]],
    ) -> BatchResult:
        """Translate and classify one batch."""
        label = f"Batch {batch_index + 1}/{total}"
        log_context = {**config.log_context, "batch": str(batch_index + 1), "kind": config.kind}

        if is_cancelled(token):
            return BatchResult(batch_index, error=CANCELLED_MESSAGE, cancelled=True)

        bundle = PromptEngine.build(
            batch,
            config.source_lang,
            config.target_lang,
            kind=config.kind,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        request = BackendRequest(
            system_prompt=bundle.system_prompt or "",
            user_prompt=bundle.user_prompt or "",
            provider=config.provider,
            model=config.model,
            api_key=config.api_key,
            response_mode="structured",
            temperature=bundle.temperature,
            max_tokens=bundle.max_tokens,
        )
        logger.debug(
            f"{label}: sending {len(bundle.item_ids)} {bundle.kind} item(s), "
            f"~{bundle.estimate_tokens()} input token(s) {log_context}"
        )

        response = await self.client.call(request, token)

        if is_cancelled(token) or response.cancelled or is_cancellation_message(response.error):
            return BatchResult(
                batch_index, error=CANCELLED_MESSAGE, cancelled=True, usage=response.usage
            )

        if response.error:
            logger.error(f"{label} failed: {response.error} {log_context}")
            return BatchResult(
                batch_index, error=f"{label} failed: {response.error}", usage=response.usage
            )

        if response.truncated:
            logger.warning(
                f"{label}: response truncated (finish_reason: {response.finish_reason}). "
                f"Try increasing the number of batches. {log_context}"
            )
            return BatchResult(
                batch_index,
                error=f"{label}: Response truncated (increase batch count)",
                truncated=True,
                usage=response.usage,
            )

        if not response.content or not response.content.strip():
            logger.error(f"{label}: {config.provider} returned empty content {log_context}")
            return BatchResult(
                batch_index,
                error=f"{label}: {config.provider} returned empty content",
                usage=response.usage,
            )

        try:
            parsed = self.output_processor.parse(response.content, config.provider)
        except ResponseFormatError as e:
            logger.error(f"{label}: failed to parse {config.provider} response ({e}) {log_context}")
            return BatchResult(
                batch_index,
                error=f"{label}: Failed to parse {config.provider} response ({e})",
                usage=response.usage,
            )

        requested = [item.id for item in batch]
        checked = sanitize_batch_response(requested, parsed, allow_empty=allow_empty)

        if checked.ignored_ids:
            logger.warning(
                f"{label}: ignored {len(checked.ignored_ids)} cue(s) with unexpected or "
                f"repeated IDs: {', '.join(checked.ignored_ids[:5]) or '(none)'} {log_context}"
            )
        if checked.missing_ids:
            logger.warning(
                f"{label}: {len(checked.missing_ids)} requested cue(s) unanswered: "
                f"{', '.join(checked.missing_ids[:5])} {log_context}"
            )

        return BatchResult(
            batch_index,
            cues=checked.accepted,
            usage=response.usage,
            failed_ids=checked.missing_ids,
        )
