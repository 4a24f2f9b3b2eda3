"""Backend client gateway for text generation.

This module provides the abstract backend client contract consumed by the
batch scheduler, along with the default implementation using LiteLLM.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from litellm import acompletion

from ..cancellation import CancellationToken, is_cancelled
from ..models.response import BackendRequest, BackendResponse, TokenUsage

logger = logging.getLogger(__name__)


class BackendClient(ABC):
    """Abstract client for a text-generation backend.

    Implementations never raise for provider or network failures; they
    report them through ``BackendResponse.error`` instead.
    """

    @abstractmethod
    async def call(
        self,
        request: BackendRequest,
        token: Optional[CancellationToken] = None,
    ) -> BackendResponse:
        """Make one generation call.

        Args:
            request: Prompts, model selection and credentials
            token: Cancellation token forwarded from the run

        Returns:
            BackendResponse describing content, error or cancellation
        """
        pass


class LiteLLMBackendClient(BackendClient):
    """Backend client for all providers using LiteLLM."""

    # LiteLLM model prefixes per provider
    PROVIDER_PREFIXES = {
        "openai": "",
        "anthropic": "anthropic/",
        "google": "gemini/",
        "gemini": "gemini/",
        "openrouter": "openrouter/",
        "deepseek": "deepseek/",
    }

    def __init__(self, base_urls: Optional[Dict[str, str]] = None):
        """Initialize LiteLLM client.

        Args:
            base_urls: Optional custom base URL per provider for compatible APIs
        """
        self._base_urls = base_urls or {}

    @classmethod
    def get_litellm_model(cls, provider: str, model: str) -> str:
        """Get model string in LiteLLM format (provider/model)."""
        provider = provider.lower()
        prefix = cls.PROVIDER_PREFIXES.get(provider, f"{provider}/")
        if not prefix or model.startswith(prefix):
            return model
        return f"{prefix}{model}"

    def build_kwargs(self, request: BackendRequest) -> Dict[str, Any]:
        """Convert a request to kwargs for litellm.acompletion()."""
        kwargs: Dict[str, Any] = {
            "model": self.get_litellm_model(request.provider, request.model),
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "api_key": request.api_key,
            "temperature": request.temperature,
        }

        if request.max_tokens:
            kwargs["max_tokens"] = request.max_tokens

        base_url = self._base_urls.get(request.provider.lower())
        if base_url:
            kwargs["api_base"] = base_url

        if request.response_mode == "structured":
            kwargs["response_format"] = {"type": "json_object"}

        return kwargs

    async def call(
        self,
        request: BackendRequest,
        token: Optional[CancellationToken] = None,
    ) -> BackendResponse:
        """Make LLM API call using LiteLLM, abandoning it on cancellation."""
        if is_cancelled(token):
            return BackendResponse(cancelled=True)

        start_time = time.time()
        kwargs = self.build_kwargs(request)

        logger.info(
            f"[LLM Gateway] Calling LiteLLM: model={kwargs['model']}, provider={request.provider}, "
            f"temperature={request.temperature}, max_tokens={request.max_tokens}"
        )

        request_task = asyncio.ensure_future(acompletion(**kwargs))
        cancel_task = asyncio.ensure_future(token.wait()) if token is not None else None

        try:
            if cancel_task is None:
                await asyncio.wait({request_task})
            else:
                await asyncio.wait(
                    {request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
                )
        finally:
            if cancel_task is not None:
                cancel_task.cancel()
            if not request_task.done():
                request_task.cancel()
                request_task.add_done_callback(_discard_result)

        if not request_task.done() or request_task.cancelled():
            logger.info(f"[LLM Gateway] Request abandoned after cancellation: model={request.model}")
            return BackendResponse(cancelled=True)

        latency_ms = int((time.time() - start_time) * 1000)

        error = request_task.exception()
        if error is not None:
            logger.error(f"[LLM Gateway] LLM call failed: model={request.model}, error={error}")
            return BackendResponse(error=str(error), latency_ms=latency_ms)

        return self._to_backend_response(request_task.result(), latency_ms)

    def _to_backend_response(self, response: Any, latency_ms: int) -> BackendResponse:
        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice is not None else None
        finish_reason = getattr(choice, "finish_reason", None) if choice is not None else None

        usage = None
        if getattr(response, "usage", None):
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        logger.info(
            f"[LLM Gateway] Response: finish_reason={finish_reason}, "
            f"tokens={usage.total_tokens if usage else 0}, latency={latency_ms}ms"
        )

        return BackendResponse(
            content=content,
            truncated=finish_reason == "length",
            finish_reason=finish_reason,
            usage=usage,
            latency_ms=latency_ms,
            raw_response=response.model_dump() if hasattr(response, "model_dump") else None,
        )


def _discard_result(task: "asyncio.Future[Any]") -> None:
    # Retrieve the outcome of an abandoned request so it is not reported as
    # "exception was never retrieved"
    if not task.cancelled():
        task.exception()


class GatewayFactory:
    """Factory for creating backend clients."""

    # Providers routed to LiteLLM, with optional default base URLs
    PROVIDER_CONFIGS: Dict[str, Dict[str, Optional[str]]] = {
        "openai": {"base_url": None},
        "anthropic": {"base_url": None},
        "google": {"base_url": None},
        "openrouter": {"base_url": None},
        "deepseek": {"base_url": "https://api.deepseek.com/v1"},
    }

    @classmethod
    def create(cls, base_urls: Optional[Dict[str, str]] = None) -> BackendClient:
        """Create the default backend client.

        Args:
            base_urls: Per-provider base URL overrides

        Returns:
            Configured BackendClient instance
        """
        urls = {
            provider: config["base_url"]
            for provider, config in cls.PROVIDER_CONFIGS.items()
            if config["base_url"]
        }
        urls.update(base_urls or {})
        return LiteLLMBackendClient(base_urls=urls)


def validate_api_key(provider: str, api_key: Optional[str]) -> tuple[bool, Optional[str]]:
    """Sanity-check the format of an API key before any network call.

    Args:
        provider: Provider name
        api_key: Key to check

    Returns:
        Tuple of (valid, error message)
    """
    if not api_key or not api_key.strip():
        return False, "API key is empty"

    provider = provider.lower()
    if provider == "anthropic" and not api_key.startswith("sk-ant-"):
        return False, 'Anthropic API keys should start with "sk-ant-"'
    if provider == "openai" and not api_key.startswith("sk-"):
        return False, 'OpenAI API keys should start with "sk-"'

    return True, None
