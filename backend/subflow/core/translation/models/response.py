"""Backend response models.

This module defines the request/response contract of the text-generation
backend client, providing a provider-agnostic representation.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Token consumption details."""

    prompt_tokens: int = Field(default=0, description="Tokens in the prompt")
    completion_tokens: int = Field(default=0, description="Tokens in the completion")
    total_tokens: int = Field(default=0, description="Total tokens used")

    def model_post_init(self, __context: Any) -> None:
        """Calculate total if not provided."""
        if not self.total_tokens and (self.prompt_tokens or self.completion_tokens):
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @property
    def is_empty(self) -> bool:
        return self.total_tokens == 0

    def estimate_cost_usd(
        self,
        input_cost_per_million: float = 3.0,
        output_cost_per_million: float = 15.0,
    ) -> float:
        """Estimate cost in USD based on token usage.

        Args:
            input_cost_per_million: Cost per million input tokens
            output_cost_per_million: Cost per million output tokens

        Returns:
            Estimated cost in USD
        """
        input_cost = (self.prompt_tokens / 1_000_000) * input_cost_per_million
        output_cost = (self.completion_tokens / 1_000_000) * output_cost_per_million
        return input_cost + output_cost


class BackendRequest(BaseModel):
    """Everything the backend client needs for one generation call."""

    system_prompt: str
    user_prompt: str
    provider: str
    model: str
    api_key: str = Field(..., repr=False)
    response_mode: Literal["structured", "text"] = "structured"
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)


class BackendResponse(BaseModel):
    """Outcome of one backend call.

    Exactly one of ``content``, ``error`` or ``cancelled`` describes the
    outcome; ``truncated`` may accompany content cut off by a length limit.
    """

    content: Optional[str] = Field(default=None, description="Generated text")
    truncated: bool = Field(default=False, description="Cut off by a length limit")
    finish_reason: Optional[str] = Field(default=None)
    usage: Optional[TokenUsage] = Field(default=None)
    error: Optional[str] = Field(default=None, description="Provider or network error")
    cancelled: bool = Field(default=False)

    # Timing
    latency_ms: int = Field(default=0, description="Response latency in milliseconds")
    timestamp: datetime = Field(
        default_factory=datetime.utcnow, description="Response timestamp"
    )

    # Raw response for debugging
    raw_response: Optional[Dict[str, Any]] = Field(
        default=None, description="Raw provider response for debugging", repr=False
    )
