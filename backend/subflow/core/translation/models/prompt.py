"""Prompt bundle models.

This module defines the prompt data structures handed to the backend client.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Message(BaseModel):
    """Single message in LLM conversation."""

    role: str = Field(
        ..., description="Message role: 'system', 'user', or 'assistant'"
    )
    content: str = Field(..., description="Message content")


class PromptBundle(BaseModel):
    """Complete prompt package for one batch.

    This is the output of the PromptEngine and the input of a backend call.
    """

    messages: List[Message] = Field(..., description="Conversation messages")

    # Model configuration
    temperature: float = Field(
        default=0.3, ge=0.0, le=2.0, description="Sampling temperature"
    )
    max_tokens: Optional[int] = Field(
        default=None, gt=0, description="Maximum tokens in response"
    )

    # Metadata for logging and debugging
    kind: str = Field(default="main", description="Cue set kind: 'main' or 'theme'")
    item_ids: List[str] = Field(default_factory=list, description="Ids sent in this prompt")

    @property
    def system_prompt(self) -> Optional[str]:
        """Extract system prompt from messages."""
        for msg in self.messages:
            if msg.role == "system":
                return msg.content
        return None

    @property
    def user_prompt(self) -> Optional[str]:
        """Extract user prompt from messages."""
        for msg in self.messages:
            if msg.role == "user":
                return msg.content
        return None

    def full_text(self) -> str:
        """System and user prompt joined, as used for token counting."""
        return f"{self.system_prompt or ''}\n\n{self.user_prompt or ''}"

    def estimate_tokens(self) -> int:
        """Estimate total input tokens.

        Uses a simple heuristic of ~3 characters per token for mixed content.

        Returns:
            Estimated token count
        """
        total_chars = sum(len(m.content) for m in self.messages)
        return total_chars // 3
