"""Cooperative cancellation tokens.

A token is created per run (or per model job) and passed explicitly into
every suspendable call. Cancelling never kills in-flight work; callers check
the token and stop scheduling new work.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """Shared cancellation flag for one translation run."""

    def __init__(self, name: Optional[str] = None):
        self.name = name
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation. Repeated calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.info(f"Cancellation requested: token={self.name or 'anonymous'}, reason={reason}")

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancellationToken(name={self.name!r}, cancelled={self.cancelled})"


def is_cancelled(token: Optional[CancellationToken]) -> bool:
    """Check an optional token."""
    return token is not None and token.cancelled


def is_cancellation_message(error: Optional[str]) -> bool:
    """Whether a backend error message describes a cancellation."""
    return bool(error) and "cancel" in error.lower()
