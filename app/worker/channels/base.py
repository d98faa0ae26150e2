"""Shared result type for channel adapters."""

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class ChannelResult:
    """Outcome of a single channel send."""

    channel: str
    success: bool
    message_id: str | None = None
    error: str | None = None


def mock_message_id() -> str:
    """Message id returned by channels running in mock mode."""
    return f"mock_{int(time.time() * 1000)}"
