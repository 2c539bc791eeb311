"""Consolidation configuration: policy enums and immutable config dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.config import Settings


class SessionStoreBackend(str, Enum):
    """Available persistence backends for session records."""

    MEMORY = "memory"
    SUPABASE = "supabase"


class CompletedSessionPolicy(str, Enum):
    """What to do with a chunk that arrives after the session was finalized."""

    REJECT = "reject"
    IGNORE = "ignore"


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and exponential backoff for collaborator calls.

    The delay before retry ``n`` (0-based) is ``base_delay_ms * 2**n``.
    """

    attempts: int = 3
    base_delay_ms: int = 1000

    @property
    def base_delay_seconds(self) -> float:
        return self.base_delay_ms / 1000


@dataclass(frozen=True)
class ConsolidationConfig:
    """Immutable configuration for the chunk consolidation engine.

    Defaults mirror the service's production behaviour (3 attempts with a
    one second base delay, completed sessions reject further chunks).
    """

    retry: RetryPolicy = field(default_factory=RetryPolicy)
    max_save_conflicts: int = 5
    completed_session_policy: CompletedSessionPolicy = CompletedSessionPolicy.REJECT

    @classmethod
    def from_settings(cls, settings: Settings) -> ConsolidationConfig:
        return cls(
            retry=RetryPolicy(
                attempts=settings.retry_attempts,
                base_delay_ms=settings.retry_base_delay_ms,
            ),
            max_save_conflicts=settings.max_save_conflicts,
            completed_session_policy=CompletedSessionPolicy(settings.completed_session_policy),
        )
