"""Sync failure events for Care Sync Service.

Remote failures never reach the caller of the engine. They are reported
here instead so they can be logged, counted or inspected in tests.
"""

from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from logger_config import setup_logger, sync_context
from schemas import utc_now

logger = setup_logger(__name__, 'sync.log')


class SyncEvent(BaseModel):
    """A failure that was caught and absorbed during sync."""

    stage: str = Field(..., description="fetch, decode or push")
    kind: str = Field(..., description="Record kind name, e.g. 'tasks'")
    user_id: str
    error: str
    record_id: Optional[str] = None
    occurred_at: datetime = Field(default_factory=utc_now)


class SyncObserver(Protocol):
    def on_failure(self, event: SyncEvent) -> None:
        ...


class LoggingObserver:
    """Default observer: one warning line per absorbed failure."""

    def on_failure(self, event: SyncEvent) -> None:
        target = f" record={event.record_id}" if event.record_id else ""
        sync_context(logger, event.kind, event.user_id).warning(
            f"Sync {event.stage} failed{target}: {event.error}"
        )
