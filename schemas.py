"""Pydantic schemas for Care Sync Service.

Defines the two syncable record kinds (tasks and diary entries) and the
request/response schemas of the HTTP API.
IMPORTANT: every timestamp is a timezone-aware UTC datetime. Naive values
are interpreted as UTC on validation.
"""

import enum
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    return str(uuid.uuid4())


class TaskKind(str, enum.Enum):
    """Kinds of tasks shown in the app"""
    EVENT = "event"
    MEDICATION = "medication"


class Mood(str, enum.Enum):
    """Diary moods. Values match the rows already stored remotely."""
    NOT_GOOD = "notGood"
    OKAY = "okay"
    PERFECT = "perfect"


class SyncableRecord(BaseModel):
    """Fields shared by every record kind that takes part in sync.

    `id` is the merge key and never changes. `updated_at` must move forward
    on every mutation; use `touch()` rather than assigning it directly.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_record_id, description="Opaque unique record id")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last mutation time")
    deleted: bool = Field(default=False, description="Tombstone flag for deletions")

    def __init__(self, **data):
        # New records start with created_at == updated_at
        if "created_at" not in data or "updated_at" not in data:
            data.setdefault("created_at", utc_now())
            data.setdefault("updated_at", data["created_at"])
        super().__init__(**data)

    @field_validator("*", mode="after")
    @classmethod
    def _ensure_utc(cls, value):
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def touch(self) -> None:
        """Advance `updated_at` to now, strictly past its previous value."""
        now = utc_now()
        if now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now

    def mark_deleted(self) -> None:
        self.deleted = True
        self.touch()


class TaskItem(SyncableRecord):
    """A scheduled task (appointment, medication, errand)."""

    title: str
    notes: Optional[str] = None
    kind: TaskKind = TaskKind.EVENT
    is_completed: bool = False
    due_date: Optional[datetime] = None
    image_ref: Optional[str] = None
    audio_url: Optional[str] = None
    phone: Optional[str] = None
    notification_id: Optional[str] = None

    def mark_completed(self, completed: bool = True) -> None:
        self.is_completed = completed
        self.touch()


class DiaryEntry(SyncableRecord):
    """A diary entry with optional mood and media references."""

    date: datetime = Field(default_factory=utc_now)
    text: str
    mood: Optional[Mood] = None
    image_ref: Optional[str] = None
    video_url: Optional[str] = None
    audio_url: Optional[str] = None


# ---------------------------------------------------------------------------
# API request / response schemas
# ---------------------------------------------------------------------------

class TaskCreate(BaseModel):
    """Schema for creating a task."""

    title: str = Field(..., min_length=1, max_length=200, examples=["Call doctor"])
    notes: Optional[str] = None
    kind: TaskKind = TaskKind.EVENT
    due_date: Optional[datetime] = Field(
        None,
        description="When the task is scheduled (ISO 8601 format)",
        examples=["2026-10-26T15:00:00Z"]
    )
    image_ref: Optional[str] = None
    audio_url: Optional[str] = None
    phone: Optional[str] = Field(None, pattern=r'^\+?[0-9]{3,15}$')


class TaskUpdate(BaseModel):
    """Schema for updating a task. Only provided fields are changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    notes: Optional[str] = None
    kind: Optional[TaskKind] = None
    is_completed: Optional[bool] = None
    due_date: Optional[datetime] = None
    image_ref: Optional[str] = None
    audio_url: Optional[str] = None
    phone: Optional[str] = Field(None, pattern=r'^\+?[0-9]{3,15}$')


class DiaryEntryCreate(BaseModel):
    """Schema for creating a diary entry."""

    text: str = Field(..., min_length=1)
    date: Optional[datetime] = None
    mood: Optional[Mood] = None
    image_ref: Optional[str] = None
    video_url: Optional[str] = None
    audio_url: Optional[str] = None


class DiaryEntryUpdate(BaseModel):
    """Schema for updating a diary entry. Only provided fields are changed."""

    text: Optional[str] = Field(None, min_length=1)
    date: Optional[datetime] = None
    mood: Optional[Mood] = None
    image_ref: Optional[str] = None
    video_url: Optional[str] = None
    audio_url: Optional[str] = None


class SyncSummary(BaseModel):
    """Result of a sync request: visible record counts after the merge."""

    user_id: str
    tasks: int
    diary: int
    push_pending: bool
