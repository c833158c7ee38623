"""Record kind configuration for Care Sync Service.

A RecordKind tells the engine where a kind lives locally (storage key),
where it lives remotely (table) and how to turn a record into a remote row
and back.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from operator import attrgetter
from typing import Any, Callable, Dict, List, Type

from schemas import DiaryEntry, SyncableRecord, TaskItem
from config import settings


@dataclass(frozen=True)
class RecordKind:
    name: str
    storage_key: str
    table: str
    model: Type[SyncableRecord]
    to_row: Callable[[SyncableRecord, str], Dict[str, Any]]
    from_row: Callable[[Dict[str, Any]], SyncableRecord]
    id_of: Callable[[SyncableRecord], str] = field(default=attrgetter("id"))
    updated_at_of: Callable[[SyncableRecord], datetime] = field(default=attrgetter("updated_at"))


def task_to_row(task: TaskItem, user_id: str) -> Dict[str, Any]:
    """Encode a task as a remote row.

    The whole task travels as an opaque JSON payload; only the owner, id and
    timestamps are exposed as columns.
    """
    return {
        settings.OWNER_ID_FIELD: user_id,
        "item_id": task.id,
        "payload": task.model_dump_json(),
        "updated_at": task.updated_at.isoformat(),
        "created_at": task.created_at.isoformat(),
    }


def task_from_row(row: Dict[str, Any]) -> TaskItem:
    # jsonb columns arrive already decoded
    payload = row["payload"]
    if isinstance(payload, str):
        return TaskItem.model_validate_json(payload)
    return TaskItem.model_validate(payload)


def diary_to_row(entry: DiaryEntry, user_id: str) -> Dict[str, Any]:
    """Encode a diary entry with its queryable fields as columns."""
    media = {
        "image_ref": entry.image_ref,
        "video_url": entry.video_url,
        "audio_url": entry.audio_url,
    }
    return {
        settings.OWNER_ID_FIELD: user_id,
        "item_id": entry.id,
        "date": entry.date.isoformat(),
        "text": entry.text,
        "mood": entry.mood.value if entry.mood else None,
        "deleted": entry.deleted,
        "media": json.dumps(media),
        "updated_at": entry.updated_at.isoformat(),
        "created_at": entry.created_at.isoformat(),
    }


def diary_from_row(row: Dict[str, Any]) -> DiaryEntry:
    media = row.get("media") or {}
    if isinstance(media, str):
        media = json.loads(media)
    return DiaryEntry(
        id=row["item_id"],
        date=row["date"],
        text=row["text"],
        mood=row.get("mood"),
        deleted=bool(row.get("deleted", False)),
        image_ref=media.get("image_ref"),
        video_url=media.get("video_url"),
        audio_url=media.get("audio_url"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


TASKS = RecordKind(
    name="tasks",
    storage_key=settings.TASKS_STORAGE_KEY,
    table=settings.TASKS_TABLE,
    model=TaskItem,
    to_row=task_to_row,
    from_row=task_from_row,
)

DIARY = RecordKind(
    name="diary",
    storage_key=settings.DIARY_STORAGE_KEY,
    table=settings.DIARY_TABLE,
    model=DiaryEntry,
    to_row=diary_to_row,
    from_row=diary_from_row,
)


def default_kinds() -> List[RecordKind]:
    return [TASKS, DIARY]
