"""Local Record Store for Care Sync Service.

Key-value persistence of whole record collections, optionally scoped per
user so that several accounts on one device never see each other's data.
IMPORTANT: nothing here raises to the caller. Unreadable data loads as an
empty collection and failed writes are logged and dropped.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError

import database
from database import StoredCollection
from logger_config import setup_logger

logger = setup_logger(__name__, 'store.log')

M = TypeVar("M", bound=BaseModel)


def scoped_key(key: str, user_id: str) -> str:
    """Qualify a storage key with a user id, e.g. 'tasks_v1__<user_id>'."""
    return f"{key}__{user_id}"


class RecordStore:
    """Collections of pydantic records stored as JSON documents.

    Args:
        session_factory: SQLAlchemy session factory. Defaults to the
            service-wide `database.SessionLocal`.
    """

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or database.SessionLocal

    def _resolve(self, key: str, user_id: Optional[str]) -> str:
        return scoped_key(key, user_id) if user_id else key

    def load(self, model: Type[M], key: str, user_id: Optional[str] = None) -> List[M]:
        """Load a collection.

        Args:
            model: Record class to decode into
            key: Logical storage key (e.g. 'tasks_v1')
            user_id: Scope; None reads the unscoped legacy slot

        Returns:
            List of records, empty if missing or undecodable
        """
        slot = self._resolve(key, user_id)
        db = self.session_factory()
        try:
            row = db.get(StoredCollection, slot)
            if row is None:
                return []
            return TypeAdapter(List[model]).validate_json(row.payload)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Discarding undecodable collection at {slot}: {e}")
            return []
        except SQLAlchemyError as e:
            logger.error(f"Failed to read collection at {slot}: {e}")
            return []
        finally:
            db.close()

    def save(self, records: Sequence[BaseModel], key: str, user_id: Optional[str] = None) -> None:
        """Replace the stored collection under key (best-effort).

        Args:
            records: Records to persist
            key: Logical storage key
            user_id: Scope; None writes the unscoped legacy slot
        """
        slot = self._resolve(key, user_id)
        payload = "[" + ",".join(r.model_dump_json() for r in records) + "]"
        db = self.session_factory()
        try:
            row = db.get(StoredCollection, slot)
            if row is None:
                row = StoredCollection(key=slot)
                db.add(row)
            row.payload = payload
            row.updated_at = datetime.now(timezone.utc)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to save {len(records)} record(s) at {slot}: {e}")
        finally:
            db.close()

    def remove(self, key: str, user_id: Optional[str] = None) -> None:
        slot = self._resolve(key, user_id)
        db = self.session_factory()
        try:
            row = db.get(StoredCollection, slot)
            if row is not None:
                db.delete(row)
                db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to remove collection at {slot}: {e}")
        finally:
            db.close()

    def migrate_legacy(self, model: Type[M], key: str, user_id: str) -> bool:
        """Copy the unscoped legacy collection into the user's slot once.

        Only happens when the scoped slot is empty and the legacy slot is not.

        Returns:
            bool: True if records were copied
        """
        if self.load(model, key, user_id):
            return False
        legacy = self.load(model, key)
        if not legacy:
            return False
        self.save(legacy, key, user_id)
        logger.info(f"Migrated {len(legacy)} legacy record(s) from {key} to user {user_id}")
        return True
