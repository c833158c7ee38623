"""In-memory session state for Care Sync Service.

SessionState holds the record collections of the signed-in user, the way
the mobile app keeps them in memory. Every local mutation touches the
record, persists the collection and notifies subscribers (the
reconciliation engine subscribes to schedule a push).

Deletions leave a tombstone (`deleted=True`) so they survive the next merge
and reach other devices. The `tasks` and `diary` views hide tombstones.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from record_kinds import RecordKind, default_kinds
from record_store import RecordStore
from schemas import DiaryEntry, SyncableRecord, TaskItem
from logger_config import setup_logger

logger = setup_logger(__name__, 'sync.log')

ChangeListener = Callable[[str], None]


class SessionState:
    """Record collections owned by one application session.

    Args:
        store: Local record store
        kinds: Record kinds held by the session (tasks and diary by default)
    """

    def __init__(self, store: RecordStore, kinds: Optional[Iterable[RecordKind]] = None):
        self.store = store
        self.kinds: Dict[str, RecordKind] = {k.name: k for k in (kinds or default_kinds())}
        self.session_user_id: Optional[str] = None
        self._collections: Dict[str, List[SyncableRecord]] = {name: [] for name in self.kinds}
        self._listeners: List[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> None:
        """Call `listener(kind_name)` after every persisted local change."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(self, user_id: str) -> None:
        """Bind the session to a user and load their scoped collections.

        Collections saved before per-user scoping existed are copied into
        the user's slots first.
        """
        self.session_user_id = user_id
        for kind in self.kinds.values():
            self.store.migrate_legacy(kind.model, kind.storage_key, user_id)
        self.load_user_data(user_id)
        logger.info(f"Session started for user {user_id}")

    def end_session(self) -> None:
        self.session_user_id = None
        self._collections = {name: [] for name in self.kinds}

    def load_user_data(self, user_id: str) -> None:
        for kind in self.kinds.values():
            self._collections[kind.name] = self.store.load(kind.model, kind.storage_key, user_id)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def collection(self, name: str) -> List[SyncableRecord]:
        """All records of a kind, tombstones included."""
        return list(self._collections[name])

    def visible(self, name: str) -> List[SyncableRecord]:
        return [r for r in self._collections[name] if not r.deleted]

    def replace(self, name: str, records: Iterable[SyncableRecord]) -> None:
        """Swap in a new collection without persisting or notifying."""
        self._collections[name] = list(records)

    def find(self, name: str, record_id: str, include_deleted: bool = False) -> Optional[SyncableRecord]:
        for record in self._collections[name]:
            if record.id == record_id and (include_deleted or not record.deleted):
                return record
        return None

    @property
    def tasks(self) -> List[TaskItem]:
        return self.visible("tasks")

    @property
    def diary(self) -> List[DiaryEntry]:
        return self.visible("diary")

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def add(self, name: str, record: SyncableRecord) -> SyncableRecord:
        """Add a new record, or overwrite the stored version of the same id."""
        records = [r for r in self._collections[name] if r.id != record.id]
        records.append(record)
        self._collections[name] = records
        self.save(name)
        return record

    def update(self, name: str, record_id: str, changes: Dict[str, Any]) -> Optional[SyncableRecord]:
        """Apply field changes to a visible record.

        Returns:
            The updated record, or None if no visible record has that id
        """
        record = self.find(name, record_id)
        if record is None:
            return None
        for key, value in changes.items():
            setattr(record, key, value)
        record.touch()
        self.save(name)
        return record

    def remove(self, name: str, record_id: str) -> bool:
        """Tombstone a record. Returns False if no visible record has that id."""
        record = self.find(name, record_id)
        if record is None:
            return False
        record.mark_deleted()
        self.save(name)
        return True

    def save(self, name: str) -> None:
        """Persist a kind's collection and notify subscribers.

        Without a session user the unscoped legacy slot is written and no
        one is notified, as there is nobody to sync for.
        """
        kind = self.kinds[name]
        records = self._collections[name]
        if self.session_user_id:
            self.store.save(records, kind.storage_key, self.session_user_id)
            for listener in self._listeners:
                listener(name)
        else:
            self.store.save(records, kind.storage_key)
