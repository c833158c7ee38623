"""Reconciliation engine for Care Sync Service.

Keeps a user's tasks and diary entries consistent between the local record
store and the remote tables:

- full_sync: fetch remote, merge with the local collections by
  last-writer-wins on `updated_at`, save locally, replace the session
  collections, schedule a push
- schedule_push: trailing-edge debounce that coalesces bursts of edits
- push_now: upsert every record of every kind to the remote tables

The remote leg is best-effort. Fetch and push failures are reported to the
observer and otherwise ignored, so the app keeps working offline.
"""

import asyncio
from operator import attrgetter
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Set, TypeVar

from app_state import SessionState
from config import settings
from logger_config import setup_logger, sync_context
from record_kinds import RecordKind
from record_store import RecordStore
from remote_client import RemoteTableClient
from sync_events import LoggingObserver, SyncEvent, SyncObserver

logger = setup_logger(__name__, 'sync.log')

T = TypeVar("T")


def merge_by_updated_at(
    local: Iterable[T],
    remote: Iterable[T],
    id_of: Callable[[T], Hashable] = attrgetter("id"),
    updated_at_of: Callable[[T], object] = attrgetter("updated_at"),
) -> List[T]:
    """Merge two collections keeping the most recently updated version per id.

    A remote record replaces a local one only if its `updated_at` is
    strictly greater, so ties keep the local version. Inputs are not
    modified. The order of the result is unspecified.
    """
    merged: Dict[Hashable, T] = {}
    for record in local:
        merged[id_of(record)] = record
    for record in remote:
        key = id_of(record)
        existing = merged.get(key)
        if existing is None or updated_at_of(record) > updated_at_of(existing):
            merged[key] = record
    return list(merged.values())


class ReconciliationEngine:
    """Syncs one session's record collections with the remote tables.

    Pending-push state belongs to the instance, so engines of different
    sessions never cancel each other's pushes.

    Args:
        state: Session whose in-memory collections are merged and pushed
        store: Local record store
        remote: Remote table client
        kinds: Record kinds to sync (defaults to the session's kinds)
        observer: Receives an event for every absorbed failure
        debounce_seconds: Quiet period before a scheduled push fires
        enabled: Kill-switch; a disabled engine never touches anything
    """

    def __init__(
        self,
        state: SessionState,
        store: RecordStore,
        remote: RemoteTableClient,
        kinds: Optional[Iterable[RecordKind]] = None,
        observer: Optional[SyncObserver] = None,
        debounce_seconds: Optional[float] = None,
        enabled: Optional[bool] = None,
    ):
        self.state = state
        self.store = store
        self.remote = remote
        self.kinds: List[RecordKind] = list(kinds) if kinds is not None else list(state.kinds.values())
        self.observer = observer or LoggingObserver()
        self.debounce_seconds = settings.PUSH_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.enabled = settings.SYNC_ENABLED if enabled is None else enabled

        self._pending_push: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._sync_locks: Dict[str, asyncio.Lock] = {}

        state.subscribe(self._on_local_change)

    def _user(self, user_id: Optional[str]) -> Optional[str]:
        if not self.enabled:
            return None
        return user_id or self.state.session_user_id

    def _report(self, stage: str, kind: RecordKind, user_id: str, error: Exception, record_id: Optional[str] = None):
        self.observer.on_failure(SyncEvent(
            stage=stage,
            kind=kind.name,
            user_id=user_id,
            error=f"{type(error).__name__}: {error}",
            record_id=record_id,
        ))

    @property
    def push_pending(self) -> bool:
        return self._pending_push is not None and not self._pending_push.done()

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def full_sync(self, user_id: Optional[str] = None) -> None:
        """Merge local and remote collections for every kind, then schedule a push.

        No-op when sync is disabled or the session is not bound to the user.
        Overlapping calls for the same user run one after another.

        The local side is read after the remote fetch returns, so edits made
        while the fetch was in flight take part in the merge.
        """
        uid = self._user(user_id)
        if not uid or self.state.session_user_id != uid:
            return

        lock = self._sync_locks.setdefault(uid, asyncio.Lock())
        async with lock:
            for kind in self.kinds:
                remote = await self._fetch_remote(kind, uid)

                # No suspension point from here to replace()
                if self.state.session_user_id == uid:
                    local = self.state.collection(kind.name)
                else:
                    local = self.store.load(kind.model, kind.storage_key, uid)
                merged = merge_by_updated_at(local, remote, kind.id_of, kind.updated_at_of)
                self.store.save(merged, kind.storage_key, uid)

                log = sync_context(logger, kind.name, uid)
                if self.state.session_user_id == uid:
                    self.state.replace(kind.name, merged)
                else:
                    log.info("Session moved away; merged collection saved but not loaded")

                log.info(f"Merged {len(local)} local + {len(remote)} remote -> {len(merged)}")

        self.schedule_push(uid)

    async def _fetch_remote(self, kind: RecordKind, user_id: str) -> list:
        """Fetch and decode a kind's remote rows. Any failure yields []."""
        try:
            rows = await self.remote.select_where(kind.table, settings.OWNER_ID_FIELD, user_id)
            if not isinstance(rows, list):
                raise TypeError(f"expected a list of rows, got {type(rows).__name__}")
        except Exception as e:
            self._report("fetch", kind, user_id, e)
            return []

        records = []
        for row in rows:
            try:
                records.append(kind.from_row(row))
            except Exception as e:
                record_id = row.get("item_id") if isinstance(row, dict) else None
                self._report("decode", kind, user_id, e, record_id=record_id)
        return records

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def _on_local_change(self, kind_name: str) -> None:
        self.schedule_push()

    def schedule_push(self, user_id: Optional[str] = None) -> None:
        """Arm a push that fires after the debounce window of inactivity.

        A push still waiting is cancelled and replaced. A push that has
        already started runs to completion.
        """
        uid = self._user(user_id)
        if not uid:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            sync_context(logger, user_id=uid).warning("No running event loop; push deferred to the next sync")
            return

        if self.push_pending:
            self._pending_push.cancel()
        self._pending_push = loop.create_task(self._debounced_push(uid))

    async def _debounced_push(self, user_id: str) -> None:
        await asyncio.sleep(self.debounce_seconds)

        # Past the wait: detach from the cancellation slot
        task = asyncio.current_task()
        if self._pending_push is task:
            self._pending_push = None
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

        await self.push_now(user_id)

    async def push_now(self, user_id: Optional[str] = None) -> None:
        """Upsert the current in-memory collections to the remote tables.

        Each kind is pushed independently; a failure on one does not stop
        the others. Kinds with no records make no request. Tombstones are
        pushed like any other record.
        """
        uid = self._user(user_id)
        if not uid:
            return
        if self.state.session_user_id != uid:
            sync_context(logger, user_id=uid).info("Skipping push: not the session user")
            return

        for kind in self.kinds:
            try:
                rows = [kind.to_row(record, uid) for record in self.state.collection(kind.name)]
                if not rows:
                    continue
                await self.remote.upsert_many(kind.table, rows)
            except Exception as e:
                self._report("push", kind, uid, e)

    async def aclose(self, flush: bool = False) -> None:
        """Stop scheduling: cancel (or with `flush`, run) the waiting push
        and wait for pushes already in flight."""
        if self.push_pending:
            self._pending_push.cancel()
            self._pending_push = None
            if flush:
                await self.push_now()
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
