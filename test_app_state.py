"""Tests for session state mutations and record timestamps."""

from datetime import datetime, timezone

from conftest import USER, at
from reconciliation import ReconciliationEngine
from record_kinds import DIARY, TASKS
from schemas import DiaryEntry, TaskItem


def test_new_record_has_equal_timestamps():
    task = TaskItem(title="Buy milk")

    assert task.created_at == task.updated_at
    assert task.created_at.tzinfo is not None


def test_naive_datetimes_are_utc():
    task = TaskItem(title="Buy milk", due_date=datetime(2026, 5, 1, 9, 30))

    assert task.due_date == datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)


def test_touch_is_strictly_monotonic():
    # updated_at far in the future: the clock cannot move past it
    task = TaskItem(title="Buy milk", updated_at=datetime(2999, 1, 1, tzinfo=timezone.utc))
    before = task.updated_at

    task.touch()
    task.touch()

    assert task.updated_at > before


def test_mark_completed_touches():
    task = TaskItem(title="Pills", updated_at=at(8))

    task.mark_completed()

    assert task.is_completed is True
    assert task.updated_at > at(8)


def test_start_session_loads_scoped_data(state, store):
    store.save([TaskItem(title="mine")], TASKS.storage_key, USER)
    store.save([TaskItem(title="theirs")], TASKS.storage_key, "user-2")

    state.start_session(USER)

    assert [t.title for t in state.tasks] == ["mine"]
    assert state.diary == []


def test_start_session_migrates_legacy_data(state, store):
    store.save([DiaryEntry(text="written before login")], DIARY.storage_key)

    state.start_session(USER)

    assert [e.text for e in state.diary] == ["written before login"]
    assert len(store.load(DiaryEntry, DIARY.storage_key, USER)) == 1


def test_mutations_persist_and_notify(state, store):
    changes = []
    state.subscribe(changes.append)
    state.start_session(USER)

    task = state.add("tasks", TaskItem(title="Call doctor", updated_at=at(7)))
    state.update("tasks", task.id, {"title": "Call Dr. Rossi"})

    stored = store.load(TaskItem, TASKS.storage_key, USER)
    assert [t.title for t in stored] == ["Call Dr. Rossi"]
    assert stored[0].updated_at > at(7)
    assert changes == ["tasks", "tasks"]


def test_remove_leaves_hidden_tombstone(state, store):
    state.start_session(USER)
    entry = state.add("diary", DiaryEntry(text="Visited the sea"))

    assert state.remove("diary", entry.id) is True

    assert state.diary == []
    assert [e.deleted for e in state.collection("diary")] == [True]
    assert store.load(DiaryEntry, DIARY.storage_key, USER)[0].deleted is True
    # Already gone
    assert state.remove("diary", entry.id) is False
    assert state.update("diary", entry.id, {"text": "x"}) is None


def test_unknown_records(state):
    state.start_session(USER)

    assert state.update("tasks", "missing", {"title": "x"}) is None
    assert state.remove("tasks", "missing") is False
    assert state.find("tasks", "missing") is None


def test_without_session_writes_legacy_slot(state, store):
    changes = []
    state.subscribe(changes.append)

    state.add("tasks", TaskItem(title="offline"))

    assert [t.title for t in store.load(TaskItem, TASKS.storage_key)] == ["offline"]
    assert changes == []


def test_end_session_clears_collections(state):
    state.start_session(USER)
    state.add("tasks", TaskItem(title="Buy milk"))

    state.end_session()

    assert state.session_user_id is None
    assert state.tasks == []


def test_change_outside_event_loop_does_not_raise(state, store, remote, observer):
    ReconciliationEngine(state, store, remote, observer=observer, debounce_seconds=0.01, enabled=True)
    state.start_session(USER)

    state.add("tasks", TaskItem(title="saved anyway"))

    assert [t.title for t in store.load(TaskItem, TASKS.storage_key, USER)] == ["saved anyway"]
    assert remote.upserts == []
