"""Tests for last-writer-wins merging."""

from conftest import at
from reconciliation import merge_by_updated_at
from schemas import TaskItem


def by_id(records):
    return {r.id: r for r in records}


def test_remote_wins_when_newer():
    local = TaskItem(id="x", title="local", updated_at=at(10))
    remote = TaskItem(id="x", title="remote", updated_at=at(11))

    merged = merge_by_updated_at([local], [remote])

    assert merged == [remote]


def test_local_wins_when_newer_or_equal():
    local = TaskItem(id="x", title="local", updated_at=at(11))
    older = TaskItem(id="x", title="remote", updated_at=at(10))
    same = TaskItem(id="x", title="remote", updated_at=at(11))

    assert merge_by_updated_at([local], [older]) == [local]
    # Ties keep the local version
    assert merge_by_updated_at([local], [same]) == [local]


def test_disjoint_ids_are_all_kept_unchanged():
    a = [TaskItem(id=f"a{i}", title=f"a{i}") for i in range(3)]
    b = [TaskItem(id=f"b{i}", title=f"b{i}") for i in range(2)]

    merged = merge_by_updated_at(a, b)

    assert len(merged) == 5
    assert by_id(merged) == by_id(a + b)


def test_one_record_per_id():
    local = [TaskItem(id="x", title="l", updated_at=at(9)), TaskItem(id="y", title="l", updated_at=at(9))]
    remote = [
        TaskItem(id="y", title="r", updated_at=at(10)),
        TaskItem(id="z", title="r", updated_at=at(8)),
        TaskItem(id="x", title="r", updated_at=at(8)),
    ]

    merged = by_id(merge_by_updated_at(local, remote))

    assert sorted(merged) == ["x", "y", "z"]
    assert merged["x"].title == "l"
    assert merged["y"].title == "r"


def test_merge_is_idempotent_with_same_remote():
    local = [TaskItem(id="x", title="l", updated_at=at(12)), TaskItem(id="y", title="l", updated_at=at(7))]
    remote = [TaskItem(id="x", title="r", updated_at=at(11)), TaskItem(id="y", title="r", updated_at=at(8))]

    once = merge_by_updated_at(local, remote)
    twice = merge_by_updated_at(once, remote)

    assert by_id(twice) == by_id(once)


def test_inputs_are_not_modified():
    local = [TaskItem(id="x", title="l", updated_at=at(9))]
    remote = [TaskItem(id="x", title="r", updated_at=at(10))]

    merge_by_updated_at(local, remote)

    assert [t.title for t in local] == ["l"]
    assert [t.title for t in remote] == ["r"]


def test_custom_accessors():
    local = [{"key": 1, "ts": 5, "v": "l"}]
    remote = [{"key": 1, "ts": 6, "v": "r"}, {"key": 2, "ts": 1, "v": "r2"}]

    merged = merge_by_updated_at(local, remote, id_of=lambda r: r["key"], updated_at_of=lambda r: r["ts"])

    assert sorted(r["v"] for r in merged) == ["r", "r2"]


def test_scenario_remote_edit_and_remote_only_task():
    local = [TaskItem(id="t1", title="Buy milk", updated_at=at(10, 0))]
    remote = [
        TaskItem(id="t1", title="Buy milk and eggs", updated_at=at(10, 5)),
        TaskItem(id="t2", title="Call doctor", updated_at=at(9, 0)),
    ]

    merged = by_id(merge_by_updated_at(local, remote))

    assert len(merged) == 2
    assert merged["t1"].title == "Buy milk and eggs"
    assert merged["t2"].title == "Call doctor"
