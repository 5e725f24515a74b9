from datetime import datetime, timezone

import pytest

import services.outbox_queue as outbox_queue

from services.errors import PERMANENT_FAILURE


def test_enqueue_is_durable_and_ordered(queue):
    a = queue.enqueue("task-a", "create", {"title": "A"})
    b = queue.enqueue("task-b", "update", {"title": "B"})
    c = queue.enqueue("task-c", "delete", {"title": "C"})

    drained = queue.drain_ordered()
    assert [entry.id for entry in drained] == [a.id, b.id, c.id]
    assert all(entry.retry_count == 0 for entry in drained)
    assert drained[1].data == {"title": "B"}
    assert queue.count() == 3


def test_items_sharing_a_timestamp_drain_in_insertion_order(queue, monkeypatch):
    frozen = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
    monkeypatch.setattr(outbox_queue, "utc_now_precise", lambda: frozen)
    ids = [queue.enqueue(f"task-{n}", "create", {}).id for n in "zyxwv"]

    drained = queue.drain_ordered()
    assert [entry.id for entry in drained] == ids
    assert len({entry.created_at for entry in drained}) == 1
    assert [entry.seq for entry in drained] == sorted(entry.seq for entry in drained)


def test_enqueue_rejects_unknown_operation(queue):
    with pytest.raises(ValueError):
        queue.enqueue("task-a", "upsert", {})
    assert queue.count() == 0


def test_remove_deletes_every_item_of_task(queue):
    queue.enqueue("task-a", "create", {})
    queue.enqueue("task-a", "update", {})
    queue.enqueue("task-b", "create", {})

    assert queue.remove("task-a") == 2
    assert [entry.task_id for entry in queue.drain_ordered()] == ["task-b"]


def test_remove_through_keeps_newer_items(queue):
    first = queue.enqueue("task-a", "update", {"title": "v1"})
    second = queue.enqueue("task-a", "delete", {"title": "v1"})

    assert queue.remove("task-a", through=first.seq) == 1
    [left] = queue.drain_ordered()
    assert left.id == second.id


def test_remove_through_an_earlier_item_keeps_later_ones(queue):
    other = queue.enqueue("task-b", "create", {})
    queue.enqueue("task-a", "update", {})
    assert queue.remove("task-a", through=other.seq) == 0
    assert queue.count() == 1


def test_exhausted_items_are_not_drained_but_stay_queued(queue):
    keep = queue.enqueue("task-a", "create", {})
    dead = queue.enqueue("task-b", "create", {})
    queue.record_failure(dead, 3, PERMANENT_FAILURE)

    assert [entry.id for entry in queue.drain_ordered()] == [keep.id]
    assert queue.count() == 1
    assert queue.count_failed() == 1
    assert queue.get(dead.id).error_message == PERMANENT_FAILURE
    assert len(queue.all_items()) == 2


def test_requeue_failed_resets_counter_and_task(repo, store, queue):
    task = repo.create("stuck")
    [entry] = queue.drain_ordered()
    queue.record_failure(entry, 3, PERMANENT_FAILURE)
    store.mark_error(task.id)

    assert queue.requeue_failed() == [task.id]

    [again] = queue.drain_ordered()
    assert again.retry_count == 0
    assert again.error_message is None
    assert store.get_task(task.id).sync_status == "pending"


def test_entry_wire_format(queue):
    entry = queue.enqueue("task-a", "create", {"title": "A"})
    wire = entry.to_wire()
    assert wire["item_id"] == entry.id
    assert wire["task_id"] == "task-a"
    assert wire["operation"] == "create"
    assert wire["data"] == {"title": "A"}
    assert wire["retry_count"] == 0
    assert wire["created_at"].endswith("Z")
