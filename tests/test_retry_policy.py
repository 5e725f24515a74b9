from services.errors import PERMANENT_FAILURE, ItemError
from services.retry_policy import RetryPolicy


def test_every_failure_increments_persisted_counter(repo, store, queue):
    task = repo.create("flaky")
    policy = RetryPolicy(queue, store, max_retries=3)
    [entry] = queue.drain_ordered()

    outcome = policy.on_failure(entry, ItemError("timeout"))

    assert outcome.retry_count == 1
    assert outcome.permanent is False
    stored = queue.get(entry.id)
    assert stored.retry_count == 1
    assert stored.error_message == "timeout"
    assert store.get_task(task.id).sync_status == "pending"


def test_counter_is_monotonic_until_permanent_failure(repo, store, queue):
    task = repo.create("broken")
    policy = RetryPolicy(queue, store, max_retries=3)

    seen = []
    for _ in range(3):
        [entry] = queue.drain_ordered()
        seen.append(policy.on_failure(entry, "server said no"))

    assert [o.retry_count for o in seen] == [1, 2, 3]
    assert [o.permanent for o in seen] == [False, False, True]
    assert seen[-1].message == "server said no"

    assert queue.drain_ordered() == []
    [dead] = queue.all_items()
    assert dead.retry_count == 3
    assert dead.error_message == PERMANENT_FAILURE
    assert store.get_task(task.id).sync_status == "error"


def test_failure_of_vanished_item_is_reported_not_raised(repo, store, queue):
    repo.create("gone")
    policy = RetryPolicy(queue, store)
    [entry] = queue.drain_ordered()
    queue.remove(entry.task_id)

    outcome = policy.on_failure(entry, ItemError(""))

    assert outcome.retry_count == 1
    assert outcome.message == "Unknown error"
