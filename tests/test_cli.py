import json

import pytest
from sqlalchemy.exc import OperationalError

import main
from models.sync_result import SyncResult
from services.errors import ConnectivityError


class StubService:
    def __init__(self, result=None, error=None):
        self.result = result or SyncResult()
        self.error = error

    def run(self):
        if self.error:
            raise self.error
        return self.result

    def status(self):
        return {"pending_items": 0, "failed_items": 0, "last_synced_at": None, "connectivity": True}

    def retry_failed(self):
        return 2


def _run(argv, store, capsys, service=None):
    args = main.build_parser().parse_args(argv)
    code = main.run_command(args, store, service)
    return code, json.loads(capsys.readouterr().out)


def test_add_update_list_delete(store, capsys):
    code, created = _run(["add", "Write report", "--description", "Q3"], store, capsys)
    assert code == main.EXIT_OK
    assert created["sync_status"] == "pending"

    _, updated = _run(["update", created["id"], "--completed"], store, capsys)
    assert updated["completed"] is True

    _, listed = _run(["list"], store, capsys)
    assert [task["id"] for task in listed] == [created["id"]]

    _, pending = _run(["pending"], store, capsys)
    assert len(pending) == 1

    _, deleted = _run(["delete", created["id"]], store, capsys)
    assert deleted == {"deleted": created["id"]}
    _, listed = _run(["list"], store, capsys)
    assert listed == []


def test_sync_prints_result_payload(store, capsys):
    result = SyncResult(synced_items=2)
    code, payload = _run(["sync"], store, capsys, service=StubService(result))
    assert code == main.EXIT_OK
    assert payload == {"success": True, "synced_items": 2, "failed_items": 0, "errors": []}


def test_status_and_retry_failed(store, capsys):
    _, status = _run(["status"], store, capsys, service=StubService())
    assert status["connectivity"] is True
    _, retried = _run(["retry-failed"], store, capsys, service=StubService())
    assert retried == {"requeued_tasks": 2}


def test_main_maps_connectivity_failure_to_unavailable(monkeypatch, capsys):
    def fake_run_command(args, store, service=None):
        raise ConnectivityError()

    monkeypatch.setattr(main, "run_command", fake_run_command)
    assert main.main(["sync"]) == main.EXIT_UNAVAILABLE
    assert "Cannot reach server" in json.loads(capsys.readouterr().out)["error"]


def test_main_maps_unexpected_failure_to_generic_error(monkeypatch, capsys):
    def fake_run_command(args, store, service=None):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(main, "run_command", fake_run_command)
    assert main.main(["sync"]) == main.EXIT_FAILURE
    assert json.loads(capsys.readouterr().out) == {"error": "Synchronization failed"}


def test_main_reports_unusable_database_as_failure(monkeypatch, capsys):
    def broken_init_db(engine=None):
        raise OperationalError("PRAGMA", {}, Exception("unable to open database file"))

    def unexpected_run(args, store, service=None):
        raise AssertionError("command ran without a database")

    monkeypatch.setattr(main, "init_db", broken_init_db)
    monkeypatch.setattr(main, "run_command", unexpected_run)
    assert main.main(["status"]) == main.EXIT_FAILURE
    assert json.loads(capsys.readouterr().out) == {"error": "Command failed"}

def test_update_of_missing_task_fails(store, capsys):
    with pytest.raises(main.TaskNotFoundError):
        main.run_command(main.build_parser().parse_args(["delete", "nope"]), store)
