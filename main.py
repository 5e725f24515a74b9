# tasksync/main.py
from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional, Sequence

from core.logging_setup import ensure_logger, get_logger
from core.settings import load_sync_settings
from datetime_utils import to_wire
from models.task import Task
from services.errors import ConnectivityError, TaskNotFoundError
from services.outbox_queue import OutboxQueue
from services.sync_service import SyncService
from services.task_repository import TaskRepository
from storage.config import update_config
from storage.db import init_db
from storage.sync_store import SyncStore


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNAVAILABLE = 3

logger = get_logger("cli")


def _task_dict(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "completed": bool(task.completed),
        "created_at": to_wire(task.created_at),
        "updated_at": to_wire(task.updated_at),
        "sync_status": task.sync_status,
        "server_id": task.server_id,
        "last_synced_at": to_wire(task.last_synced_at),
    }


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tasksync", description="Offline-first task list client")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sync", help="upload queued changes to the server")
    sub.add_parser("status", help="show queue size, last sync and connectivity")
    sub.add_parser("retry-failed", help="requeue items that exhausted their retries")

    add = sub.add_parser("add", help="create a task")
    add.add_argument("title")
    add.add_argument("--description")

    sub.add_parser("list", help="list tasks")
    sub.add_parser("pending", help="list tasks waiting for sync or in error")

    upd = sub.add_parser("update", help="update a task")
    upd.add_argument("task_id")
    upd.add_argument("--title")
    upd.add_argument("--description")
    done = upd.add_mutually_exclusive_group()
    done.add_argument("--completed", dest="completed", action="store_true", default=None)
    done.add_argument("--not-completed", dest="completed", action="store_false")

    rm = sub.add_parser("delete", help="delete a task")
    rm.add_argument("task_id")

    cfg = sub.add_parser("config", help="persist sync settings")
    cfg.add_argument("--api-base-url")
    cfg.add_argument("--batch-size", type=int)
    return parser


def run_command(args: argparse.Namespace, store: SyncStore, service: Optional[SyncService] = None) -> int:
    settings = load_sync_settings()
    repo = TaskRepository(store, OutboxQueue(store, max_retries=settings.max_retries))

    if args.command == "add":
        _emit(_task_dict(repo.create(args.title, args.description)))
        return EXIT_OK
    if args.command == "list":
        _emit([_task_dict(task) for task in repo.list()])
        return EXIT_OK
    if args.command == "pending":
        _emit([_task_dict(task) for task in repo.list_needing_sync()])
        return EXIT_OK
    if args.command == "update":
        fields = {}
        if args.title is not None:
            fields["title"] = args.title
        if args.description is not None:
            fields["description"] = args.description
        if args.completed is not None:
            fields["completed"] = args.completed
        task = repo.update(args.task_id, **fields)
        if task is None:
            raise TaskNotFoundError(f"Task {args.task_id} not found")
        _emit(_task_dict(task))
        return EXIT_OK
    if args.command == "delete":
        if not repo.delete(args.task_id):
            raise TaskNotFoundError(f"Task {args.task_id} not found")
        _emit({"deleted": args.task_id})
        return EXIT_OK
    if args.command == "config":
        config = update_config(api_base_url=args.api_base_url, batch_size=args.batch_size)
        _emit(vars(config))
        return EXIT_OK

    service = service or SyncService.from_settings(store, settings)
    if args.command == "sync":
        _emit(service.run().to_dict())
    elif args.command == "status":
        _emit(service.status())
    elif args.command == "retry-failed":
        _emit({"requeued_tasks": service.retry_failed()})
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        ensure_logger()
        init_db()
        return run_command(args, SyncStore())
    except ConnectivityError as exc:
        _emit({"error": str(exc)})
        return EXIT_UNAVAILABLE
    except (TaskNotFoundError, ValueError) as exc:
        _emit({"error": str(exc)})
        return EXIT_FAILURE
    except Exception:
        logger.exception("Command %s failed", args.command)
        _emit({"error": "Synchronization failed" if args.command == "sync" else "Command failed"})
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
