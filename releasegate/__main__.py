"""CLI interface for releasegate.

Usage:
    python -m releasegate init-db
    python -m releasegate seed [seed.yaml]
    python -m releasegate check-window <project_ids> <start> <end>
    python -m releasegate list-bans [start_date] [end_date]
    python -m releasegate list-deployments [start_date] [end_date]

Dates and times are ISO 8601, e.g. ``2024-06-01T23:00``; project IDs are
comma separated.
"""

import json
import sys
from datetime import date, datetime

from .common.config import load_config, load_typed_config
from .common.logger import setup_from_settings
from .core.config import get_settings
from .core.errors import WorkflowError

USAGE = __doc__


def _init_db() -> int:
    from .db.base import Base
    from .db.session import engine
    from .db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    print(f"Created tables on {engine.url}")
    return 0


def _seed(args) -> int:
    from .db.seed import seed_from_config
    from .db.session import SessionLocal

    seed_file = args[0] if args else get_settings().seed_file
    if not seed_file:
        print("No seed file given and RELEASEGATE_SEED_FILE is unset", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        counts = seed_from_config(db, load_config(seed_file))
    finally:
        db.close()
    print(f"Seeded {counts['accounts']} account(s), {counts['projects']} project(s)")
    return 0


def _service(db):
    from .core.approval.service import WorkflowService
    from .store import SqlAlchemyStore

    config = load_typed_config(get_settings().policy_file)
    return WorkflowService(SqlAlchemyStore(db), config)


def _check_window(args) -> int:
    from .core.schedule.window import TimeWindow
    from .db.session import SessionLocal

    if len(args) != 3:
        print(USAGE, file=sys.stderr)
        return 1

    project_ids = [int(p) for p in args[0].split(",") if p.strip()]
    window = TimeWindow(datetime.fromisoformat(args[1]), datetime.fromisoformat(args[2]))

    db = SessionLocal()
    try:
        result = _service(db).check_window(project_ids, window)
    finally:
        db.close()

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.accepted else 2


def _list_bans(args) -> int:
    from .db.session import SessionLocal

    start_date = date.fromisoformat(args[0]) if len(args) > 0 else None
    end_date = date.fromisoformat(args[1]) if len(args) > 1 else None

    db = SessionLocal()
    try:
        occurrences = _service(db).registry.list_schedules(start_date=start_date, end_date=end_date)
    finally:
        db.close()

    print(json.dumps(occurrences, indent=2))
    return 0


def _list_deployments(args) -> int:
    from .db.session import SessionLocal

    start_date = date.fromisoformat(args[0]) if len(args) > 0 else None
    end_date = date.fromisoformat(args[1]) if len(args) > 1 else None

    db = SessionLocal()
    try:
        schedules = _service(db).list_deployment_schedules(start_date=start_date, end_date=end_date)
    finally:
        db.close()

    print(json.dumps(schedules, indent=2))
    return 0



COMMANDS = {
    "init-db": lambda args: _init_db(),
    "seed": _seed,
    "check-window": _check_window,
    "list-bans": _list_bans,
    "list-deployments": _list_deployments,
}


def main():
    """Main entry point for the releasegate CLI."""
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        print(USAGE, file=sys.stderr)
        sys.exit(1)

    setup_from_settings(get_settings())

    try:
        code = COMMANDS[sys.argv[1]](sys.argv[2:])
    except WorkflowError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        code = 1
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
