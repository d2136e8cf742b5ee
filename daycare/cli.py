"""
daycare - operator commands for the daycare backend.

Usage examples:
  daycare bootstrap
  daycare migrate
  daycare rollover
  daycare rollover --date 2024-05-01
  daycare create-admin --username matron --password 'secret'
  daycare --env-file /srv/daycare/.env rollover

The rollover command is what the nightly scheduler (cron, systemd timer) runs
shortly after midnight local time. It closes out the previous day by default.
"""
import argparse
import json
import logging
import sys
from datetime import date

from dotenv import load_dotenv

DEFAULT_ENV_PATH = ".env"

logger = logging.getLogger("daycare.cli")


def _ParseDate(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def BuildParser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="daycare", description="Daycare backend operator commands.")
    parser.add_argument("--env-file", default=DEFAULT_ENV_PATH, help="Load environment variables from this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("bootstrap", help="Create the database, login, schemas and grants.")
    subparsers.add_parser("migrate", help="Run alembic migrations to head.")

    rollover = subparsers.add_parser("rollover", help="Close out an elapsed day for every child.")
    rollover.add_argument("--date", type=_ParseDate, default=None, help="Day to close (default: yesterday).")

    admin = subparsers.add_parser("create-admin", help="Create or reset a daycare administrator login.")
    admin.add_argument("--username", required=True)
    admin.add_argument("--password", required=True)
    return parser


def _Print(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _RunBootstrap(args) -> int:
    from daycare.core.bootstrap import EnsureDatabaseSetup

    ran = EnsureDatabaseSetup()
    _Print({"status": "ok" if ran else "skipped"})
    return 0


def _RunMigrate(args) -> int:
    from daycare.core.migrations import RunMigrations

    RunMigrations()
    _Print({"status": "ok"})
    return 0


def _RolloverPayload(result) -> dict:
    return {
        "Date": result.TargetDate.isoformat(),
        "Attempted": result.Attempted,
        "Succeeded": result.Succeeded,
        "Failed": result.Failed,
        "MarkedAbsent": result.MarkedAbsent,
        "MarkedUnpaid": result.MarkedUnpaid,
        "Skipped": result.Skipped,
        "FailedChildIds": result.FailedChildIds,
    }


def _RunRollover(args) -> int:
    from daycare.db import OpenSession
    from daycare.modules.attendance.services.errors import DaycareError
    from daycare.modules.attendance.services.rollover_service import TRIGGER_SCHEDULE, RunDailyRollover

    db = OpenSession()
    try:
        result = RunDailyRollover(db, target_date=args.date, trigger=TRIGGER_SCHEDULE)
    except DaycareError as exc:
        _Print({"status": "error", "code": exc.code, "detail": exc.message})
        return 2
    finally:
        db.close()

    failed = result.Failed + sum(retry.Failed for retry in result.Retried)
    payload = _RolloverPayload(result)
    payload["Retried"] = [_RolloverPayload(retry) for retry in result.Retried]
    _Print({"status": "ok" if failed == 0 else "partial", **payload})
    return 0 if failed == 0 else 1


def _RunCreateAdmin(args) -> int:
    from daycare.db import OpenSession
    from daycare.modules.auth.service import EnsureAdminUser

    db = OpenSession()
    try:
        user = EnsureAdminUser(db, args.username, args.password)
    except ValueError as exc:
        _Print({"status": "error", "detail": str(exc)})
        return 2
    finally:
        db.close()
    _Print({"status": "ok", "UserId": user.Id, "Username": user.Username})
    return 0


_COMMANDS = {
    "bootstrap": _RunBootstrap,
    "migrate": _RunMigrate,
    "rollover": _RunRollover,
    "create-admin": _RunCreateAdmin,
}


def main(argv: list[str] | None = None) -> int:
    args = BuildParser().parse_args(argv)
    # Settings are read at import time, so the env file has to load before any daycare module.
    load_dotenv(args.env_file, override=False)

    from daycare.core.logging import setup_logging

    setup_logging()
    logger.info("command=%s", args.command)
    return _COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
