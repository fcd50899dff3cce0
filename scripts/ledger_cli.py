#!/usr/bin/env python3
"""
Operator commands for the ledger.

  init-db     create the schema (--drop to recreate it from scratch)
  bootstrap   seed default categories and create the Owner
  sweep       run the recurring sweep once, or keep running with --loop

Settings come from ledger_config (packaged defaults, LEDGER_CONFIG_PATH,
LEDGER_* environment overrides); --db-url overrides the database URL.

Usage:
  python3 scripts/ledger_cli.py init-db [--drop]
  python3 scripts/ledger_cli.py bootstrap [--owner-password PASSWORD]
  python3 scripts/ledger_cli.py sweep [--loop]
"""

import argparse
import os
import secrets
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from ledger_config import get_active_config  # noqa: E402
from ledger_kernel.db.engine import (  # noqa: E402
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from ledger_kernel.logging_config import configure_logging, get_logger  # noqa: E402

logger = get_logger("scripts.cli")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Tenant ledger operator commands")
    p.add_argument("--db-url", default=None, help="Database URL (default: from settings)")
    p.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    sub = p.add_subparsers(dest="command", required=True)

    init_db = sub.add_parser("init-db", help="Create database tables")
    init_db.add_argument("--drop", action="store_true", help="Drop existing tables first")

    bootstrap = sub.add_parser("bootstrap", help="Seed default categories and the Owner")
    bootstrap.add_argument(
        "--owner-password",
        default=os.environ.get("LEDGER_OWNER_PASSWORD"),
        help="Password for a newly created Owner (default: LEDGER_OWNER_PASSWORD, or random)",
    )

    sweep = sub.add_parser("sweep", help="Execute due recurring transactions")
    sweep.add_argument("--loop", action="store_true", help="Keep sweeping at the configured interval")
    return p.parse_args(argv)


def cmd_init_db(args: argparse.Namespace) -> int:
    if args.drop:
        drop_tables()
        print("  Dropped existing tables.")
    create_tables()
    print("  Schema ready.")
    return 0


def cmd_bootstrap(args: argparse.Namespace, settings) -> int:
    from ledger_kernel.services.bootstrap_service import BootstrapService

    password = args.owner_password or secrets.token_urlsafe(12)
    with session_scope() as session:
        service = BootstrapService(session)
        created = service.seed_default_categories(
            [
                {"name": c.name, "color": c.color, "description": c.description}
                for c in settings.default_categories
            ]
        )
        owner, owner_created = service.ensure_owner(
            username=settings.owner.username,
            email=settings.owner.email,
            password=password,
            first_name=settings.owner.first_name,
            last_name=settings.owner.last_name,
        )
        owner_name = owner.username

    print(f"  Default categories created: {len(created)}")
    if owner_created:
        print(f"  Owner created: {owner_name}")
        if not args.owner_password:
            print(f"  Generated owner password: {password}")
    else:
        print(f"  Owner already exists: {owner_name}")
    return 0


def cmd_sweep(args: argparse.Namespace, settings) -> int:
    from ledger_batch import RecurringSweepScheduler

    scheduler = RecurringSweepScheduler(
        get_session_factory(),
        interval_seconds=settings.sweep_interval_seconds,
        group_admin_records=settings.group_admin_records,
    )
    if not args.loop:
        result = scheduler.tick()
        if result is None:
            print("  Sweep failed; see log.", file=sys.stderr)
            return 1
        print(
            f"  Sweep {result.run_date}: executed={result.executed_count} "
            f"failed={result.failed_count} ended={len(result.ended)}"
        )
        return 0 if not result.failed else 2

    scheduler.start()
    print(f"  Sweeping every {settings.sweep_interval_seconds}s; Ctrl-C to stop.")
    try:
        while scheduler.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        print("  Stopping...")
    finally:
        scheduler.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(level=args.log_level.upper())
    logger.info("cli_command", extra={"command": args.command})
    settings = get_active_config()

    try:
        init_engine_from_url(args.db_url or settings.database_url, echo=settings.echo_sql)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    if args.command == "init-db":
        return cmd_init_db(args)
    if args.command == "bootstrap":
        return cmd_bootstrap(args, settings)
    return cmd_sweep(args, settings)


if __name__ == "__main__":
    sys.exit(main())
