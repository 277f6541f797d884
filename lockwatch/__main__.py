#!/usr/bin/env python3
"""
lockwatch CLI Entry Point

Inspect a Packrat project's reconciliation state, or serve the JSON-RPC
surface on stdio for an editor host.
"""

import sys
import argparse
import logging
import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import LockwatchConfig
from .engine import ReconciliationService
from .errors import ConfigError


# ─────────────────────────────────────────────────────────────────────────────
# Pretty Printing Helpers
# ─────────────────────────────────────────────────────────────────────────────

def format_timestamp(ts: Optional[datetime]) -> str:
    """Format timestamp for display"""
    if not ts:
        return "-"
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def format_hash(value: Optional[str]) -> str:
    if value is None:
        return "(unreadable)"
    return value or "(empty)"


def print_table(headers: list[str], rows: list[list[str]]) -> None:
    """Print a formatted table"""
    if not rows:
        print("  (no data)")
        return

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    print(f"  {header_line}")
    print(f"  {'-' * len(header_line)}")

    for row in rows:
        print("  " + " | ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)))


def print_json(value) -> None:
    print(json.dumps(value, indent=2))


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────

def cmd_status(service: ReconciliationService, args: argparse.Namespace) -> int:
    """Mark current state observed and show pending actions"""
    print_json(service.annotate_pending_actions())
    return 0


def cmd_context(service: ReconciliationService, args: argparse.Namespace) -> int:
    print_json(service.context_as_json())
    return 0


def cmd_options(service: ReconciliationService, args: argparse.Namespace) -> int:
    print_json(service.options_as_json())
    return 0


def cmd_hashes(service: ReconciliationService, args: argparse.Namespace) -> int:
    """Show resolved/observed/computed hashes per artifact"""
    report = service.hash_report()
    if args.json:
        print_json(report)
        return 0

    print(f"\n🔐 Hashes ({service.project_dir})\n")
    rows = [
        [artifact, format_hash(tiers["resolved"]), format_hash(tiers["observed"]), format_hash(tiers["computed"])]
        for artifact, tiers in report.items()
    ]
    print_table(["artifact", "resolved", "observed", "computed"], rows)
    print()
    return 0


def cmd_transitions(service: ReconciliationService, args: argparse.Namespace) -> int:
    """Show stored hash change history"""
    transitions = service.store.get_transitions(limit=args.last)

    print(f"\n🔄 Transitions (last {args.last}, project: {service.project_dir})\n")

    if not transitions:
        print("  (no transitions recorded)")
    else:
        for t in reversed(transitions):  # Show oldest first
            print(f"  {format_timestamp(t.timestamp)} | {t.key}")
            print(f"    {t.old_value or 'null'} → {t.new_value or 'null'}")
            if t.trigger:
                print(f"    trigger: {t.trigger}")
            print()

    return 0


def cmd_serve(service: ReconciliationService, args: argparse.Namespace) -> int:
    from .rpc.server import RpcCore
    from .rpc.stdio import run_stdio_server

    asyncio.run(run_stdio_server(RpcCore(service)))
    return 0


COMMANDS = {
    "status": cmd_status,
    "context": cmd_context,
    "options": cmd_options,
    "hashes": cmd_hashes,
    "transitions": cmd_transitions,
    "serve": cmd_serve,
}


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Packrat lockfile and library reconciliation",
        prog="lockwatch"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--project", "-p",
        default=".",
        help="Project directory (default: current directory)"
    )

    parser.add_argument(
        "--db",
        help="Path to SQLite state database (default: $LOCKWATCH_DB_PATH or ~/.local/share/lockwatch/state.sqlite)"
    )

    parser.add_argument(
        "--rscript",
        help="Rscript executable (default: $LOCKWATCH_RSCRIPT or Rscript)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("status", help="Mark state observed and list pending actions")
    subparsers.add_parser("context", help="Show Packrat availability and mode")
    subparsers.add_parser("options", help="Show Packrat project options")

    hashes_parser = subparsers.add_parser("hashes", help="Show stored and computed hashes")
    hashes_parser.add_argument("--json", action="store_true", help="Print as JSON")

    trans_parser = subparsers.add_parser("transitions", help="Show stored hash history")
    trans_parser.add_argument("--last", "-n", type=int, default=20, help="Number of transitions to show (default: 20)")

    subparsers.add_parser("serve", help="Serve the JSON-RPC surface on stdio")

    args = parser.parse_args()

    # Configure logging; stdout belongs to the RPC stream when serving
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr
    )

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    project_dir = str(Path(args.project).resolve())
    try:
        config = LockwatchConfig.from_env(project_dir, db_path=args.db, rscript=args.rscript)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    service = ReconciliationService.create(config)
    try:
        return command(service, args)
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
