from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, cast

from dotenv import load_dotenv

from beatsync.app import (
    process_webhook,
    replay_webhooks,
    run_beatdown_sync,
    run_city_rebuild,
    run_location_analysis,
)
from beatsync.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import FrameType

    from beatsync.domain.data_integration import SyncBeatdownsResult

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise F3 beatdowns into storage")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Run a full beatdown sync")
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and report the changes without writing anything",
    )
    cleanup = sync.add_mutually_exclusive_group()
    cleanup.add_argument(
        "--no-cleanup",
        action="store_true",
        help="Do not soft-delete beatdowns that disappeared upstream",
    )
    cleanup.add_argument(
        "--only-cleanup",
        action="store_true",
        help="Only soft-delete stale beatdowns; skip inserts and updates",
    )
    sync.add_argument(
        "--verbose",
        action="store_true",
        help="Log the changed fields of every written beatdown",
    )

    subparsers.add_parser(
        "analyze",
        help="Report location ids added or removed upstream relative to storage",
    )

    webhook = subparsers.add_parser("webhook", help="Process one webhook payload")
    webhook.add_argument(
        "--file",
        type=Path,
        help="Read the JSON payload from this file instead of stdin",
    )

    subparsers.add_parser("replay-webhooks", help="Re-process logged failed webhooks")

    cities = subparsers.add_parser(
        "cities", help="Rebuild the cities collection from the stored beatdowns"
    )
    cities.add_argument(
        "--dry-run",
        action="store_true",
        help="Aggregate and report the cities without writing them",
    )

    return parser.parse_args(list(argv))


def _read_payload(path: Path | None) -> Mapping[str, object]:
    raw = path.read_text(encoding="utf-8") if path is not None else sys.stdin.read()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Webhook payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Webhook payload must be a JSON object")
    return cast("Mapping[str, object]", payload)


def _log_changes(result: SyncBeatdownsResult) -> None:
    for doc_id, fields in sorted(result.diagnostics.changes.items()):
        log.info("%s: %s", doc_id, ", ".join(sorted(fields)))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        payload = (
            _read_payload(parsed_args.file) if parsed_args.command == "webhook" else None
        )
    except (ValueError, OSError):
        log.exception("CLI validation error")
        sys.exit(2)

    if getattr(parsed_args, "verbose", False):
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if parsed_args.command == "sync":
            result = run_beatdown_sync(
                dry_run=parsed_args.dry_run,
                cleanup=not parsed_args.no_cleanup,
                only_cleanup=parsed_args.only_cleanup,
            )
            if parsed_args.verbose:
                _log_changes(result)
        elif parsed_args.command == "analyze":
            analysis = run_location_analysis()
            log.info("Added location ids: %s", list(analysis.added))
            log.info("Deleted location ids: %s", list(analysis.deleted))
        elif parsed_args.command == "webhook" and payload is not None:
            outcome = process_webhook(payload)
            log.info("Webhook outcome: %s (%s)", outcome.outcome, outcome.detail or "")
        elif parsed_args.command == "replay-webhooks":
            summary = replay_webhooks()
            if summary.still_failing:
                sys.exit(1)
        elif parsed_args.command == "cities":
            rebuilt = run_city_rebuild(dry_run=parsed_args.dry_run)
            log.info(
                "Cities: %s aggregated, %s written in %s groups",
                len(rebuilt.aggregation.cities),
                rebuilt.written,
                rebuilt.groups,
            )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
