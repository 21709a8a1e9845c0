#!/usr/bin/env python3
"""
Work Tracker Board (console)
----------------------------
Runs a board sync session against a tracker server and prints the board.

Usage:
    python tracker_board.py watch [--table]          # refresh every 30s until Ctrl-C
    python tracker_board.py add --project Acme --priority High --description "fix bug"
    python tracker_board.py move 3 "In Review"

The server URL comes from TRACKER_API_URL / tracker.yaml (api_url) or --api-url.
"""

import argparse
import asyncio
import logging
import sys

from worktrack.board import (
    BoardSyncClient,
    BoardViewState,
    ItemForm,
    ViewMode,
    format_board,
)
from worktrack.client import TrackerClient
from worktrack.config import Config, configure_logging
from worktrack.errors import ConfigError
from worktrack.schema import FORM_FIELDS, Progress

logger = logging.getLogger("tracker_board")


def _printer(view: BoardViewState):
    def on_render(board):
        print(format_board(board, view), flush=True)
    return on_render


def _alert(message: str):
    print(f"[!] {message}", file=sys.stderr)


async def cmd_watch(client: BoardSyncClient):
    try:
        await client.run()
    except asyncio.CancelledError:
        client.stop()
        raise


async def cmd_add(client: BoardSyncClient, args) -> int:
    form = ItemForm()
    form.open()
    form.set(**{name: getattr(args, name) or "" for name in FORM_FIELDS})
    return 0 if await client.create_item(form) else 1


async def cmd_move(client: BoardSyncClient, args) -> int:
    progress = Progress.parse(args.progress)
    if progress is None:
        choices = ", ".join(p.value for p in Progress)
        print(f"Unknown progress {args.progress!r}. Choose one of: {choices}", file=sys.stderr)
        return 2
    await client.refresh()
    session = client.begin_drag(args.id)
    return 0 if await client.drop(session, progress) else 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Work Tracker Board")
    parser.add_argument("--config", help="Path to tracker.yaml")
    parser.add_argument("--api-url", help="Tracker server URL (overrides TRACKER_API_URL)")
    parser.add_argument("--table", action="store_true", help="Show the table view")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("watch", help="Poll the server and print the board")

    add = sub.add_parser("add", help="Create an item")
    add.add_argument("--project", required=True)
    add.add_argument("--description")
    add.add_argument("--due-date", dest="dueDate")
    add.add_argument("--priority")
    add.add_argument("--requester")
    add.add_argument("--assignee")
    add.add_argument("--category")

    move = sub.add_parser("move", help="Change an item's progress")
    move.add_argument("id", type=int)
    move.add_argument("progress")

    args = parser.parse_args(argv)

    try:
        cfg = Config.load(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    configure_logging(cfg.log_level, "tracker_board")

    view = BoardViewState(ViewMode.TABLE if args.table else ViewMode.KANBAN)
    api = TrackerClient(args.api_url or cfg.api_url, timeout=cfg.request_timeout)
    client = BoardSyncClient(
        api,
        refresh_interval=cfg.refresh_interval,
        alert=_alert,
        on_render=_printer(view),
    )

    command = args.command or "watch"
    try:
        if command == "add":
            return asyncio.run(cmd_add(client, args))
        if command == "move":
            return asyncio.run(cmd_move(client, args))
        asyncio.run(cmd_watch(client))
    except KeyboardInterrupt:
        logger.info("Stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
