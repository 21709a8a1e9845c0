#!/usr/bin/env python3
"""
Work Tracker Server
-------------------
Serves the tracker JSON API backed by a Google Sheet (one row per item).

Usage:
    cd /path/to/worktrack
    python tracker_server.py                 # Google Sheet from .env / tracker.yaml
    python tracker_server.py --memory        # in-process table, for local runs

Configuration (environment or tracker.yaml):
    GOOGLE_SPREADSHEET_ID      spreadsheet to use
    GOOGLE_CREDENTIALS_JSON    service account JSON (hosted deploys)
    GOOGLE_CREDENTIALS_PATH    service account key file (local development)
    PORT                       listen port (default 3000)

API:
    GET /                          → read-only board page, reloads every 30s
    GET /api/items                 → JSON array of items
    POST /api/items                → JSON body: { project, description, dueDate,
                                     priority, requester, assignee, category }
                                     Returns: { success: true }
    PUT /api/items/<id>/progress   → JSON body: { progress }
                                     Returns: { success: true }
    GET /health                    → { status, store, sheet }

Failures return { error } with status 500 (store unavailable) or 400 (bad input).
"""

import logging
import sys

from flask import Flask, jsonify, request, abort

from worktrack.board import BoardViewState, ViewMode, render_board, render_board_html
from worktrack.config import Config, configure_logging
from worktrack.errors import ConfigError
from worktrack.service import ItemService, ServiceResult
from worktrack.sheets import MemoryRowStore, SheetsRowStore
from worktrack.store import ItemSheetAdapter

logger = logging.getLogger("tracker_server")

app = Flask(__name__)

PAGE_REFRESH_SECONDS = 30


# ── Service wiring ───────────────────────────────────────────────────────────

# Header row written when the in-memory table starts empty
_HEADER_ROW = (
    "Project", "Description", "Due Date", "Progress", "Priority",
    "Requester", "Assignee", "Category", "Date Submitted",
)


def init_service(service: ItemService) -> ItemService:
    """Attach the item service the routes use."""
    app.config["ITEM_SERVICE"] = service
    return service


def build_service(cfg: Config, memory: bool = False) -> ItemService:
    """Build the service stack from config. Raises ConfigError if unusable."""
    if memory:
        row_store = MemoryRowStore([list(_HEADER_ROW)])
    else:
        cfg.require_store()
        row_store = SheetsRowStore.from_config(cfg)
    return ItemService(ItemSheetAdapter(row_store, sheet_name=cfg.sheet_name))


def _service() -> ItemService:
    service = app.config.get("ITEM_SERVICE")
    if service is None:
        abort(503, "Item service not configured")
    return service


def _respond(result: ServiceResult):
    return jsonify(result.to_payload()), (200 if result.ok else result.status)


# ── Routes ───────────────────────────────────────────────────────────────────

@app.route("/")
def index():
    """Server-rendered board snapshot; the page reloads itself to pick up changes."""
    result = _service().list_items()
    if not result.ok:
        return result.error, result.status
    view = BoardViewState(
        ViewMode.TABLE if request.args.get("view") == "table" else ViewMode.KANBAN
    )
    body = render_board_html(render_board(result.items), view)
    return (
        "<!doctype html><html><head><meta charset=\"utf-8\">"
        f"<meta http-equiv=\"refresh\" content=\"{PAGE_REFRESH_SECONDS}\">"
        "<title>Work Tracker</title></head><body>"
        f"{body}</body></html>"
    )


@app.route("/api/items", methods=["GET"])
def api_list_items():
    result = _service().list_items()
    if not result.ok:
        return _respond(result)
    return jsonify([item.to_dict() for item in result.items])


@app.route("/api/items", methods=["POST"])
def api_create_item():
    data = request.get_json(force=True, silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    return _respond(_service().create_item(data))


@app.route("/api/items/<item_id>/progress", methods=["PUT"])
def api_update_progress(item_id):
    data = request.get_json(force=True, silent=True) or {}
    progress = data.get("progress", "") if isinstance(data, dict) else ""
    return _respond(_service().update_progress(item_id, progress))


@app.route("/health")
def health():
    return jsonify({"status": "ok", **_service().describe()})


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Work Tracker Server")
    parser.add_argument("--config", help="Path to tracker.yaml")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, help="Listen port (overrides PORT)")
    parser.add_argument("--memory", action="store_true",
                        help="Use an in-process table instead of Google Sheets")
    args = parser.parse_args(argv)

    try:
        cfg = Config.load(args.config)
        configure_logging(cfg.log_level, "tracker_server")
        init_service(build_service(cfg, memory=args.memory))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    host = args.host or cfg.host
    port = args.port or cfg.port
    logger.info(f"Server running at http://{host}:{port} (store: {_service().describe()['store']})")
    app.run(host=host, port=port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
