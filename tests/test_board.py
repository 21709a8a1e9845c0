"""
Tests for the board sync client.

Covers:
    - render_board / format_board / render_board_html — both presentations
    - BoardViewState, ItemForm, DragSession           — explicit view state
    - refresh()      — rebuild from scratch, idempotent, failure keeps board
    - create_item()  — close + reset + refresh, alert on failure
    - move_item()    — optimistic local phase, reconcile or revert by refresh
    - run()          — polling continues through failures
"""
import asyncio
import threading
from unittest.mock import MagicMock

import pytest
import requests

from worktrack.board import (
    CREATE_FAILED_MESSAGE,
    BoardSyncClient,
    BoardViewState,
    ItemForm,
    ViewMode,
    format_board,
    render_board,
    render_board_html,
)
from worktrack.client import TrackerClient
from worktrack.errors import TrackerApiError
from worktrack.schema import Item, Priority, Progress


class FakeApi:
    """Tracker API over an ItemService, with switchable failures."""

    def __init__(self, service):
        self.service = service
        self.fail_list = False
        self.fail_create = False
        self.fail_update = False
        self.list_calls = 0
        self.updates = []

    def _check(self, result):
        if not result.ok:
            raise TrackerApiError(result.error, status=result.status)
        return result

    def list_items(self):
        self.list_calls += 1
        if self.fail_list:
            raise TrackerApiError("connection refused")
        return self._check(self.service.list_items()).items

    def create_item(self, fields):
        if self.fail_create:
            raise TrackerApiError("connection refused")
        return self._check(self.service.create_item(fields)).to_payload()

    def update_progress(self, item_id, progress):
        self.updates.append((item_id, progress))
        if self.fail_update:
            raise TrackerApiError("POST failed", status=500)
        return self._check(self.service.update_progress(item_id, progress)).to_payload()


@pytest.fixture
def api(service):
    return FakeApi(service)


@pytest.fixture
def renders():
    return []


@pytest.fixture
def alerts():
    return []


@pytest.fixture
def board(api, renders, alerts):
    return BoardSyncClient(api, alert=alerts.append, on_render=renders.append)


def _items():
    return [
        Item(id=2, project="Acme", description="fix bug", due_date="2024-01-01",
             progress=Progress.IN_PROGRESS, priority=Priority.HIGH),
        Item(id=3, project="Globex", priority=Priority.LOW),
    ]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Rendering
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestRender:

    def test_columns_in_fixed_order(self):
        render = render_board(_items())
        assert list(render.columns) == list(Progress)
        assert render.card_ids(Progress.IN_PROGRESS) == [2]
        assert render.card_ids(Progress.NOT_STARTED) == [3]
        assert render.card_ids(Progress.DONE) == []

    def test_card_labels(self):
        render = render_board(_items())
        acme = render.columns[Progress.IN_PROGRESS][0]
        globex = render.columns[Progress.NOT_STARTED][0]
        assert acme.due_label == "2024-01-01"
        assert acme.priority_class == "high"
        assert globex.due_label == "No due date"

    def test_table_rows(self):
        render = render_board(_items())
        assert render.table[1].cells == (
            "Globex", "", "-", "Not Started", "Low", "", "", "",
        )

    def test_moved_relocates_card(self):
        render = render_board(_items())
        moved = render.moved(3, Progress.DONE)
        assert moved.card_ids(Progress.DONE) == [3]
        assert moved.card_ids(Progress.NOT_STARTED) == []
        assert render.card_ids(Progress.NOT_STARTED) == [3]

    def test_moved_unknown_card_is_noop(self):
        render = render_board(_items())
        assert render.moved(99, Progress.DONE) == render

    def test_format_kanban(self):
        text = format_board(render_board(_items()), BoardViewState())
        assert "== In Progress (1) ==" in text
        assert "#2 Acme [High] 2024-01-01" in text
        assert "fix bug" in text

    def test_format_table(self):
        text = format_board(render_board(_items()), BoardViewState(ViewMode.TABLE))
        lines = text.splitlines()
        assert lines[0].startswith("Project")
        assert lines[2].startswith("Acme")

    def test_html_escapes_text(self):
        items = [Item(id=2, project="<b>x</b>", description="a & b")]
        out = render_board_html(render_board(items), BoardViewState())
        assert "&lt;b&gt;x&lt;/b&gt;" in out
        assert "a &amp; b" in out
        assert 'class="kanban-card priority-medium"' in out


class TestViewState:

    def test_toggle(self):
        view = BoardViewState()
        assert view.toggle_label == "Switch to Table View"
        assert view.toggle() == ViewMode.TABLE
        assert view.toggle_label == "Switch to Kanban View"
        assert view.toggle() == ViewMode.KANBAN

    def test_form_rejects_unknown_field(self):
        with pytest.raises(KeyError):
            ItemForm().set(progress="Done")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Refresh
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.asyncio
async def test_refresh_builds_board(board):
    assert await board.refresh()
    assert [i.id for i in board.snapshot] == [2, 3]
    assert board.board.card_ids(Progress.IN_PROGRESS) == [2]


@pytest.mark.asyncio
async def test_refresh_is_idempotent(board, renders):
    await board.refresh()
    await board.refresh()
    assert len(renders) == 2
    assert renders[0] == renders[1]


@pytest.mark.asyncio
async def test_refresh_replaces_previous_render(board, service):
    await board.refresh()
    service.update_progress(2, "Done")
    await board.refresh()
    assert board.board.card_ids(Progress.IN_PROGRESS) == []
    assert board.board.card_ids(Progress.DONE) == [2]


@pytest.mark.asyncio
async def test_failed_refresh_keeps_board(board, api, renders):
    await board.refresh()
    before = board.board
    api.fail_list = True
    assert not await board.refresh()
    assert board.board == before
    assert len(renders) == 1


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Create
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.asyncio
async def test_create_closes_form_and_refreshes(board):
    await board.refresh()
    form = ItemForm()
    form.open()
    form.set(project="Initech", description="TPS reports", dueDate="2024-04-01",
             priority="High", requester="Bill", assignee="Peter", category="Ops")

    assert await board.create_item(form)
    assert not form.is_open
    assert form.values["project"] == ""

    assert len(board.snapshot) == 3
    new = board.snapshot[-1]
    assert new.progress == Progress.NOT_STARTED
    assert (new.project, new.description, new.due_date) == ("Initech", "TPS reports", "2024-04-01")
    assert new.priority == Priority.HIGH
    assert (new.requester, new.assignee, new.category) == ("Bill", "Peter", "Ops")


@pytest.mark.asyncio
async def test_create_failure_alerts_and_keeps_form(board, api, alerts):
    api.fail_create = True
    form = ItemForm()
    form.open()
    form.set(project="Initech")

    assert not await board.create_item(form)
    assert alerts == [CREATE_FAILED_MESSAGE]
    assert form.is_open
    assert form.values["project"] == "Initech"
    assert api.list_calls == 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Move (optimistic update)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.asyncio
async def test_move_applies_locally_then_reconciles(board, renders):
    await board.refresh()
    assert await board.move_item(3, Progress.DONE)

    optimistic, reconciled = renders[1], renders[2]
    assert optimistic.card_ids(Progress.DONE) == [3]
    assert reconciled.card_ids(Progress.DONE) == [3]
    assert board.snapshot[1].progress == Progress.DONE


@pytest.mark.asyncio
@pytest.mark.parametrize("progress", list(Progress))
async def test_move_then_refresh_for_every_progress(board, progress):
    await board.refresh()
    before = board.snapshot[0]
    await board.move_item(2, progress)
    await board.refresh()
    after = board.snapshot[0]
    assert after == before.with_progress(progress)


@pytest.mark.asyncio
async def test_move_failure_reverts_by_refresh(board, api, renders):
    await board.refresh()
    api.fail_update = True

    assert not await board.move_item(3, Progress.DONE)
    assert renders[1].card_ids(Progress.DONE) == [3]
    assert board.board.card_ids(Progress.DONE) == []
    assert board.board.card_ids(Progress.NOT_STARTED) == [3]
    assert api.list_calls == 2


@pytest.mark.asyncio
async def test_move_survives_malformed_refresh(renders, alerts):
    def response(body):
        r = MagicMock()
        r.ok = True
        r.status_code = 200
        r.json.return_value = body
        return r

    good = [{"id": 2, "project": "Acme", "progress": "In Progress"}, {"id": 3, "project": "Globex"}]
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = [
        response(good),
        response({"success": True}),
        response([{"project": "Globex"}]),
        response([good[0], dict(good[1], progress="Done")]),
    ]
    board = BoardSyncClient(TrackerClient("http://tracker.local", session=session),
                            alert=alerts.append, on_render=renders.append)

    await board.refresh()
    assert await board.move_item(3, Progress.DONE)
    assert board.board.card_ids(Progress.DONE) == [3]

    assert await board.refresh()
    assert board.board.card_ids(Progress.DONE) == [3]
    assert session.request.call_count == 4


@pytest.mark.asyncio
async def test_move_picks_up_concurrent_edits(board, service):
    await board.refresh()
    # Another client moves item 2 while we are looking at the old board
    service.update_progress(2, "In Review")
    await board.move_item(3, Progress.DONE)
    assert board.board.card_ids(Progress.IN_REVIEW) == [2]
    assert board.board.card_ids(Progress.DONE) == [3]


@pytest.mark.asyncio
async def test_move_rejects_unknown_progress(board, api):
    with pytest.raises(ValueError):
        await board.move_item(2, "Blocked")
    assert api.updates == []


@pytest.mark.asyncio
async def test_drag_session(board):
    await board.refresh()
    session = board.begin_drag(3)
    assert session.source == Progress.NOT_STARTED

    assert await board.drop(session, Progress.IN_REVIEW)
    assert board.board.card_ids(Progress.IN_REVIEW) == [3]

    with pytest.raises(ValueError):
        await board.drop(session, Progress.DONE)


@pytest.mark.asyncio
async def test_last_refresh_to_complete_wins(service):
    """A slow refresh that finishes late overwrites a newer one."""
    gate = threading.Event()

    class SlowFirstApi(FakeApi):
        def list_items(self):
            items = super().list_items()
            if self.list_calls == 1:
                gate.wait(timeout=5)
            return items

    board = BoardSyncClient(SlowFirstApi(service))
    slow = asyncio.ensure_future(board.refresh())
    await asyncio.sleep(0.1)

    service.update_progress(3, "Done")
    await board.refresh()
    assert board.board.card_ids(Progress.DONE) == [3]

    gate.set()
    await slow
    # Stale snapshot from the first fetch is what's showing now
    assert board.board.card_ids(Progress.DONE) == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Polling loop
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.asyncio
async def test_polling_refreshes_on_interval(api):
    board = BoardSyncClient(api, refresh_interval=0.02)
    runner = asyncio.ensure_future(board.run())
    await asyncio.sleep(0.15)
    board.stop()
    await asyncio.wait_for(runner, timeout=2)
    assert api.list_calls >= 3
    assert len(board.snapshot) == 2


@pytest.mark.asyncio
async def test_polling_continues_after_failures(api):
    api.fail_list = True
    board = BoardSyncClient(api, refresh_interval=0.02)
    runner = asyncio.ensure_future(board.run())
    await asyncio.sleep(0.1)
    api.fail_list = False
    await asyncio.sleep(0.1)
    board.stop()
    await asyncio.wait_for(runner, timeout=2)
    assert len(board.snapshot) == 2


@pytest.mark.asyncio
async def test_stop_before_run_returns_after_initial_load(api):
    board = BoardSyncClient(api, refresh_interval=10)
    board.stop()
    await asyncio.wait_for(board.run(), timeout=2)
    assert api.list_calls == 1
