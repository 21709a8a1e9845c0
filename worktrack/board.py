"""
Board sync client.

Keeps a full snapshot of the items, renders it as kanban columns and as a flat
table, and applies drag-initiated progress changes optimistically:

  1. local phase   - the card is moved to the target column right away
  2. reconcile     - the change is sent to the server, then the board is
                     rebuilt from a fresh fetch whether the write succeeded
                     or not (a failed write is reverted by that refetch)

A polling loop refetches every ``refresh_interval`` seconds so edits made by
other clients show up. Nothing is final until a refresh confirms it; the last
refresh to complete wins.

All operations run on one asyncio loop. Blocking HTTP calls go through
asyncio.to_thread, so user actions and timer ticks can interleave while a
request is in flight.
"""
import asyncio
import html
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .errors import TrackerApiError
from .schema import FORM_FIELDS, Item, Progress

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 30.0
CREATE_FAILED_MESSAGE = "Failed to add item. Please try again."

TABLE_HEADERS: Tuple[str, ...] = (
    "Project",
    "Description",
    "Due Date",
    "Progress",
    "Priority",
    "Requester",
    "Assignee",
    "Category",
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# View state
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ViewMode(Enum):
    KANBAN = "kanban"
    TABLE = "table"


@dataclass
class BoardViewState:
    """Which presentation is showing. Passed explicitly to formatters."""
    mode: ViewMode = ViewMode.KANBAN

    def toggle(self) -> ViewMode:
        self.mode = ViewMode.TABLE if self.mode == ViewMode.KANBAN else ViewMode.KANBAN
        return self.mode

    @property
    def toggle_label(self) -> str:
        if self.mode == ViewMode.KANBAN:
            return "Switch to Table View"
        return "Switch to Kanban View"


@dataclass
class ItemForm:
    """Entry form state: field values plus whether the form is showing."""
    values: Dict[str, str] = field(default_factory=lambda: {name: "" for name in FORM_FIELDS})
    is_open: bool = False

    def open(self):
        self.is_open = True

    def close(self):
        self.is_open = False

    def reset(self):
        self.values = {name: "" for name in FORM_FIELDS}

    def set(self, **values: str):
        for name, value in values.items():
            if name not in FORM_FIELDS:
                raise KeyError(f"Unknown form field: {name}")
            self.values[name] = value


@dataclass
class DragSession:
    """One drag gesture. Scoped to the gesture, dropped at most once."""
    item_id: int
    source: Optional[Progress]
    dropped: bool = False


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Rendering
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class CardView:
    """A kanban card as displayed."""
    id: int
    title: str
    description: str
    due_label: str
    priority_label: str
    priority_class: str

    @classmethod
    def from_item(cls, item: Item) -> "CardView":
        return cls(
            id=item.id,
            title=item.project,
            description=item.description,
            due_label=item.due_date or "No due date",
            priority_label=item.priority.value,
            priority_class=item.priority.value.lower(),
        )


@dataclass(frozen=True)
class TableRow:
    id: int
    cells: Tuple[str, ...]

    @classmethod
    def from_item(cls, item: Item) -> "TableRow":
        return cls(
            id=item.id,
            cells=(
                item.project,
                item.description,
                item.due_date or "-",
                item.progress.value,
                item.priority.value,
                item.requester,
                item.assignee,
                item.category,
            ),
        )


@dataclass
class BoardRender:
    """Both presentations, built from one snapshot."""
    columns: Dict[Progress, List[CardView]]
    table: List[TableRow]

    def column_of(self, item_id: int) -> Optional[Progress]:
        for progress, cards in self.columns.items():
            if any(card.id == item_id for card in cards):
                return progress
        return None

    def card_ids(self, progress: Progress) -> List[int]:
        return [card.id for card in self.columns[progress]]

    def moved(self, item_id: int, progress: Progress) -> "BoardRender":
        """Copy of this render with one card appended to another column."""
        columns = {p: list(cards) for p, cards in self.columns.items()}
        card = None
        for cards in columns.values():
            for i, candidate in enumerate(cards):
                if candidate.id == item_id:
                    card = cards.pop(i)
                    break
            if card is not None:
                break
        if card is None:
            return replace(self, columns=columns)
        columns[progress].append(card)
        return BoardRender(columns=columns, table=list(self.table))


def render_kanban(items: List[Item]) -> Dict[Progress, List[CardView]]:
    columns: Dict[Progress, List[CardView]] = {p: [] for p in Progress}
    for item in items:
        columns[item.progress].append(CardView.from_item(item))
    return columns


def render_table(items: List[Item]) -> List[TableRow]:
    return [TableRow.from_item(item) for item in items]


def render_board(items: List[Item]) -> BoardRender:
    """Rebuild both presentations from scratch."""
    return BoardRender(columns=render_kanban(items), table=render_table(items))


def format_board(render: BoardRender, view: BoardViewState) -> str:
    """Plain-text rendering of whichever presentation ``view`` selects."""
    if view.mode == ViewMode.TABLE:
        return _format_table(render.table)
    return _format_kanban(render.columns)


def _format_kanban(columns: Dict[Progress, List[CardView]]) -> str:
    lines = []
    for progress, cards in columns.items():
        lines.append(f"== {progress.value} ({len(cards)}) ==")
        for card in cards:
            lines.append(f"  #{card.id} {card.title} [{card.priority_label}] {card.due_label}")
            if card.description:
                lines.append(f"      {card.description}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def _format_table(rows: List[TableRow]) -> str:
    grid = [TABLE_HEADERS] + [row.cells for row in rows]
    widths = [max(len(r[i]) for r in grid) for i in range(len(TABLE_HEADERS))]
    lines = []
    for n, cells in enumerate(grid):
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths)).rstrip())
        if n == 0:
            lines.append("  ".join("-" * w for w in widths))
    return "\n".join(lines) + "\n"


def render_board_html(render: BoardRender, view: BoardViewState) -> str:
    """HTML fragment for both presentations; all item text is escaped."""
    esc = html.escape
    kanban_display = "grid" if view.mode == ViewMode.KANBAN else "none"
    table_display = "block" if view.mode == ViewMode.TABLE else "none"

    parts = [f'<div id="kanbanView" class="kanban" style="display:{kanban_display}">']
    for progress, cards in render.columns.items():
        parts.append(
            f'<div class="kanban-column" data-status="{esc(progress.value)}">'
            f"<h3>{esc(progress.value)}</h3>"
            f'<div class="kanban-items" id="{progress.slug}">'
        )
        for card in cards:
            desc = f"<p>{esc(card.description)}</p>" if card.description else ""
            parts.append(
                f'<div class="kanban-card priority-{card.priority_class}" '
                f'draggable="true" data-id="{card.id}">'
                f"<h4>{esc(card.title)}</h4>{desc}"
                f'<div class="meta"><span class="due-date">{esc(card.due_label)}</span>'
                f'<span class="priority-badge {card.priority_class}">'
                f"{esc(card.priority_label)}</span></div></div>"
            )
        parts.append("</div></div>")
    parts.append("</div>")

    parts.append(f'<div id="tableView" style="display:{table_display}"><table><thead><tr>')
    parts.extend(f"<th>{esc(h)}</th>" for h in TABLE_HEADERS)
    parts.append('</tr></thead><tbody id="tableBody">')
    for row in render.table:
        parts.append("<tr>" + "".join(f"<td>{esc(c)}</td>" for c in row.cells) + "</tr>")
    parts.append("</tbody></table></div>")
    return "".join(parts)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sync client
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BoardSyncClient:
    """
    Client-side board state for one session.

    ``api`` is anything with list_items / create_item / update_progress
    (normally worktrack.client.TrackerClient). ``alert`` shows a message to
    the user; ``on_render`` is called with every new BoardRender.
    """

    def __init__(
        self,
        api,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        alert: Optional[Callable[[str], None]] = None,
        on_render: Optional[Callable[[BoardRender], None]] = None,
    ):
        self.api = api
        self.refresh_interval = refresh_interval
        self._alert = alert
        self._on_render = on_render
        self.snapshot: List[Item] = []
        self.board: BoardRender = render_board([])
        self._stop = asyncio.Event()
        self._ticks: Set[asyncio.Task] = set()

    def _show(self, board: BoardRender):
        self.board = board
        if self._on_render:
            self._on_render(board)

    # ──────────────────────────────────────────
    # Refresh
    # ──────────────────────────────────────────

    async def refresh(self) -> bool:
        """Fetch every item and rebuild both presentations. False if the fetch failed."""
        try:
            items = await asyncio.to_thread(self.api.list_items)
        except TrackerApiError as e:
            logger.warning(f"Error loading items: {e}")
            return False
        self.snapshot = list(items)
        self._show(render_board(self.snapshot))
        return True

    # ──────────────────────────────────────────
    # Create
    # ──────────────────────────────────────────

    async def create_item(self, form: ItemForm) -> bool:
        """Submit the form. On failure alert and leave the form as it was."""
        try:
            await asyncio.to_thread(self.api.create_item, dict(form.values))
        except TrackerApiError as e:
            logger.error(f"Error adding item: {e}")
            if self._alert:
                self._alert(CREATE_FAILED_MESSAGE)
            return False
        form.close()
        form.reset()
        await self.refresh()
        return True

    # ──────────────────────────────────────────
    # Drag and drop
    # ──────────────────────────────────────────

    def begin_drag(self, item_id: int) -> DragSession:
        return DragSession(item_id=item_id, source=self.board.column_of(item_id))

    async def drop(self, session: DragSession, progress: Progress) -> bool:
        if session.dropped:
            raise ValueError(f"Drag of item {session.item_id} was already dropped")
        session.dropped = True
        return await self.move_item(session.item_id, progress)

    async def move_item(self, item_id: int, progress: Progress) -> bool:
        """
        Optimistic progress change. Returns whether the server accepted it;
        either way the board ends up showing the refetched state.
        """
        target = Progress.parse(progress)
        if target is None:
            raise ValueError(f"Invalid progress: {progress}")

        # Local phase
        self._show(self.board.moved(item_id, target))

        # Reconciliation phase
        try:
            await asyncio.to_thread(self.api.update_progress, item_id, target)
        except TrackerApiError as e:
            logger.error(f"Error updating progress for item {item_id}: {e}")
            await self.refresh()
            return False
        await self.refresh()
        return True

    # ──────────────────────────────────────────
    # Polling loop
    # ──────────────────────────────────────────

    def _spawn_refresh(self):
        # Ticks are not awaited: a slow refresh may finish after a newer one
        task = asyncio.get_running_loop().create_task(self._tick())
        self._ticks.add(task)
        task.add_done_callback(self._ticks.discard)

    async def _tick(self):
        try:
            await self.refresh()
        except Exception:
            logger.exception("Board refresh failed")

    async def run(self):
        """Initial load, then refresh every interval until stop() is called."""
        self._spawn_refresh()
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.refresh_interval)
            except asyncio.TimeoutError:
                self._spawn_refresh()
        if self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)

    def stop(self):
        self._stop.set()
