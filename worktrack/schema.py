"""
Work item schema.

Sheet layout (one row per item, row 1 is the header):
  A project | B description | C due date | D progress | E priority
  F requester | G assignee | H category | I date submitted

An item's id is its sheet row number, so the first data row is id 2.
"""
from enum import Enum
from dataclasses import dataclass, replace
from typing import Optional, List, Dict, Any, Tuple


# Fixed positional column order, shared by reads and writes
COLUMNS: Tuple[str, ...] = (
    "project",
    "description",
    "dueDate",
    "progress",
    "priority",
    "requester",
    "assignee",
    "category",
    "dateSubmitted",
)

# Fields accepted from the entry form (progress and dateSubmitted are server-set)
FORM_FIELDS: Tuple[str, ...] = (
    "project",
    "description",
    "dueDate",
    "priority",
    "requester",
    "assignee",
    "category",
)

PROGRESS_COLUMN = COLUMNS.index("progress")

# Row 1 holds headers; data row N (0-based) lives on sheet row N + 2
FIRST_ITEM_ID = 2


class Progress(Enum):
    """Board columns, in display order."""
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    IN_REVIEW = "In Review"
    DONE = "Done"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "Progress":
        """Lenient parse used on read: unknown or blank becomes NOT_STARTED."""
        parsed = cls.parse(value)
        return parsed if parsed is not None else cls.NOT_STARTED

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Progress"]:
        """Strict parse. Accepts display values ("In Review") or names ("in_review")."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip()
        if not text:
            return None
        for member in cls:
            if text == member.value:
                return member
        try:
            return cls[text.upper().replace(" ", "_")]
        except KeyError:
            return None

    @property
    def slug(self) -> str:
        """camelCase column key, e.g. "inReview"."""
        head, *rest = self.name.lower().split("_")
        return head + "".join(part.title() for part in rest)


class Priority(Enum):
    """Item priority. Sheet values are matched case-insensitively."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "Priority":
        parsed = cls.parse(value)
        return parsed if parsed is not None else cls.MEDIUM

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Priority"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls[value.strip().upper()]
        except KeyError:
            return None


@dataclass
class Item:
    """One tracked work item, as read from the sheet."""

    id: int
    project: str = ""
    description: str = ""
    due_date: str = ""
    progress: Progress = Progress.NOT_STARTED
    priority: Priority = Priority.MEDIUM
    requester: str = ""
    assignee: str = ""
    category: str = ""
    date_submitted: str = ""

    @classmethod
    def from_row(cls, item_id: int, row: List[Any]) -> "Item":
        """Map a positional sheet row to an Item. Short rows take defaults."""
        cells = [("" if cell is None else str(cell)) for cell in row]
        cells += [""] * (len(COLUMNS) - len(cells))
        return cls(
            id=item_id,
            project=cells[0],
            description=cells[1],
            due_date=cells[2],
            progress=Progress.from_str(cells[3]),
            priority=Priority.from_str(cells[4]),
            requester=cells[5],
            assignee=cells[6],
            category=cells[7],
            date_submitted=cells[8],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the API's camelCase keys."""
        return {
            "id": self.id,
            "project": self.project,
            "description": self.description,
            "dueDate": self.due_date,
            "progress": self.progress.value,
            "priority": self.priority.value,
            "requester": self.requester,
            "assignee": self.assignee,
            "category": self.category,
            "dateSubmitted": self.date_submitted,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        """Deserialize an API payload."""
        return cls(
            id=int(data["id"]),
            project=data.get("project") or "",
            description=data.get("description") or "",
            due_date=data.get("dueDate") or "",
            progress=Progress.from_str(data.get("progress")),
            priority=Priority.from_str(data.get("priority")),
            requester=data.get("requester") or "",
            assignee=data.get("assignee") or "",
            category=data.get("category") or "",
            date_submitted=data.get("dateSubmitted") or "",
        )

    def with_progress(self, progress: Progress) -> "Item":
        return replace(self, progress=progress)
