"""
Item service: the only writer of authoritative item state.

Each operation makes exactly one adapter call and reports the outcome as a
ServiceResult instead of raising, so the HTTP layer only has to translate
results into responses. A failed write is never compensated: whatever the
store committed before failing stays committed.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidItemError
from .schema import Item
from .store import ItemSheetAdapter

logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    """Outcome of one service call."""
    ok: bool
    items: List[Item] = field(default_factory=list)
    error: str = ""
    status: int = 200

    @classmethod
    def success(cls, items: Optional[List[Item]] = None) -> "ServiceResult":
        return cls(ok=True, items=items or [])

    @classmethod
    def failure(cls, error: str, status: int = 500) -> "ServiceResult":
        return cls(ok=False, error=error, status=status)

    def to_payload(self) -> Any:
        """JSON body: item list for reads, {success} for writes, {error} on failure."""
        if not self.ok:
            return {"error": self.error}
        return {"success": True}


class ItemService:
    """List / create / update-progress over an ItemSheetAdapter."""

    def __init__(self, adapter: ItemSheetAdapter):
        self.adapter = adapter

    def list_items(self) -> ServiceResult:
        try:
            items = self.adapter.list_items()
        except Exception:
            logger.exception("Error fetching items")
            return ServiceResult.failure("Failed to fetch items")
        return ServiceResult.success(items)

    def create_item(self, fields: Optional[Mapping[str, Any]]) -> ServiceResult:
        try:
            self.adapter.append_item(fields or {})
        except InvalidItemError as e:
            logger.warning("Rejected new item: %s", e)
            return ServiceResult.failure(str(e), status=400)
        except Exception:
            logger.exception("Error adding item")
            return ServiceResult.failure("Failed to add item")
        return ServiceResult.success()

    def update_progress(self, item_id: Any, progress: Any) -> ServiceResult:
        try:
            self.adapter.update_progress(item_id, progress)
        except InvalidItemError as e:
            logger.warning("Rejected progress update for %s: %s", item_id, e)
            return ServiceResult.failure(str(e), status=400)
        except Exception:
            logger.exception("Error updating item %s", item_id)
            return ServiceResult.failure("Failed to update item")
        return ServiceResult.success()

    def describe(self) -> Dict[str, str]:
        return {
            "store": self.adapter.row_store.describe(),
            "sheet": self.adapter.sheet_name,
        }
