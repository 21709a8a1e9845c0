#!/usr/bin/env python3
"""
Quick verification that the tracker works end-to-end against an in-memory sheet.
"""
import asyncio

from worktrack.board import BoardSyncClient, BoardViewState, ItemForm, format_board
from worktrack.errors import TrackerApiError
from worktrack.schema import Progress
from worktrack.service import ItemService
from worktrack.sheets import MemoryRowStore
from worktrack.store import ItemSheetAdapter


class ServiceApi:
    """Calls the service directly, standing in for the HTTP hop."""

    def __init__(self, service: ItemService):
        self.service = service

    def _check(self, result):
        if not result.ok:
            raise TrackerApiError(result.error, status=result.status)
        return result

    def list_items(self):
        return self._check(self.service.list_items()).items

    def create_item(self, fields):
        return self._check(self.service.create_item(fields)).to_payload()

    def update_progress(self, item_id, progress):
        return self._check(self.service.update_progress(item_id, progress)).to_payload()


async def run_checks():
    print("\n[1/5] Creating in-memory sheet...")
    row_store = MemoryRowStore([["Project", "Description", "Due Date", "Progress",
                                 "Priority", "Requester", "Assignee", "Category",
                                 "Date Submitted"]])
    service = ItemService(ItemSheetAdapter(row_store))
    client = BoardSyncClient(ServiceApi(service))
    print("✅ Sheet created")

    print("\n[2/5] Initial refresh...")
    assert await client.refresh()
    assert client.snapshot == []
    print("✅ Empty board")

    print("\n[3/5] Creating items...")
    for project, priority in (("Acme", "High"), ("Globex", "Low")):
        form = ItemForm()
        form.open()
        form.set(project=project, priority=priority, requester="Bob")
        assert await client.create_item(form)
        assert not form.is_open
    ids = [item.id for item in client.snapshot]
    assert ids == [2, 3], ids
    print(f"✅ Items created: {ids}")

    print("\n[4/5] Dragging item 3 to Done...")
    session = client.begin_drag(3)
    assert session.source == Progress.NOT_STARTED
    assert await client.drop(session, Progress.DONE)
    assert client.board.card_ids(Progress.DONE) == [3]
    print("✅ Item 3 is Done")

    print("\n[5/5] Refresh is idempotent...")
    before = client.board
    assert await client.refresh()
    assert client.board == before
    print("✅ Same board after refresh")

    print()
    print(format_board(client.board, BoardViewState()))


def main():
    print("=" * 60)
    print("Work Tracker Verification")
    print("=" * 60)

    asyncio.run(run_checks())

    print("=" * 60)
    print("✅ ALL CHECKS PASSED")
    print("=" * 60)


if __name__ == "__main__":
    main()
