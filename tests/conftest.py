"""Shared test fixtures for the work tracker tests."""

import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure the project root (worktrack/, tracker_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from worktrack.service import ItemService
from worktrack.sheets import MemoryRowStore
from worktrack.store import ItemSheetAdapter

HEADER = ["Project", "Description", "Due Date", "Progress", "Priority",
          "Requester", "Assignee", "Category", "Date Submitted"]

ACME_ROW = ["Acme", "fix bug", "2024-01-01", "In Progress", "High", "Bob", "Alice", "Eng"]
GLOBEX_ROW = ["Globex", "", "", "Not Started", "Low", "Carol", "Dan", "Ops"]


@pytest.fixture
def row_store():
    """Header plus the Acme and Globex rows."""
    return MemoryRowStore([HEADER, ACME_ROW, GLOBEX_ROW])


@pytest.fixture
def adapter(row_store):
    return ItemSheetAdapter(row_store, clock=lambda: date(2024, 3, 9))


@pytest.fixture
def service(adapter):
    return ItemService(adapter)
