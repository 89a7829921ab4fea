"""
Pytest configuration and fixtures.
Shared clocks, class sheets and a wired dialogue engine.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from leave_intake.conversation_store import ConversationStore
from leave_intake.dialogue import DialogueEngine, EventKind, InboundEvent
from leave_intake.sheets_client import InMemorySheetsClient

TAIPEI = ZoneInfo("Asia/Taipei")

# Monday, October 19, 2026, mid-morning in Taipei
REFERENCE_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=TAIPEI)
TODAY = "2026-10-19"
TOMORROW = "2026-10-20"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def class_sheets():
    """Worksheet values per grade and class."""
    return {
        "A": {
            "X": [
                ["姓名", TODAY, TOMORROW, "2026-10-21"],
                ["Jane Doe", "", "", ""],
                ["John Roe", "出席", "", ""],
                ["Mary Major", "", "請假(事假)"],
                ["Jane Doe", "", "", ""],
            ],
            "Y": [
                ["姓名", TOMORROW],
                ["Jane Doe", ""],
            ],
            "W": [
                ["Student", TODAY],
                ["Jane Doe", ""],
            ],
        },
        "B": {},
    }


@pytest.fixture
def sheets(class_sheets):
    return InMemorySheetsClient(class_sheets)


@pytest.fixture
def store(clock):
    return ConversationStore(idle_timeout_seconds=600, clock=clock)


@pytest.fixture
def engine(store, sheets):
    return DialogueEngine(
        store=store,
        roster=sheets,
        ledger=sheets,
        grades=["A", "B"],
        timezone="Asia/Taipei",
        now=lambda: REFERENCE_NOW,
    )


@pytest.fixture
def say(engine):
    """Send a text message as a caller and return the replies."""

    def _say(text: str, caller_id: str = "U-parent-1"):
        return engine.handle_event(
            InboundEvent(caller_id=caller_id, kind=EventKind.TEXT, text=text, reply_token="rt")
        )

    return _say


@pytest.fixture
def test_client():
    """Create FastAPI test client."""
    from leave_intake.main import app

    return TestClient(app)
