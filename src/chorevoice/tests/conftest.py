"""Shared fixtures: a fixed clock, a small roster and an in-memory service."""

from datetime import datetime, timedelta, timezone

import pytest

from chorevoice.app import DialogueService
from chorevoice.data_types import Child, Session
from chorevoice.extraction import RuleBasedExtractor
from chorevoice.memory import InMemorySessionStore

# Wednesday 2026-10-14, 10:00 in America/Chicago (CDT, UTC-5)
FIXED_NOW = datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def roster():
    return (Child("1", "Emma"), Child("2", "Liam"))


@pytest.fixture
def store(clock):
    return InMemorySessionStore(ttl_minutes=15, clock=clock)


@pytest.fixture
def service(store, clock):
    return DialogueService(
        store=store,
        extractor=RuleBasedExtractor(),
        clock=clock,
        extraction_timeout=5,
    )


@pytest.fixture
def make_session(roster):
    def _make(**overrides):
        values = dict(
            session_id="s1",
            created_at=FIXED_NOW,
            expires_at=FIXED_NOW + timedelta(minutes=15),
            user_id="parent-1",
            children_roster=roster,
        )
        values.update(overrides)
        return Session(**values)
    return _make
