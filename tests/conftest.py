from datetime import datetime, timedelta, timezone

import pytest

from sovern.belief_store import BeliefStore
from sovern.models import BeliefDomain
from sovern.tension_tracker import TensionTracker


class FakeClock:
    """Deterministic clock; each call returns the current time, then advances one second."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return BeliefStore(clock=clock)


@pytest.fixture
def populated_store(store):
    """Three core beliefs across three domains, no revisions, no connections."""
    store.create_core("Authenticity", BeliefDomain.SELF, "Say what I actually think.", 7)
    store.create_core("Growth", BeliefDomain.META, "Beliefs should change with evidence.", 6)
    store.create_core("Honesty", BeliefDomain.ETHICS, "Do not mislead.", 9)
    return store


@pytest.fixture
def tracker(clock):
    return TensionTracker(clock=clock)
