"""Shared fixtures for matchmaker tests."""

from pathlib import Path

import pytest

from helpers import FakeClock
from matchmaker.config import QueueOrdering
from matchmaker.consumers.compatibility import CompatibilityEngine
from matchmaker.consumers.scheduler import MatchingScheduler
from matchmaker.database import db_factory_for, init_db
from matchmaker.services.lease_guard import LeaseGuard
from matchmaker.services.match_store import MatchStore
from matchmaker.services.notification_channel import NotificationChannel
from matchmaker.services.waiting_pool import WaitingPool


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Initialized database file in a temp directory."""
    path = tmp_path / "matchmaker.db"
    init_db(path)
    return path


@pytest.fixture
def db_factory(db_path):
    return db_factory_for(db_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pool(db_factory, clock) -> WaitingPool:
    return WaitingPool(db_factory, ordering=QueueOrdering.FIFO, clock=clock)


@pytest.fixture
def engine() -> CompatibilityEngine:
    return CompatibilityEngine(max_skill_gap=200, max_latency_threshold=100)


@pytest.fixture
def guard(db_factory, clock) -> LeaseGuard:
    return LeaseGuard(db_factory, ttl_seconds=5.0, clock=clock)


@pytest.fixture
def store(db_factory, clock) -> MatchStore:
    return MatchStore(db_factory, ttl_seconds=600, clock=clock)


@pytest.fixture
def channel(db_factory, clock) -> NotificationChannel:
    return NotificationChannel(db_factory, clock=clock)


@pytest.fixture
def scheduler(pool, engine, guard, store, channel) -> MatchingScheduler:
    return MatchingScheduler(
        pool=pool,
        engine=engine,
        guard=guard,
        store=store,
        channel=channel,
        match_size=2,
        interval_seconds=0.05,
    )
