"""Tests for environment-driven settings and database setup."""

import sqlite3

import pytest

from helpers import make_player
from matchmaker.config import MatchmakingSettings, QueueOrdering, get_settings
from matchmaker.database import get_connection, init_db, reset_db

ENV_VARS = (
    "MATCH_SIZE",
    "MAX_SKILL_GAP",
    "MAX_LATENCY_THRESHOLD",
    "PASS_INTERVAL_SECONDS",
    "LOCK_TTL_SECONDS",
    "PLAYER_TTL_SECONDS",
    "MATCH_TTL_SECONDS",
    "QUEUE_ORDERING",
    "DB_PATH",
    "EVENT_STREAM_MAX_LEN",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_defaults(self):
        settings = get_settings()
        assert settings.match_size == 2
        assert settings.max_skill_gap == 200
        assert settings.max_latency_threshold == 100
        assert settings.pass_interval_seconds == 2.0
        assert settings.lock_ttl_seconds == 5.0
        assert settings.player_ttl_seconds == 300
        assert settings.match_ttl_seconds == 600
        assert settings.queue_ordering == QueueOrdering.FIFO

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MATCH_SIZE", "4")
        monkeypatch.setenv("MAX_SKILL_GAP", "350")
        monkeypatch.setenv("PASS_INTERVAL_SECONDS", "0.5")
        monkeypatch.setenv("QUEUE_ORDERING", "Priority")
        monkeypatch.setenv("DB_PATH", str(tmp_path / "mm.db"))

        settings = get_settings()

        assert settings.match_size == 4
        assert settings.max_skill_gap == 350
        assert settings.pass_interval_seconds == 0.5
        assert settings.queue_ordering == QueueOrdering.PRIORITY
        assert settings.db_path == str(tmp_path / "mm.db")

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("MAX_SKILL_GAP", "wide")
        monkeypatch.setenv("LOCK_TTL_SECONDS", "soon")
        monkeypatch.setenv("QUEUE_ORDERING", "random")

        settings = get_settings()

        assert settings.max_skill_gap == 200
        assert settings.lock_ttl_seconds == 5.0
        assert settings.queue_ordering == QueueOrdering.FIFO

    def test_match_size_below_two_rejected(self, monkeypatch):
        monkeypatch.setenv("MATCH_SIZE", "1")
        with pytest.raises(ValueError):
            get_settings()

    def test_settings_are_frozen(self):
        settings = MatchmakingSettings()
        with pytest.raises(AttributeError):
            settings.match_size = 3


class TestDatabaseSetup:
    def test_init_creates_tables(self, tmp_path):
        path = tmp_path / "nested" / "mm.db"
        init_db(path)
        conn = get_connection(path)
        try:
            tables = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        finally:
            conn.close()
        assert {"players", "queue_entries", "matches", "leases", "events"} <= tables

    def test_init_is_idempotent(self, db_path):
        init_db(db_path)
        init_db(db_path)

    def test_wal_mode(self, db_path):
        conn = get_connection(db_path)
        try:
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        finally:
            conn.close()
        assert mode.lower() == "wal"

    def test_reset_clears_data(self, db_path, pool):
        pool.enqueue(make_player("p1"))
        reset_db(db_path)
        assert pool.size() == 0

    def test_rejects_non_database_file(self, tmp_path):
        path = tmp_path / "junk.db"
        path.write_bytes(b"this is not a sqlite database at all" * 100)
        with pytest.raises((RuntimeError, sqlite3.DatabaseError)):
            init_db(path)
