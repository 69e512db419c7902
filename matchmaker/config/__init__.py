"""Application configuration.

Single source of truth for all configuration values.
Loads from environment variables with .env file support.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# =============================================================================
# VERSION - Read from pyproject.toml (single source of truth)
# =============================================================================


def _get_version() -> str:
    """Read version - prefer pyproject.toml, fall back to installed metadata."""
    try:
        import tomllib

        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
                return data.get("project", {}).get("version", "0.0.0")
    except (OSError, KeyError, ValueError):
        pass

    # Fall back to installed package metadata (pip install without source)
    try:
        from importlib.metadata import PackageNotFoundError, version

        return version("matchmaker")
    except (ImportError, PackageNotFoundError):
        pass

    return "0.0.0"


VERSION = _get_version()

# Load .env file from project root
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"
load_dotenv(_ENV_FILE)


class QueueOrdering(str, Enum):
    """How the waiting pool orders its entries.

    FIFO: oldest arrival first.
    PRIORITY: highest (wait seconds + skill deviation / 10) first.
    """

    FIFO = "fifo"
    PRIORITY = "priority"


@dataclass(frozen=True)
class MatchmakingSettings:
    """Matchmaking core settings."""

    match_size: int = 2
    max_skill_gap: int = 200
    max_latency_threshold: int = 100
    pass_interval_seconds: float = 2.0
    lock_ttl_seconds: float = 5.0
    # How long a queued player record lives without being matched or refreshed
    player_ttl_seconds: int = 300
    # Retention window for match lookups by player id
    match_ttl_seconds: int = 600
    queue_ordering: QueueOrdering = QueueOrdering.FIFO
    db_path: str = str(_PROJECT_ROOT / "data" / "matchmaker.db")
    # 0 = unbounded per-topic event log
    event_stream_max_len: int = 0

    def __post_init__(self) -> None:
        if self.match_size < 2:
            raise ValueError(f"match_size must be at least 2, got {self.match_size}")


_DEFAULTS = MatchmakingSettings()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[CONFIG] Invalid integer for %s=%r, using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[CONFIG] Invalid number for %s=%r, using %s", name, raw, default)
        return default


def _env_ordering(name: str, default: QueueOrdering) -> QueueOrdering:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return QueueOrdering(raw.strip().lower())
    except ValueError:
        logger.warning("[CONFIG] Unknown queue ordering %s=%r, using %s", name, raw, default.value)
        return default


def get_settings() -> MatchmakingSettings:
    """Build settings from the environment.

    Every value falls back to the MatchmakingSettings default when unset
    or unparseable.
    """
    d = _DEFAULTS
    return MatchmakingSettings(
        match_size=_env_int("MATCH_SIZE", d.match_size),
        max_skill_gap=_env_int("MAX_SKILL_GAP", d.max_skill_gap),
        max_latency_threshold=_env_int("MAX_LATENCY_THRESHOLD", d.max_latency_threshold),
        pass_interval_seconds=_env_float("PASS_INTERVAL_SECONDS", d.pass_interval_seconds),
        lock_ttl_seconds=_env_float("LOCK_TTL_SECONDS", d.lock_ttl_seconds),
        player_ttl_seconds=_env_int("PLAYER_TTL_SECONDS", d.player_ttl_seconds),
        match_ttl_seconds=_env_int("MATCH_TTL_SECONDS", d.match_ttl_seconds),
        queue_ordering=_env_ordering("QUEUE_ORDERING", d.queue_ordering),
        db_path=os.getenv("DB_PATH") or d.db_path,
        event_stream_max_len=_env_int("EVENT_STREAM_MAX_LEN", d.event_stream_max_len),
    )


def reload() -> MatchmakingSettings:
    """Re-read the .env file (overriding the process environment) and rebuild settings."""
    load_dotenv(_ENV_FILE, override=True)
    return get_settings()


__all__ = [
    "VERSION",
    "MatchmakingSettings",
    "QueueOrdering",
    "get_settings",
    "reload",
]
