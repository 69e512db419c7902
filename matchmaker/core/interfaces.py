"""Abstract interfaces for the matchmaker.

Defines the extension points external collaborators plug into.
"""

import logging
import threading
from typing import Protocol

from matchmaker.core.types import Match

logger = logging.getLogger(__name__)


class MatchmakingObserver(Protocol):
    """Passive observer notified at the matcher's extension points.

    Implementations are metrics collectors and the like. Calls are
    fire-and-forget: the core never waits on or fails because of them.
    """

    def on_player_joined(self, player_id: str) -> None: ...

    def on_player_left(self, player_id: str) -> None: ...

    def on_match_created(self, match: Match) -> None: ...

    def on_queue_size(self, size: int) -> None: ...


class NullObserver:
    """Observer that ignores everything."""

    def on_player_joined(self, player_id: str) -> None:
        pass

    def on_player_left(self, player_id: str) -> None:
        pass

    def on_match_created(self, match: Match) -> None:
        pass

    def on_queue_size(self, size: int) -> None:
        pass


class StatsObserver:
    """Thread-safe in-memory counters.

    Usage:
        stats = StatsObserver()
        service = MatchmakingService(get_db, settings, observer=stats)
        ...
        stats.matches_created
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.players_joined = 0
        self.players_left = 0
        self.matches_created = 0
        self.last_queue_size = 0
        self._quality_total = 0.0

    def on_player_joined(self, player_id: str) -> None:
        with self._lock:
            self.players_joined += 1

    def on_player_left(self, player_id: str) -> None:
        with self._lock:
            self.players_left += 1

    def on_match_created(self, match: Match) -> None:
        with self._lock:
            self.matches_created += 1
            self._quality_total += match.quality

    def on_queue_size(self, size: int) -> None:
        with self._lock:
            self.last_queue_size = size

    @property
    def average_match_quality(self) -> float:
        with self._lock:
            if not self.matches_created:
                return 0.0
            return self._quality_total / self.matches_created


def notify_observer(observer: MatchmakingObserver, hook: str, *args) -> None:
    """Invoke an observer hook, logging and swallowing its failures."""
    try:
        getattr(observer, hook)(*args)
    except Exception as e:
        logger.warning("[OBSERVER] %s.%s failed: %s", type(observer).__name__, hook, e)
