"""Matchmaking service facade.

This module provides a clean API for queue and match operations, hiding
the pool, store and scheduler wiring from callers such as an HTTP layer.
Callers pass already-authenticated player identities.
"""

import logging
from collections.abc import Callable
from typing import Any

from matchmaker.config import MatchmakingSettings
from matchmaker.consumers.compatibility import CompatibilityEngine
from matchmaker.core.exceptions import AlreadyQueuedError
from matchmaker.core.interfaces import MatchmakingObserver, NullObserver, notify_observer
from matchmaker.core.requests import JoinQueueRequest, validate_join_request
from matchmaker.core.types import Match, MatchResult, Player, QueueStatus
from matchmaker.services.match_store import MatchStore
from matchmaker.services.notification_channel import NotificationChannel
from matchmaker.services.waiting_pool import WaitingPool

logger = logging.getLogger(__name__)


class MatchmakingService:
    """Service for joining, leaving and checking on matchmaking."""

    def __init__(
        self,
        db_factory: Callable[[], Any],
        settings: MatchmakingSettings | None = None,
        observer: MatchmakingObserver | None = None,
    ):
        from matchmaker.consumers.scheduler import create_matching_scheduler

        self._settings = settings or MatchmakingSettings()
        self._observer = observer or NullObserver()
        self._scheduler = create_matching_scheduler(
            db_factory,
            self._settings,
            observer=self._observer,
            run_on_start=False,
        )
        self.pool = WaitingPool(
            db_factory,
            ordering=self._settings.queue_ordering,
            player_ttl_seconds=self._settings.player_ttl_seconds,
        )
        self.store = MatchStore(db_factory, ttl_seconds=self._settings.match_ttl_seconds)
        self.channel = NotificationChannel(db_factory, max_len=self._settings.event_stream_max_len)
        self.engine = CompatibilityEngine(
            max_skill_gap=self._settings.max_skill_gap,
            max_latency_threshold=self._settings.max_latency_threshold,
        )

    @property
    def scheduler(self):
        return self._scheduler

    def join_queue(self, request: JoinQueueRequest | dict) -> Player:
        """Put a player in the waiting pool.

        Args:
            request: Validated request, or a raw payload to validate

        Returns:
            The queued player

        Raises:
            ValidationError: If a raw payload is malformed
            AlreadyQueuedError: If the player is already waiting
        """
        if isinstance(request, dict):
            request = validate_join_request(request)

        if self.pool.contains(request.player_id):
            raise AlreadyQueuedError(request.player_id)

        player = self.pool.enqueue(request.to_player())
        logger.info(
            "[QUEUE] Player %s joined queue with skill rating %d and latency %dms",
            player.id,
            player.skill_rating,
            player.latency,
        )
        notify_observer(self._observer, "on_player_joined", player.id)
        notify_observer(self._observer, "on_queue_size", self.pool.size())
        return player

    def leave_queue(self, player_id: str) -> bool:
        """Take a player out of the waiting pool.

        Returns:
            True if the player was queued, False if not currently queued
        """
        removed = self.pool.dequeue(player_id)
        if removed:
            logger.info("[QUEUE] Player %s left the queue", player_id)
            notify_observer(self._observer, "on_player_left", player_id)
            notify_observer(self._observer, "on_queue_size", self.pool.size())
        return removed

    def lookup_match(self, player_id: str) -> Match | None:
        return self.store.lookup(player_id)

    def get_match_result(self, player_id: str) -> MatchResult:
        """Has this player been matched yet?"""
        match = self.store.lookup(player_id)
        if match is not None:
            return MatchResult(success=True, message="Match found", match=match)
        return MatchResult(success=False, message="No match found yet")

    def queue_position(self, player_id: str) -> int | None:
        """1-based queue position, or None if not currently queued."""
        return self.pool.position_of(player_id)

    def estimate_wait(self, player_id: str) -> int | None:
        """Estimated wait in ms for a queued player, or None if not queued."""
        player = self.pool.get(player_id)
        if player is None:
            return None
        return self.engine.estimate_wait(player, self.pool.size())

    def queue_status(self) -> QueueStatus:
        """Queue size plus an average of per-player wait estimates."""
        players = list(self.pool.snapshot())
        size = len(players)
        estimated = 0
        if players:
            estimated = sum(self.engine.estimate_wait(p, size) for p in players) // size

        matches_created = getattr(self._observer, "matches_created", 0)
        average_quality = getattr(self._observer, "average_match_quality", 0.0)
        return QueueStatus(
            queue_size=size,
            estimated_wait_ms=estimated,
            matches_created=matches_created,
            average_match_quality=average_quality,
        )

    def run_pass(self) -> list[Match]:
        """Run one matching pass now."""
        return self._scheduler.run_pass()


def create_matchmaking_service(
    db_factory: Callable[[], Any],
    settings: MatchmakingSettings | None = None,
    observer: MatchmakingObserver | None = None,
) -> MatchmakingService:
    """Factory function for MatchmakingService."""
    return MatchmakingService(db_factory, settings, observer)
