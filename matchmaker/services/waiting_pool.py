"""Waiting pool of players awaiting a match.

The pool lives entirely in the shared database: every mutation is visible
to every worker immediately and nothing is cached locally. Atomicity of
single operations comes from SQLite transactions, not from Python locks.

Usage:
    pool = WaitingPool(get_db, ordering=QueueOrdering.FIFO)
    pool.enqueue(player)
    pool.position_of(player.id)  # 1
    for queued in pool.snapshot():
        ...
"""

import json
import logging
import time
from collections.abc import Callable, Iterator
from typing import Any

from matchmaker.config import QueueOrdering
from matchmaker.core.exceptions import StaleEntryError
from matchmaker.core.types import Player, utc_from_timestamp
from matchmaker.database import queue as queue_db

logger = logging.getLogger(__name__)

# Skill rating considered "average" when computing priority
SKILL_MIDPOINT = 1500


def priority_score(wait_seconds: int, skill_rating: int) -> float:
    """Priority = whole seconds waited + |skill - 1500| / 10. Higher goes first."""
    return wait_seconds + abs(skill_rating - SKILL_MIDPOINT) / 10.0


class WaitingPool:
    """Ordered membership store for queued players."""

    DEFAULT_PLAYER_TTL_SECONDS = 300

    def __init__(
        self,
        db_factory: Callable[[], Any],
        ordering: QueueOrdering = QueueOrdering.FIFO,
        player_ttl_seconds: int = DEFAULT_PLAYER_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the pool.

        Args:
            db_factory: Factory returning a database connection context manager
            ordering: FIFO (arrival order) or PRIORITY (wait + skill deviation)
            player_ttl_seconds: Lifetime of a queued player record
            clock: Epoch-seconds time source
        """
        self._db_factory = db_factory
        self._ordering = ordering
        self._player_ttl = player_ttl_seconds
        self._clock = clock

    @property
    def ordering(self) -> QueueOrdering:
        return self._ordering

    def _score(self, player: Player, joined_at: float, now: float) -> tuple[float, float]:
        """(score, sort_key) for a player; ascending sort_key is queue order."""
        if self._ordering == QueueOrdering.PRIORITY:
            score = priority_score(int(now - joined_at), player.skill_rating)
            return score, -score
        return joined_at, joined_at

    def enqueue(self, player: Player) -> Player:
        """Insert or replace a player's entry.

        In FIFO mode a re-enqueue moves the player to the back. In priority
        mode the wait already accrued by a live record is kept.

        Returns:
            The stored player, stamped QUEUED with its join time
        """
        now = self._clock()
        with self._db_factory() as conn:
            joined_at = now
            if self._ordering == QueueOrdering.PRIORITY:
                joined_at = queue_db.get_joined_at(conn, player.id, now) or now

            stored = player.queued(utc_from_timestamp(joined_at))
            score, sort_key = self._score(stored, joined_at, now)
            queue_db.upsert_player(
                conn,
                stored,
                score=score,
                sort_key=sort_key,
                joined_at=joined_at,
                expires_at=now + self._player_ttl,
            )

        logger.debug("[POOL] Enqueued player %s with score %s", player.id, score)
        return stored

    def dequeue(self, player_id: str) -> bool:
        """Remove a player. Removing an absent player is not an error.

        Returns:
            True if an entry was removed
        """
        with self._db_factory() as conn:
            removed = queue_db.delete_player(conn, player_id)
        if removed:
            logger.debug("[POOL] Dequeued player %s", player_id)
        return removed

    def snapshot(self) -> Iterator[Player]:
        """Yield live queued players in queue order.

        Single-use generator. Stale entries met along the way are pruned
        from the index and skipped.
        """
        now = self._clock()
        with self._db_factory() as conn:
            rows = queue_db.list_queue(conn, now)

        for row in rows:
            if row.player is not None:
                yield row.player
                continue
            self._prune(row.player_id, now)

    def _prune(self, player_id: str, now: float) -> None:
        with self._db_factory() as conn:
            pruned = queue_db.prune_if_stale(conn, player_id, now)
        if pruned:
            logger.warning("[POOL] %s, pruned from index", StaleEntryError(player_id))

    def get(self, player_id: str) -> Player | None:
        """Live queued record for a player, or None."""
        with self._db_factory() as conn:
            return queue_db.get_player(conn, player_id, self._clock())

    def size(self) -> int:
        """Number of queued players with a live record."""
        with self._db_factory() as conn:
            return queue_db.count_queue(conn, self._clock())

    def contains(self, player_id: str) -> bool:
        """True only while the player's record is live; a stale entry reads as absent."""
        with self._db_factory() as conn:
            return queue_db.queue_contains(conn, player_id, self._clock())

    def position_of(self, player_id: str) -> int | None:
        """1-based rank in queue order, or None if not queued."""
        with self._db_factory() as conn:
            return queue_db.queue_rank(conn, player_id, self._clock())

    def refresh_priorities(self) -> int:
        """Recompute priority scores from current wait time.

        No-op in FIFO mode.

        Returns:
            Number of entries updated
        """
        if self._ordering != QueueOrdering.PRIORITY:
            return 0

        now = self._clock()
        updated = 0
        with self._db_factory() as conn:
            for player_id, data, joined_at in queue_db.list_live_joins(conn, now):
                skill = json.loads(data)["skill_rating"]
                score = priority_score(int(now - joined_at), skill)
                if queue_db.update_score(conn, player_id, score, -score):
                    updated += 1
        return updated

    def clear(self) -> int:
        """Empty the pool.

        Returns:
            Number of entries removed
        """
        with self._db_factory() as conn:
            removed = queue_db.clear_queue(conn)
        logger.info("[POOL] Cleared matchmaking queue (%d entries)", removed)
        return removed
