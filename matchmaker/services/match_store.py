"""Match storage and lookup by player id."""

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from matchmaker.core.types import Match, MatchStatus
from matchmaker.database import matches as matches_db
from matchmaker.database import queue as queue_db

logger = logging.getLogger(__name__)


class MatchStore:
    """Formed matches, retained for a bounded window."""

    DEFAULT_TTL_SECONDS = 600

    def __init__(
        self,
        db_factory: Callable[[], Any],
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._db_factory = db_factory
        self._ttl = ttl_seconds
        self._clock = clock

    def commit(self, match: Match) -> bool:
        """Atomically take a match's players out of the pool and store it.

        Runs in one transaction. If any member is no longer queued (left,
        expired, or already matched by an overlapping pass) nothing is
        written and the group is discarded.

        Returns:
            True if the match was committed
        """
        now = self._clock()
        with self._db_factory() as conn:
            removed = queue_db.delete_live_players(conn, match.player_ids, now)
            if removed != len(match.players):
                conn.rollback()
                logger.info(
                    "[MATCHES] Discarded match %s: %d of %d players still queued",
                    match.match_id,
                    removed,
                    len(match.players),
                )
                return False
            matches_db.insert_match(conn, match, now, now + self._ttl)
        logger.debug("[MATCHES] Stored match %s for players %s", match.match_id, match.player_ids)
        return True

    def lookup(self, player_id: str) -> Match | None:
        """The player's current match, or None if not matched (or expired)."""
        with self._db_factory() as conn:
            return matches_db.get_match_for_player(conn, player_id, self._clock())

    def get(self, match_id: str) -> Match | None:
        with self._db_factory() as conn:
            return matches_db.get_match_by_id(conn, match_id, self._clock())

    def set_status(self, match_id: str, status: MatchStatus) -> Match | None:
        """Apply a lifecycle status transition.

        Returns:
            The updated match, or None if it is unknown or expired
        """
        with self._db_factory() as conn:
            match = matches_db.get_match_by_id(conn, match_id, self._clock())
            if match is None:
                return None
            updated = replace(match, status=status)
            matches_db.update_match_status(conn, updated)
        logger.info("[MATCHES] Match %s -> %s", match_id, status.value)
        return updated

    def purge_expired(self) -> int:
        with self._db_factory() as conn:
            return matches_db.purge_expired_matches(conn, self._clock())
