"""Append-only per-topic event log for match notifications.

Publishers append; subscribers poll or tail a topic by remembering the last
event id they saw. Delivery is at-least-once from the subscriber's side and
nobody acknowledges anything synchronously.

Topics:
    matches           - one event per created match
    player:<id>       - one MATCH_FOUND event per member of a match
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from matchmaker.core.types import Match, NotificationEvent
from matchmaker.database import events as events_db

logger = logging.getLogger(__name__)

MATCH_TOPIC = "matches"
PLAYER_TOPIC_PREFIX = "player:"
MATCH_FOUND = "MATCH_FOUND"


def player_topic(player_id: str) -> str:
    return f"{PLAYER_TOPIC_PREFIX}{player_id}"


class NotificationChannel:
    """Event log backed by the shared database."""

    def __init__(
        self,
        db_factory: Callable[[], Any],
        max_len: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the channel.

        Args:
            db_factory: Factory returning a database connection context manager
            max_len: Keep at most this many events per topic (0 = unbounded)
            clock: Epoch-seconds time source
        """
        self._db_factory = db_factory
        self._max_len = max_len
        self._clock = clock

    def publish(self, topic: str, event: dict[str, Any]) -> int:
        """Append an event to a topic.

        Returns:
            The new event's id
        """
        with self._db_factory() as conn:
            event_id = events_db.append_event(conn, topic, event, self._clock())
            if self._max_len > 0:
                events_db.trim_topic(conn, topic, self._max_len)
        return event_id

    def publish_match_created(self, match: Match) -> list[int]:
        """Fan a match out to the global topic and each member's topic.

        Returns:
            Event ids, global event first
        """
        ids = [
            self.publish(
                MATCH_TOPIC,
                {
                    "match_id": match.match_id,
                    "player_count": len(match.players),
                    "average_skill": match.average_skill_rating,
                    "average_latency": match.average_latency,
                    "region": match.server_region,
                    "timestamp": match.created_at.isoformat(),
                },
            )
        ]
        logger.debug("[NOTIFY] Published match %s to stream", match.match_id)

        for player in match.players:
            ids.append(
                self.publish(
                    player_topic(player.id),
                    {
                        "event": MATCH_FOUND,
                        "match_id": match.match_id,
                        "server_region": match.server_region,
                    },
                )
            )
        return ids

    def read(self, topic: str, after_id: int = 0, limit: int = 100) -> list[NotificationEvent]:
        """Events of a topic newer than after_id, oldest first."""
        with self._db_factory() as conn:
            return events_db.read_events(conn, topic, after_id, limit)

    def latest_id(self, topic: str) -> int:
        """Id of the newest event in a topic (0 if empty); a tail starting point."""
        with self._db_factory() as conn:
            return events_db.latest_event_id(conn, topic)

    def length(self, topic: str) -> int:
        with self._db_factory() as conn:
            return events_db.count_events(conn, topic)

    def trim(self, topic: str, max_len: int) -> int:
        """Drop the oldest events of a topic beyond max_len."""
        with self._db_factory() as conn:
            return events_db.trim_topic(conn, topic, max_len)
