"""Database operations for formed matches.

A match is stored once per member, keyed by player id, so every player can
look up their own match until the retention window runs out.
"""

import json
import logging
from sqlite3 import Connection

from matchmaker.core.types import Match

logger = logging.getLogger(__name__)


def insert_match(conn: Connection, match: Match, created_at: float, expires_at: float) -> None:
    """Store a match under each of its members' player ids.

    A later match for the same player replaces the earlier row.
    """
    data = json.dumps(match.to_dict())
    conn.executemany(
        """
        INSERT OR REPLACE INTO matches (player_id, match_id, data, created_at, expires_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        [(pid, match.match_id, data, created_at, expires_at) for pid in match.player_ids],
    )


def get_match_for_player(conn: Connection, player_id: str, now: float) -> Match | None:
    """Unexpired match for a player, or None."""
    row = conn.execute(
        "SELECT data FROM matches WHERE player_id = ? AND expires_at > ?",
        (player_id, now),
    ).fetchone()
    return Match.from_dict(json.loads(row["data"])) if row else None


def get_match_by_id(conn: Connection, match_id: str, now: float) -> Match | None:
    row = conn.execute(
        "SELECT data FROM matches WHERE match_id = ? AND expires_at > ? LIMIT 1",
        (match_id, now),
    ).fetchone()
    return Match.from_dict(json.loads(row["data"])) if row else None


def update_match_status(conn: Connection, match: Match) -> int:
    """Rewrite every member row of a match (status transitions).

    Returns:
        Number of rows updated
    """
    cursor = conn.execute(
        "UPDATE matches SET data = ? WHERE match_id = ?",
        (json.dumps(match.to_dict()), match.match_id),
    )
    return cursor.rowcount


def purge_expired_matches(conn: Connection, now: float) -> int:
    """Delete matches past their retention window.

    Returns:
        Number of rows deleted
    """
    cursor = conn.execute("DELETE FROM matches WHERE expires_at <= ?", (now,))
    if cursor.rowcount:
        logger.debug("[MATCHES] Purged %d expired match rows", cursor.rowcount)
    return cursor.rowcount
