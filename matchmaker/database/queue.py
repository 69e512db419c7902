"""Database operations for the waiting pool.

Two tables back the pool: `players` holds each queued player's record with
an expiry, `queue_entries` is the ordered index over player ids. An index
entry whose record is missing or expired is stale.
"""

import json
import logging
from dataclasses import dataclass
from sqlite3 import Connection, Row

from matchmaker.core.types import Player

logger = logging.getLogger(__name__)


@dataclass
class QueueRow:
    """A queue index entry joined with its (possibly missing) player record."""

    player_id: str
    score: float
    player: Player | None


def _row_to_queue_row(row: Row, now: float) -> QueueRow:
    player = None
    if row["data"] is not None and row["expires_at"] > now:
        player = Player.from_dict(json.loads(row["data"]))
    return QueueRow(player_id=row["player_id"], score=row["score"], player=player)


def get_joined_at(conn: Connection, player_id: str, now: float) -> float | None:
    """Original join time of a live player record, if any."""
    row = conn.execute(
        "SELECT joined_at FROM players WHERE player_id = ? AND expires_at > ?",
        (player_id, now),
    ).fetchone()
    return row["joined_at"] if row else None


def upsert_player(
    conn: Connection,
    player: Player,
    score: float,
    sort_key: float,
    joined_at: float,
    expires_at: float,
) -> None:
    """Insert or replace a player's record and index entry."""
    conn.execute(
        """
        INSERT INTO players (player_id, data, joined_at, expires_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(player_id) DO UPDATE SET
            data = excluded.data,
            joined_at = excluded.joined_at,
            expires_at = excluded.expires_at
        """,
        (player.id, json.dumps(player.to_dict()), joined_at, expires_at),
    )
    conn.execute(
        "INSERT OR REPLACE INTO queue_entries (player_id, score, sort_key) VALUES (?, ?, ?)",
        (player.id, score, sort_key),
    )


def delete_player(conn: Connection, player_id: str) -> bool:
    """Remove a player's index entry and record.

    Returns:
        True if an index entry was removed
    """
    cursor = conn.execute("DELETE FROM queue_entries WHERE player_id = ?", (player_id,))
    conn.execute("DELETE FROM players WHERE player_id = ?", (player_id,))
    return cursor.rowcount > 0


def delete_live_players(conn: Connection, player_ids: list[str], now: float) -> int:
    """Remove several players' entries and records.

    Only entries backed by a live record count; a stale entry is left for
    the pool's pruning path.

    Returns:
        Number of live index entries removed
    """
    removed = 0
    for player_id in player_ids:
        cursor = conn.execute(
            """
            DELETE FROM queue_entries
            WHERE player_id = ?
              AND EXISTS (
                  SELECT 1 FROM players WHERE player_id = ? AND expires_at > ?
              )
            """,
            (player_id, player_id, now),
        )
        if cursor.rowcount:
            removed += cursor.rowcount
            conn.execute("DELETE FROM players WHERE player_id = ?", (player_id,))
    return removed


def prune_if_stale(conn: Connection, player_id: str, now: float) -> bool:
    """Delete an index entry only if it is still stale.

    A concurrent re-enqueue between the read and this call leaves a live
    record behind, in which case nothing is removed.

    Returns:
        True if a stale entry was removed
    """
    cursor = conn.execute(
        """
        DELETE FROM queue_entries
        WHERE player_id = ?
          AND NOT EXISTS (
              SELECT 1 FROM players WHERE player_id = ? AND expires_at > ?
          )
        """,
        (player_id, player_id, now),
    )
    if cursor.rowcount:
        conn.execute(
            "DELETE FROM players WHERE player_id = ? AND expires_at <= ?",
            (player_id, now),
        )
    return cursor.rowcount > 0


def list_queue(conn: Connection, now: float) -> list[QueueRow]:
    """All index entries in queue order with their records."""
    rows = conn.execute(
        """
        SELECT q.player_id, q.score, p.data, p.expires_at
        FROM queue_entries q
        LEFT JOIN players p ON p.player_id = q.player_id
        ORDER BY q.sort_key, q.rowid
        """
    ).fetchall()
    return [_row_to_queue_row(row, now) for row in rows]


def get_player(conn: Connection, player_id: str, now: float) -> Player | None:
    """Live queued player record, or None."""
    row = conn.execute(
        """
        SELECT p.data FROM players p
        JOIN queue_entries q ON q.player_id = p.player_id
        WHERE p.player_id = ? AND p.expires_at > ?
        """,
        (player_id, now),
    ).fetchone()
    return Player.from_dict(json.loads(row["data"])) if row else None


def count_queue(conn: Connection, now: float) -> int:
    """Number of entries backed by a live record."""
    return conn.execute(
        """
        SELECT COUNT(*) FROM queue_entries q
        JOIN players p ON p.player_id = q.player_id
        WHERE p.expires_at > ?
        """,
        (now,),
    ).fetchone()[0]


def queue_contains(conn: Connection, player_id: str, now: float) -> bool:
    row = conn.execute(
        """
        SELECT 1 FROM queue_entries q
        JOIN players p ON p.player_id = q.player_id
        WHERE q.player_id = ? AND p.expires_at > ?
        """,
        (player_id, now),
    ).fetchone()
    return row is not None


def queue_rank(conn: Connection, player_id: str, now: float) -> int | None:
    """1-based rank among live entries in queue order, or None if absent or stale."""
    row = conn.execute(
        """
        SELECT q.sort_key, q.rowid FROM queue_entries q
        JOIN players p ON p.player_id = q.player_id
        WHERE q.player_id = ? AND p.expires_at > ?
        """,
        (player_id, now),
    ).fetchone()
    if row is None:
        return None
    ahead = conn.execute(
        """
        SELECT COUNT(*) FROM queue_entries q
        JOIN players p ON p.player_id = q.player_id
        WHERE p.expires_at > ?
          AND (q.sort_key < ? OR (q.sort_key = ? AND q.rowid < ?))
        """,
        (now, row["sort_key"], row["sort_key"], row["rowid"]),
    ).fetchone()[0]
    return ahead + 1


def list_live_joins(conn: Connection, now: float) -> list[tuple[str, str, float]]:
    """(player_id, record json, joined_at) for every live queued player."""
    rows = conn.execute(
        """
        SELECT q.player_id, p.data, p.joined_at
        FROM queue_entries q
        JOIN players p ON p.player_id = q.player_id
        WHERE p.expires_at > ?
        """,
        (now,),
    ).fetchall()
    return [(row["player_id"], row["data"], row["joined_at"]) for row in rows]


def update_score(conn: Connection, player_id: str, score: float, sort_key: float) -> bool:
    cursor = conn.execute(
        "UPDATE queue_entries SET score = ?, sort_key = ? WHERE player_id = ?",
        (score, sort_key, player_id),
    )
    return cursor.rowcount > 0


def clear_queue(conn: Connection) -> int:
    """Delete every index entry and player record.

    Returns:
        Number of index entries removed
    """
    cursor = conn.execute("DELETE FROM queue_entries")
    conn.execute("DELETE FROM players")
    return cursor.rowcount
