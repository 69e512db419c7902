"""Database operations for the append-only event log."""

import json
from sqlite3 import Connection, Row

from matchmaker.core.types import NotificationEvent, utc_from_timestamp


def _row_to_event(row: Row) -> NotificationEvent:
    return NotificationEvent(
        id=row["id"],
        topic=row["topic"],
        payload=json.loads(row["payload"]),
        created_at=utc_from_timestamp(row["created_at"]),
    )


def append_event(conn: Connection, topic: str, payload: dict, created_at: float) -> int:
    """Append an event to a topic.

    Returns:
        The new event id (monotonic across topics)
    """
    cursor = conn.execute(
        "INSERT INTO events (topic, payload, created_at) VALUES (?, ?, ?)",
        (topic, json.dumps(payload, default=str), created_at),
    )
    return cursor.lastrowid


def read_events(
    conn: Connection,
    topic: str,
    after_id: int = 0,
    limit: int = 100,
) -> list[NotificationEvent]:
    """Events of a topic with id > after_id, oldest first."""
    rows = conn.execute(
        """
        SELECT id, topic, payload, created_at FROM events
        WHERE topic = ? AND id > ?
        ORDER BY id
        LIMIT ?
        """,
        (topic, after_id, limit),
    ).fetchall()
    return [_row_to_event(row) for row in rows]


def latest_event_id(conn: Connection, topic: str) -> int:
    """Highest event id in a topic, 0 when empty."""
    row = conn.execute(
        "SELECT COALESCE(MAX(id), 0) FROM events WHERE topic = ?",
        (topic,),
    ).fetchone()
    return row[0]


def count_events(conn: Connection, topic: str) -> int:
    return conn.execute("SELECT COUNT(*) FROM events WHERE topic = ?", (topic,)).fetchone()[0]


def trim_topic(conn: Connection, topic: str, max_len: int) -> int:
    """Drop the oldest events so at most max_len remain.

    Returns:
        Number of events deleted
    """
    cursor = conn.execute(
        """
        DELETE FROM events
        WHERE topic = ? AND id NOT IN (
            SELECT id FROM events WHERE topic = ? ORDER BY id DESC LIMIT ?
        )
        """,
        (topic, topic, max_len),
    )
    return cursor.rowcount
