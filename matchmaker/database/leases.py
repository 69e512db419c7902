"""Database operations for named leases.

Every operation is a single statement, so SQLite's write lock makes each
one atomic across processes sharing the database file.
"""

from sqlite3 import Connection


def try_acquire(conn: Connection, name: str, token: str, now: float, expires_at: float) -> bool:
    """Take the lease if it is free or expired.

    Returns:
        True if `token` now owns the lease
    """
    cursor = conn.execute(
        """
        INSERT INTO leases (name, token, expires_at) VALUES (?, ?, ?)
        ON CONFLICT(name) DO UPDATE SET
            token = excluded.token,
            expires_at = excluded.expires_at
        WHERE leases.expires_at <= ?
        """,
        (name, token, expires_at, now),
    )
    return cursor.rowcount > 0


def release(conn: Connection, name: str, token: str) -> bool:
    """Delete the lease only if `token` still owns it."""
    cursor = conn.execute(
        "DELETE FROM leases WHERE name = ? AND token = ?",
        (name, token),
    )
    return cursor.rowcount > 0


def force_release(conn: Connection, name: str) -> bool:
    """Delete the lease whoever owns it (administrative)."""
    cursor = conn.execute("DELETE FROM leases WHERE name = ?", (name,))
    return cursor.rowcount > 0


def extend(conn: Connection, name: str, token: str, expires_at: float) -> bool:
    """Push out the expiry if `token` still owns the lease.

    The row still carrying our token means nobody else has taken it, even
    if its expiry already passed.
    """
    cursor = conn.execute(
        "UPDATE leases SET expires_at = ? WHERE name = ? AND token = ?",
        (expires_at, name, token),
    )
    return cursor.rowcount > 0


def get_holder(conn: Connection, name: str, now: float) -> str | None:
    """Token of the live lease holder, or None."""
    row = conn.execute(
        "SELECT token FROM leases WHERE name = ? AND expires_at > ?",
        (name, now),
    ).fetchone()
    return row["token"] if row else None
