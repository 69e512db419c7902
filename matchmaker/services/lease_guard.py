"""Lease-based mutual exclusion across worker processes.

A lease is a row in the shared database naming its owner token and expiry.
Acquisition is one non-blocking attempt. Release and renewal only succeed
for the token that acquired the lease, so a holder whose lease expired
cannot clear a newer holder's lease.

Usage:
    guard = LeaseGuard(get_db, ttl_seconds=5)

    token = guard.acquire("matchmaking-process")
    if token:
        try:
            ...
        finally:
            guard.release("matchmaking-process", token)

    # Or, with automatic renewal while fn runs:
    result = guard.with_lock("matchmaking-process", fn)
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any, TypeVar

from matchmaker.core.exceptions import LockAcquisitionFailure
from matchmaker.database import leases as leases_db

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LeaseGuard:
    """Named leases with ownership tokens and a fixed TTL."""

    DEFAULT_TTL_SECONDS = 5.0

    def __init__(
        self,
        db_factory: Callable[[], Any],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._db_factory = db_factory
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def acquire(self, name: str) -> str | None:
        """Try once to take the lease.

        Returns:
            Ownership token if acquired, None if someone else holds it
        """
        token = uuid.uuid4().hex
        now = self._clock()
        with self._db_factory() as conn:
            acquired = leases_db.try_acquire(conn, name, token, now, now + self._ttl)
        if acquired:
            logger.debug("[LEASE] Acquired lock: %s", name)
            return token
        return None

    def release(self, name: str, token: str) -> bool:
        """Release the lease if `token` still owns it.

        Returns:
            True if our lease was released, False if it had already been
            taken over (or released)
        """
        with self._db_factory() as conn:
            released = leases_db.release(conn, name, token)
        if released:
            logger.debug("[LEASE] Released lock: %s", name)
        else:
            logger.warning("[LEASE] Lock %s no longer owned at release, left untouched", name)
        return released

    def renew(self, name: str, token: str) -> bool:
        """Extend the lease by a full TTL if `token` still owns it."""
        with self._db_factory() as conn:
            return leases_db.extend(conn, name, token, self._clock() + self._ttl)

    def holder(self, name: str) -> str | None:
        """Token of the current live holder, or None."""
        with self._db_factory() as conn:
            return leases_db.get_holder(conn, name, self._clock())

    def force_release(self, name: str) -> bool:
        """Clear a lease regardless of owner (administrative)."""
        with self._db_factory() as conn:
            released = leases_db.force_release(conn, name)
        if released:
            logger.warning("[LEASE] Force-released lock: %s", name)
        return released

    @contextmanager
    def hold(self, name: str, renew: bool = True):
        """Context manager holding the lease for the block.

        Yields the ownership token. With renew=True a background thread
        extends the lease every TTL/3 until the block exits.

        Raises:
            LockAcquisitionFailure: If the lease is held elsewhere
        """
        token = self.acquire(name)
        if token is None:
            raise LockAcquisitionFailure(name)

        renewer = LeaseRenewer(self, name, token) if renew else None
        if renewer:
            renewer.start()
        try:
            yield token
        finally:
            if renewer:
                renewer.stop()
            self.release(name, token)

    def with_lock(self, name: str, fn: Callable[[], T], renew: bool = True) -> T:
        """Run fn while holding the lease, releasing it however fn exits.

        Raises:
            LockAcquisitionFailure: If the lease is held elsewhere
        """
        with self.hold(name, renew=renew):
            return fn()


class LeaseRenewer:
    """Background thread that keeps a lease alive.

    Stops on its own once a renewal fails (lease lost); `lost` then
    reports True.
    """

    def __init__(self, guard: LeaseGuard, name: str, token: str, interval: float | None = None):
        self._guard = guard
        self._name = name
        self._token = token
        self._interval = interval if interval is not None else guard.ttl_seconds / 3
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.lost = False

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run,
            name=f"lease-renewer-{self._name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                if not self._guard.renew(self._name, self._token):
                    logger.warning("[LEASE] Lost lock %s during renewal", self._name)
                    self.lost = True
                    return
            except Exception as e:
                logger.warning("[LEASE] Renewal of %s failed: %s", self._name, e)
