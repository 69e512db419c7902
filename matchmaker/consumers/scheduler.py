"""Background scheduler for matchmaking passes.

Runs a matching pass on a fixed delay. Each pass:
- takes the cross-process matchmaking lease (skips the tick if held elsewhere)
- snapshots the waiting pool
- forms groups greedily and commits each one atomically
- publishes match notifications and tells the observer

Any number of worker processes may run a scheduler against the same
database; the lease keeps passes from overlapping.
"""

import logging
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from matchmaker.config import MatchmakingSettings
from matchmaker.consumers.compatibility import CompatibilityEngine
from matchmaker.consumers.formation import build_match, iter_groups
from matchmaker.core.exceptions import LockAcquisitionFailure
from matchmaker.core.interfaces import MatchmakingObserver, NullObserver, notify_observer
from matchmaker.core.types import Match, Player
from matchmaker.services.lease_guard import LeaseGuard
from matchmaker.services.match_store import MatchStore
from matchmaker.services.notification_channel import NotificationChannel
from matchmaker.services.waiting_pool import WaitingPool

logger = logging.getLogger(__name__)

# Well-known lease name shared by every worker
LOCK_NAME = "matchmaking-process"


class PassState(str, Enum):
    """Where the scheduler is within a pass."""

    IDLE = "IDLE"
    LOCKED = "LOCKED"
    FORMING = "FORMING"
    COMMIT = "COMMIT"


class MatchingScheduler:
    """Periodic driver of matching passes.

    Usage:
        scheduler = MatchingScheduler(pool, engine, guard, store, channel)
        scheduler.start()
        # ... application runs ...
        scheduler.stop()

        # On demand (tests, admin tooling):
        matches = scheduler.run_pass()
    """

    def __init__(
        self,
        pool: WaitingPool,
        engine: CompatibilityEngine,
        guard: LeaseGuard,
        store: MatchStore,
        channel: NotificationChannel,
        match_size: int = 2,
        interval_seconds: float = 2.0,
        observer: MatchmakingObserver | None = None,
        run_on_start: bool = True,
    ):
        """Initialize the scheduler.

        Args:
            pool: Waiting pool to match from
            engine: Compatibility rules
            guard: Lease guard serializing passes across workers
            store: Where committed matches go
            channel: Event log for match notifications
            match_size: Players per match
            interval_seconds: Delay between the end of one pass and the next
            observer: Metrics hook (fire-and-forget)
            run_on_start: Whether to run a pass immediately on start
        """
        if match_size < 2:
            raise ValueError(f"match_size must be at least 2, got {match_size}")

        self._pool = pool
        self._engine = engine
        self._guard = guard
        self._store = store
        self._channel = channel
        self._match_size = match_size
        self._interval = interval_seconds
        self._observer = observer or NullObserver()
        self._run_on_start = run_on_start

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._running = False
        self._state = PassState.IDLE
        self._last_run: datetime | None = None
        self._last_matches = 0

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running and self._thread is not None and self._thread.is_alive()

    @property
    def state(self) -> PassState:
        """Current pass state (IDLE between passes)."""
        return self._state

    @property
    def last_run(self) -> datetime | None:
        """Get time of last pass."""
        return self._last_run

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def match_size(self) -> int:
        return self._match_size

    def start(self) -> bool:
        """Start the scheduler.

        Returns:
            True if started, False if already running
        """
        if self.is_running:
            logger.warning("[SCHEDULER] Scheduler already running")
            return False

        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(
            target=self._run_loop,
            name="matching-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("[SCHEDULER] Matching scheduler started (interval: %ss)", self._interval)
        return True

    def stop(self, timeout: float = 30.0) -> bool:
        """Stop the scheduler gracefully.

        An in-flight pass is not cancelled; this waits for it to finish.

        Args:
            timeout: Maximum seconds to wait for thread to stop

        Returns:
            True if stopped, False if timeout
        """
        if not self.is_running:
            return True

        logger.info("[SCHEDULER] Stopping matching scheduler...")
        self._stop_event.set()
        self._running = False

        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("[SCHEDULER] Scheduler thread did not stop in time")
                return False

        logger.info("[SCHEDULER] Matching scheduler stopped")
        return True

    def run_once(self) -> list[Match]:
        """Run one pass now (for testing/manual trigger)."""
        return self.run_pass()

    def _run_loop(self) -> None:
        """Main scheduler loop - runs in background thread."""
        if self._run_on_start:
            self.run_pass()

        # Fixed delay: the interval counts from the end of the previous pass
        while not self._stop_event.wait(self._interval):
            self.run_pass()

    def run_pass(self) -> list[Match]:
        """Run one matching pass.

        Never raises. A pass that cannot take the lease returns [] at once;
        a pass that fails midway returns the matches committed before the
        failure.

        Returns:
            Matches committed during this pass
        """
        started = time.monotonic()
        self._last_run = datetime.now(UTC)
        matches: list[Match] = []

        try:
            with self._guard.hold(LOCK_NAME, renew=True) as token:
                self._state = PassState.LOCKED
                try:
                    self._form_and_commit(token, matches)
                except Exception as e:
                    logger.exception("[PASS] Error processing matchmaking: %s", e)
        except LockAcquisitionFailure:
            logger.debug("[PASS] Matchmaking lock held elsewhere, skipping this tick")
            return []
        except Exception as e:
            logger.exception("[PASS] Matchmaking pass failed: %s", e)
        finally:
            self._state = PassState.IDLE

        self._last_matches = len(matches)
        if matches:
            logger.info(
                "[PASS] Created %d matches in %.3fs",
                len(matches),
                time.monotonic() - started,
            )
        try:
            notify_observer(self._observer, "on_queue_size", self._pool.size())
        except Exception as e:
            logger.warning("[PASS] Could not read queue size after pass: %s", e)
        return matches

    def _form_and_commit(self, token: str, matches: list[Match]) -> None:
        """FORMING and COMMIT phases; appends committed matches as it goes."""
        self._state = PassState.FORMING
        self._pool.refresh_priorities()
        players = list(self._pool.snapshot())

        if len(players) < self._match_size:
            logger.debug(
                "[PASS] Not enough players in queue: %d (need %d)",
                len(players),
                self._match_size,
            )
            return

        logger.info("[PASS] Processing matchmaking for %d players", len(players))

        for group in iter_groups(players, self._match_size, self._engine):
            if not self._guard.renew(LOCK_NAME, token):
                logger.warning("[PASS] Lost matchmaking lock mid-pass, stopping")
                return

            self._state = PassState.COMMIT
            match = self._commit(group)
            if match is not None:
                matches.append(match)
            self._state = PassState.FORMING

    def _commit(self, group: list[Player]) -> Match | None:
        """Persist one group as a match and announce it.

        Returns:
            The match, or None if a member had left the pool meanwhile
        """
        match = build_match(group, self._engine, datetime.now(UTC))
        if not self._store.commit(match):
            return None

        try:
            self._channel.publish_match_created(match)
        except Exception as e:
            # Match is committed; players can still find it via lookup
            logger.warning("[NOTIFY] Failed to publish match %s: %s", match.match_id, e)

        notify_observer(self._observer, "on_match_created", match)

        logger.info(
            "[PASS] Created match %s with %d players "
            "(avg skill: %d, avg latency: %dms, quality: %.1f)",
            match.match_id,
            len(match.players),
            match.average_skill_rating,
            match.average_latency,
            match.quality,
        )
        return match

    def get_status(self) -> dict:
        return {
            "running": self.is_running,
            "state": self._state.value,
            "interval_seconds": self._interval,
            "match_size": self._match_size,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_matches": self._last_matches,
        }


def create_matching_scheduler(
    db_factory: Callable[[], Any],
    settings: MatchmakingSettings,
    observer: MatchmakingObserver | None = None,
    run_on_start: bool = True,
) -> MatchingScheduler:
    """Wire a scheduler and its collaborators from settings."""
    return MatchingScheduler(
        pool=WaitingPool(
            db_factory,
            ordering=settings.queue_ordering,
            player_ttl_seconds=settings.player_ttl_seconds,
        ),
        engine=CompatibilityEngine(
            max_skill_gap=settings.max_skill_gap,
            max_latency_threshold=settings.max_latency_threshold,
        ),
        guard=LeaseGuard(db_factory, ttl_seconds=settings.lock_ttl_seconds),
        store=MatchStore(db_factory, ttl_seconds=settings.match_ttl_seconds),
        channel=NotificationChannel(db_factory, max_len=settings.event_stream_max_len),
        match_size=settings.match_size,
        interval_seconds=settings.pass_interval_seconds,
        observer=observer,
        run_on_start=run_on_start,
    )


# =============================================================================
# MODULE-LEVEL FUNCTIONS
# =============================================================================

_scheduler: MatchingScheduler | None = None


def start_matching_scheduler(
    db_factory: Callable[[], Any],
    settings: MatchmakingSettings,
    observer: MatchmakingObserver | None = None,
) -> bool:
    """Start the global matching scheduler.

    Returns:
        True if started, False if already running
    """
    global _scheduler

    if _scheduler and _scheduler.is_running:
        logger.warning("[SCHEDULER] Scheduler already running")
        return False

    _scheduler = create_matching_scheduler(db_factory, settings, observer)
    return _scheduler.start()


def stop_matching_scheduler(timeout: float = 30.0) -> bool:
    """Stop the global matching scheduler.

    Returns:
        True if stopped
    """
    global _scheduler

    if not _scheduler:
        return True

    result = _scheduler.stop(timeout)
    _scheduler = None
    return result


def is_scheduler_running() -> bool:
    """Check if the global scheduler is running."""
    return _scheduler is not None and _scheduler.is_running


def get_scheduler_status() -> dict:
    """Get status of the global scheduler."""
    if not _scheduler:
        return {"running": False}
    return _scheduler.get_status()
