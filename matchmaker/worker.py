"""Matchmaking worker process.

One process runs one scheduler. Start as many as needed against the same
database file; the matchmaking lease keeps their passes from overlapping.

Usage:
    matchmaker-worker
    python -m matchmaker
"""

import logging
import signal
import threading

from matchmaker.config import get_settings
from matchmaker.consumers.scheduler import (
    get_scheduler_status,
    start_matching_scheduler,
    stop_matching_scheduler,
)
from matchmaker.core.interfaces import StatsObserver
from matchmaker.database import db_factory_for, init_db
from matchmaker.utilities.logging import setup_logging

logger = logging.getLogger(__name__)


def main() -> int:
    """Run a worker until SIGINT/SIGTERM."""
    setup_logging()
    settings = get_settings()

    logger.info(
        "[STARTUP] match_size=%d max_skill_gap=%d max_latency=%dms ordering=%s interval=%ss",
        settings.match_size,
        settings.max_skill_gap,
        settings.max_latency_threshold,
        settings.queue_ordering.value,
        settings.pass_interval_seconds,
    )

    init_db(settings.db_path)
    db_factory = db_factory_for(settings.db_path)
    stats = StatsObserver()

    stop_requested = threading.Event()

    def _handle_signal(signum, frame):
        logger.info("[SHUTDOWN] Received signal %s", signal.Signals(signum).name)
        stop_requested.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    if not start_matching_scheduler(db_factory, settings, observer=stats):
        logger.error("[STARTUP] Matching scheduler failed to start")
        return 1

    logger.info("[STARTUP] Worker ready")
    stop_requested.wait()

    logger.info("[SHUTDOWN] Shutting down worker...")
    status = get_scheduler_status()
    stopped = stop_matching_scheduler()
    logger.info(
        "[SHUTDOWN] Worker stopped (matches created: %d, last pass: %s)",
        stats.matches_created,
        status.get("last_run"),
    )
    return 0 if stopped else 1


if __name__ == "__main__":
    raise SystemExit(main())
