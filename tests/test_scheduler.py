"""Tests for matching passes and the background scheduler."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from helpers import enqueue_in_order, make_player
from matchmaker.config import MatchmakingSettings
from matchmaker.consumers.compatibility import CompatibilityEngine
from matchmaker.consumers.formation import form_groups
from matchmaker.consumers.scheduler import (
    LOCK_NAME,
    MatchingScheduler,
    PassState,
    create_matching_scheduler,
)
from matchmaker.core.interfaces import StatsObserver
from matchmaker.services.notification_channel import MATCH_TOPIC, player_topic
from matchmaker.services.waiting_pool import WaitingPool

# =============================================================================
# SINGLE PASS
# =============================================================================


class TestRunPass:
    def test_empty_pool(self, scheduler):
        assert scheduler.run_pass() == []
        assert scheduler.state == PassState.IDLE

    def test_single_player(self, scheduler, pool):
        pool.enqueue(make_player("alone"))
        assert scheduler.run_pass() == []
        assert pool.contains("alone")

    def test_outlier_remains_queued(self, scheduler, pool, clock):
        enqueue_in_order(
            pool,
            clock,
            [
                make_player("p1", skill=1500, latency=40),
                make_player("p2", skill=1550, latency=45),
                make_player("p3", skill=1520, latency=50),
                make_player("p4", skill=1800, latency=60),
            ],
        )

        matches = scheduler.run_pass()

        assert [m.player_ids for m in matches] == [["p1", "p2"]]
        assert [p.id for p in pool.snapshot()] == ["p3", "p4"]

    def test_two_matches_when_everyone_fits(self, scheduler, pool, clock):
        enqueue_in_order(
            pool,
            clock,
            [
                make_player("p1", skill=1500, latency=40),
                make_player("p2", skill=1550, latency=45),
                make_player("p3", skill=1520, latency=50),
                make_player("p4", skill=1600, latency=60),
            ],
        )

        matches = scheduler.run_pass()

        assert len(matches) == 2
        assert pool.size() == 0
        for match in matches:
            assert len(match.players) == 2
            assert match.server_region == "us-east"
            a, b = match.players
            assert abs(a.skill_rating - b.skill_rating) <= 200
            assert a.latency <= 100 and b.latency <= 100

    def test_match_stored_for_each_member(self, scheduler, pool, store, clock):
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])
        [match] = scheduler.run_pass()

        for pid in ("a", "b"):
            found = store.lookup(pid)
            assert found is not None
            assert found.match_id == match.match_id
            assert found.player_ids == ["a", "b"]

    def test_match_retention_window(self, scheduler, pool, store, clock):
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])
        scheduler.run_pass()
        clock.advance(601)
        assert store.lookup("a") is None

    def test_notifications_published(self, scheduler, pool, channel, clock):
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])
        [match] = scheduler.run_pass()

        [event] = channel.read(MATCH_TOPIC)
        assert event.payload["match_id"] == match.match_id
        assert event.payload["player_count"] == 2
        for pid in ("a", "b"):
            assert channel.read(player_topic(pid))[0].payload["match_id"] == match.match_id

    def test_unmatched_players_keep_relative_order(self, scheduler, pool, clock):
        enqueue_in_order(
            pool,
            clock,
            [
                make_player("a", skill=1500),
                make_player("b", skill=3000),
                make_player("c", skill=1510),
                make_player("d", skill=3500),
                make_player("e", skill=4200),
            ],
        )
        [match] = scheduler.run_pass()

        assert match.player_ids == ["a", "c"]
        assert [p.id for p in pool.snapshot()] == ["b", "d", "e"]
        assert [pool.position_of(pid) for pid in ("b", "d", "e")] == [1, 2, 3]

    def test_second_pass_matches_new_arrivals(self, scheduler, pool, clock):
        enqueue_in_order(pool, clock, [make_player("a", skill=1000)])
        assert scheduler.run_pass() == []

        enqueue_in_order(pool, clock, [make_player("b", skill=1100)])
        [match] = scheduler.run_pass()
        assert match.player_ids == ["a", "b"]

    def test_observer_notified(self, pool, engine, guard, store, channel, clock):
        stats = StatsObserver()
        scheduler = MatchingScheduler(pool, engine, guard, store, channel, observer=stats)
        enqueue_in_order(pool, clock, [make_player(str(i)) for i in range(5)])

        scheduler.run_pass()

        assert stats.matches_created == 2
        assert stats.last_queue_size == 1
        assert stats.average_match_quality > 0

    def test_failing_observer_does_not_break_pass(self, pool, engine, guard, store, channel, clock):
        observer = MagicMock()
        observer.on_match_created.side_effect = RuntimeError("metrics down")
        scheduler = MatchingScheduler(pool, engine, guard, store, channel, observer=observer)
        enqueue_in_order(pool, clock, [make_player(str(i)) for i in range(4)])

        assert len(scheduler.run_pass()) == 2

    def test_rejects_match_size_below_two(self, pool, engine, guard, store, channel):
        with pytest.raises(ValueError):
            MatchingScheduler(pool, engine, guard, store, channel, match_size=1)


# =============================================================================
# LOCKING AND FAILURES
# =============================================================================


class TestPassGuarding:
    def test_skips_when_lock_held(self, scheduler, pool, guard, clock):
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])
        other = guard.acquire(LOCK_NAME)

        assert scheduler.run_pass() == []
        assert pool.size() == 2
        # The other holder's lease is untouched
        assert guard.holder(LOCK_NAME) == other

    def test_runs_after_lock_expires(self, scheduler, pool, guard, clock):
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])
        guard.acquire(LOCK_NAME)
        clock.advance(6)
        assert len(scheduler.run_pass()) == 1

    def test_lock_released_after_pass(self, scheduler, pool, guard, clock):
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])
        scheduler.run_pass()
        assert guard.holder(LOCK_NAME) is None

    def test_exception_is_contained_and_lock_released(self, engine, guard, store, channel):
        pool = MagicMock(spec=WaitingPool)
        pool.refresh_priorities.return_value = 0
        pool.snapshot.side_effect = RuntimeError("store unavailable")
        pool.size.return_value = 0
        scheduler = MatchingScheduler(pool, engine, guard, store, channel)

        assert scheduler.run_pass() == []
        assert guard.holder(LOCK_NAME) is None
        assert scheduler.state == PassState.IDLE

    def test_failure_midway_keeps_earlier_matches(self, pool, engine, guard, store, channel, clock):
        calls = {"n": 0}
        real_commit = store.commit

        def flaky_commit(match):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("disk full")
            return real_commit(match)

        store.commit = flaky_commit
        scheduler = MatchingScheduler(pool, engine, guard, store, channel)
        enqueue_in_order(pool, clock, [make_player(str(i)) for i in range(6)])

        matches = scheduler.run_pass()

        assert [m.player_ids for m in matches] == [["0", "1"]]
        # Players of the failed and unformed groups are still queued
        assert [p.id for p in pool.snapshot()] == ["2", "3", "4", "5"]

    def test_group_discarded_if_member_left(self, pool, engine, guard, store, channel, clock):
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b"), make_player("c")])

        real_commit = store.commit

        def leave_then_commit(match):
            pool.dequeue("b")
            return real_commit(match)

        store.commit = leave_then_commit
        scheduler = MatchingScheduler(pool, engine, guard, store, channel)

        assert scheduler.run_pass() == []
        # Nothing partially committed: "a" is still queued, nobody has a match
        assert pool.contains("a")
        assert store.lookup("a") is None
        assert pool.contains("c")

    def test_group_discarded_if_records_expired(
        self, db_factory, engine, guard, store, channel, clock
    ):
        pool = WaitingPool(db_factory, player_ttl_seconds=10, clock=clock)
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])

        real_commit = store.commit

        def expire_then_commit(match):
            clock.advance(100)
            return real_commit(match)

        store.commit = expire_then_commit
        scheduler = MatchingScheduler(pool, engine, guard, store, channel)

        assert scheduler.run_pass() == []
        assert store.lookup("a") is None
        assert store.lookup("b") is None
        assert pool.size() == 0
        assert list(pool.snapshot()) == []

    def test_group_discarded_if_one_record_expired(
        self, db_factory, engine, guard, store, channel, clock
    ):
        pool = WaitingPool(db_factory, player_ttl_seconds=10, clock=clock)
        # "a" expires at +10s, "b" at +11s
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])

        real_commit = store.commit

        def expire_first_then_commit(match):
            clock.advance(8.5)
            return real_commit(match)

        store.commit = expire_first_then_commit
        scheduler = MatchingScheduler(pool, engine, guard, store, channel)

        assert scheduler.run_pass() == []
        assert store.lookup("b") is None
        # The live member was rolled back into the pool
        assert pool.contains("b")
        assert not pool.contains("a")

    def test_stops_committing_when_lease_lost(self, pool, engine, guard, store, channel, clock):
        enqueue_in_order(pool, clock, [make_player(str(i)) for i in range(4)])

        real_commit = store.commit

        def commit_then_lose_lease(match):
            committed = real_commit(match)
            guard.force_release(LOCK_NAME)
            guard.acquire(LOCK_NAME)
            return committed

        store.commit = commit_then_lose_lease
        scheduler = MatchingScheduler(pool, engine, guard, store, channel)

        matches = scheduler.run_pass()

        assert len(matches) == 1
        assert [p.id for p in pool.snapshot()] == ["2", "3"]

    def test_state_during_commit(self, pool, engine, guard, store, channel, clock):
        seen = []
        real_commit = store.commit
        scheduler = MatchingScheduler(pool, engine, guard, store, channel)

        def spy(match):
            seen.append(scheduler.state)
            return real_commit(match)

        store.commit = spy
        enqueue_in_order(pool, clock, [make_player("a"), make_player("b")])
        scheduler.run_pass()

        assert seen == [PassState.COMMIT]
        assert scheduler.state == PassState.IDLE


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrentPasses:
    def test_concurrent_passes_match_sequential_result(self, db_path, db_factory):
        settings = MatchmakingSettings(db_path=str(db_path), match_size=2)
        players = [
            make_player(f"p{i:02d}", skill=1200 + (i * 97) % 600, latency=20 + (i * 13) % 90)
            for i in range(40)
        ]
        pool = WaitingPool(db_factory)
        for player in players:
            pool.enqueue(player)

        engine = CompatibilityEngine(settings.max_skill_gap, settings.max_latency_threshold)
        expected = {p.id for group in form_groups(players, 2, engine) for p in group}

        results = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(6)

        def worker():
            scheduler = create_matching_scheduler(db_factory, settings, run_on_start=False)
            barrier.wait()
            matches = scheduler.run_pass()
            with results_lock:
                results.extend(matches)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        matched = [pid for match in results for pid in match.player_ids]
        assert len(matched) == len(set(matched)), "player assigned to two matches"
        assert set(matched) == expected
        for match in results:
            assert len(match.players) == 2


# =============================================================================
# BACKGROUND LOOP
# =============================================================================


class TestBackgroundLoop:
    def test_start_and_stop(self, db_factory):
        settings = MatchmakingSettings(pass_interval_seconds=0.05)
        scheduler = create_matching_scheduler(db_factory, settings)
        pool = WaitingPool(db_factory)
        pool.enqueue(make_player("a"))
        pool.enqueue(make_player("b"))

        assert scheduler.start() is True
        assert scheduler.start() is False
        try:
            deadline = time.monotonic() + 5
            while pool.size() and time.monotonic() < deadline:
                time.sleep(0.02)
            assert pool.size() == 0
            assert scheduler.last_run is not None
        finally:
            assert scheduler.stop(timeout=5) is True
        assert scheduler.is_running is False

    def test_picks_up_players_joining_later(self, db_factory):
        settings = MatchmakingSettings(pass_interval_seconds=0.05)
        scheduler = create_matching_scheduler(db_factory, settings, run_on_start=False)
        pool = WaitingPool(db_factory)
        scheduler.start()
        try:
            pool.enqueue(make_player("late1"))
            pool.enqueue(make_player("late2"))
            deadline = time.monotonic() + 5
            while pool.size() and time.monotonic() < deadline:
                time.sleep(0.02)
            assert pool.size() == 0
        finally:
            scheduler.stop(timeout=5)

    def test_status(self, scheduler):
        status = scheduler.get_status()
        assert status["running"] is False
        assert status["state"] == "IDLE"
        assert status["match_size"] == 2
