"""Tests for the per-topic event log."""

from datetime import UTC, datetime

from helpers import make_player
from matchmaker.consumers.compatibility import CompatibilityEngine
from matchmaker.consumers.formation import build_match
from matchmaker.services.notification_channel import (
    MATCH_FOUND,
    MATCH_TOPIC,
    NotificationChannel,
    player_topic,
)


class TestPublishRead:
    def test_events_read_back_in_order(self, channel):
        ids = [channel.publish("t", {"n": n}) for n in range(3)]
        assert ids == sorted(ids)
        assert [e.payload["n"] for e in channel.read("t")] == [0, 1, 2]

    def test_topics_are_separate(self, channel):
        channel.publish("a", {"x": 1})
        channel.publish("b", {"x": 2})
        assert [e.payload for e in channel.read("a")] == [{"x": 1}]
        assert [e.topic for e in channel.read("b")] == ["b"]

    def test_tail_after_id(self, channel):
        first = channel.publish("t", {"n": 1})
        channel.publish("t", {"n": 2})
        assert [e.payload["n"] for e in channel.read("t", after_id=first)] == [2]

    def test_latest_id(self, channel):
        assert channel.latest_id("t") == 0
        channel.publish("t", {})
        last = channel.publish("t", {})
        assert channel.latest_id("t") == last

    def test_read_limit(self, channel):
        for n in range(5):
            channel.publish("t", {"n": n})
        assert [e.payload["n"] for e in channel.read("t", limit=2)] == [0, 1]

    def test_trim_keeps_newest(self, channel):
        for n in range(5):
            channel.publish("t", {"n": n})
        assert channel.trim("t", 2) == 3
        assert [e.payload["n"] for e in channel.read("t")] == [3, 4]

    def test_max_len_applied_on_publish(self, db_factory, clock):
        capped = NotificationChannel(db_factory, max_len=3, clock=clock)
        for n in range(6):
            capped.publish("t", {"n": n})
        assert capped.length("t") == 3
        assert [e.payload["n"] for e in capped.read("t")] == [3, 4, 5]


class TestPublishMatchCreated:
    def test_fan_out(self, channel):
        engine = CompatibilityEngine()
        group = [
            make_player("p1", skill=1500, latency=40),
            make_player("p2", skill=1550, latency=45),
        ]
        match = build_match(group, engine, datetime(2026, 3, 1, 12, 0, tzinfo=UTC))

        ids = channel.publish_match_created(match)
        assert len(ids) == 3

        [global_event] = channel.read(MATCH_TOPIC)
        assert global_event.payload == {
            "match_id": match.match_id,
            "player_count": 2,
            "average_skill": 1525,
            "average_latency": 42,
            "region": "us-east",
            "timestamp": "2026-03-01T12:00:00+00:00",
        }

        for pid in ("p1", "p2"):
            [event] = channel.read(player_topic(pid))
            assert event.payload == {
                "event": MATCH_FOUND,
                "match_id": match.match_id,
                "server_region": "us-east",
            }
