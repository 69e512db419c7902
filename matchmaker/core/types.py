"""Core data types for the matchmaker.

All data structures are dataclasses with attribute access.
Datetimes are timezone-aware UTC.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class PlayerStatus(str, Enum):
    """Lifecycle state of a player."""

    QUEUED = "QUEUED"
    MATCHED = "MATCHED"
    IN_GAME = "IN_GAME"
    OFFLINE = "OFFLINE"


class MatchStatus(str, Enum):
    """Lifecycle state of a match.

    The matcher only ever creates READY matches; the other transitions
    belong to the game-session lifecycle.
    """

    PENDING = "PENDING"
    READY = "READY"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class Player:
    """A client waiting for (or placed in) a match."""

    id: str
    username: str
    skill_rating: int  # Elo/MMR, 0-5000
    latency: int  # Ping in milliseconds, 0-1000
    region: str  # e.g., "us-east", "eu-west"
    queued_at: datetime | None = None
    status: PlayerStatus = PlayerStatus.OFFLINE

    def queued(self, at: datetime) -> "Player":
        """Copy of this player stamped as queued at the given time."""
        return replace(self, queued_at=at, status=PlayerStatus.QUEUED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "skill_rating": self.skill_rating,
            "latency": self.latency,
            "region": self.region,
            "queued_at": self.queued_at.isoformat() if self.queued_at else None,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Player":
        queued_at = data.get("queued_at")
        return cls(
            id=data["id"],
            username=data["username"],
            skill_rating=int(data["skill_rating"]),
            latency=int(data["latency"]),
            region=data["region"],
            queued_at=datetime.fromisoformat(queued_at) if queued_at else None,
            status=PlayerStatus(data.get("status", PlayerStatus.OFFLINE.value)),
        )


@dataclass(frozen=True)
class Match:
    """A formed group of exactly match_size compatible players."""

    match_id: str
    players: tuple[Player, ...]
    average_skill_rating: int
    average_latency: int
    server_region: str
    created_at: datetime
    status: MatchStatus = MatchStatus.READY
    # Quality score (0-100) at formation time
    quality: float = 0.0

    @property
    def player_ids(self) -> list[str]:
        return [p.id for p in self.players]

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "players": [p.to_dict() for p in self.players],
            "average_skill_rating": self.average_skill_rating,
            "average_latency": self.average_latency,
            "server_region": self.server_region,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "quality": self.quality,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Match":
        return cls(
            match_id=data["match_id"],
            players=tuple(Player.from_dict(p) for p in data["players"]),
            average_skill_rating=int(data["average_skill_rating"]),
            average_latency=int(data["average_latency"]),
            server_region=data["server_region"],
            created_at=datetime.fromisoformat(data["created_at"]),
            status=MatchStatus(data.get("status", MatchStatus.READY.value)),
            quality=float(data.get("quality", 0.0)),
        )


@dataclass
class MatchResult:
    """Answer to "has this player been matched yet?"."""

    success: bool
    message: str
    match: Match | None = None

    @property
    def match_id(self) -> str | None:
        return self.match.match_id if self.match else None


@dataclass
class QueueStatus:
    """Snapshot of queue health for display."""

    queue_size: int
    estimated_wait_ms: int
    matches_created: int = 0
    average_match_quality: float = 0.0


@dataclass(frozen=True)
class NotificationEvent:
    """One entry of a per-topic append-only event log."""

    id: int
    topic: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


def utc_from_timestamp(ts: float) -> datetime:
    """Epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=UTC)
