"""Core types, interfaces and errors."""

from matchmaker.core.exceptions import (
    AlreadyQueuedError,
    LockAcquisitionFailure,
    MatchmakerError,
    StaleEntryError,
    ValidationError,
)
from matchmaker.core.interfaces import (
    MatchmakingObserver,
    NullObserver,
    StatsObserver,
    notify_observer,
)
from matchmaker.core.requests import JoinQueueRequest, validate_join_request
from matchmaker.core.types import (
    Match,
    MatchResult,
    MatchStatus,
    NotificationEvent,
    Player,
    PlayerStatus,
    QueueStatus,
    utc_from_timestamp,
)

__all__ = [
    # Types
    "Match",
    "MatchResult",
    "MatchStatus",
    "NotificationEvent",
    "Player",
    "PlayerStatus",
    "QueueStatus",
    "utc_from_timestamp",
    # Requests
    "JoinQueueRequest",
    "validate_join_request",
    # Interfaces
    "MatchmakingObserver",
    "NullObserver",
    "StatsObserver",
    "notify_observer",
    # Errors
    "AlreadyQueuedError",
    "LockAcquisitionFailure",
    "MatchmakerError",
    "StaleEntryError",
    "ValidationError",
]
