"""Service layer.

Stateful components over the shared database, plus the facade callers use.

Layer hierarchy:
    Services (facade) → Consumers (scheduler, rules) → Services (stores) → Database
"""

from matchmaker.services.waiting_pool import WaitingPool, priority_score
from matchmaker.services.lease_guard import LeaseGuard, LeaseRenewer
from matchmaker.services.match_store import MatchStore
from matchmaker.services.notification_channel import (
    MATCH_FOUND,
    MATCH_TOPIC,
    NotificationChannel,
    player_topic,
)

# Facade last: it depends on the consumer layer, which depends on the above
from matchmaker.services.matchmaking_service import (
    MatchmakingService,
    create_matchmaking_service,
)

__all__ = [
    "LeaseGuard",
    "LeaseRenewer",
    "MATCH_FOUND",
    "MATCH_TOPIC",
    "MatchStore",
    "MatchmakingService",
    "NotificationChannel",
    "WaitingPool",
    "create_matchmaking_service",
    "player_topic",
    "priority_score",
]
