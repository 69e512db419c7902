"""Consumer layer - compatibility rules, group formation, matching scheduler."""

from matchmaker.consumers.compatibility import CompatibilityEngine
from matchmaker.consumers.formation import build_group, build_match, form_groups, iter_groups
from matchmaker.consumers.scheduler import (
    LOCK_NAME,
    MatchingScheduler,
    PassState,
    create_matching_scheduler,
    get_scheduler_status,
    is_scheduler_running,
    start_matching_scheduler,
    stop_matching_scheduler,
)

__all__ = [
    "CompatibilityEngine",
    "LOCK_NAME",
    "MatchingScheduler",
    "PassState",
    "build_group",
    "build_match",
    "create_matching_scheduler",
    "form_groups",
    "get_scheduler_status",
    "is_scheduler_running",
    "iter_groups",
    "start_matching_scheduler",
    "stop_matching_scheduler",
]
