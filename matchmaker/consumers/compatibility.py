"""Skill, latency and region compatibility rules.

Pure functions of their inputs and two thresholds; safe to share between
threads.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from matchmaker.core.types import Player

logger = logging.getLogger(__name__)

# Rating treated as average when estimating wait
AVERAGE_SKILL = 1500


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _falloff_score(measured: float, limit: int) -> float:
    """100 at zero, 0 at `limit`, linear in between, clamped."""
    if limit <= 0:
        return 100.0 if measured <= 0 else 0.0
    return _clamp(100.0 - (measured / limit * 100.0))


@dataclass(frozen=True)
class CompatibilityEngine:
    """Decides who may share a match and how good a match is."""

    max_skill_gap: int = 200
    max_latency_threshold: int = 100

    def skill_compatible(self, a: Player, b: Player) -> bool:
        return abs(a.skill_rating - b.skill_rating) <= self.max_skill_gap

    def latency_compatible(self, a: Player, b: Player) -> bool:
        # Both must be able to reach a shared server acceptably
        return a.latency <= self.max_latency_threshold and b.latency <= self.max_latency_threshold

    def region_compatible(self, a: Player, b: Player) -> bool:
        return a.region == b.region

    def compatible(self, candidate: Player, group: Sequence[Player]) -> bool:
        """True if the candidate fits with every member already in the group."""
        for member in group:
            if not self.skill_compatible(member, candidate):
                logger.debug(
                    "Players %s and %s not skill compatible (ratings: %d vs %d)",
                    member.id,
                    candidate.id,
                    member.skill_rating,
                    candidate.skill_rating,
                )
                return False
            if not self.latency_compatible(member, candidate):
                logger.debug(
                    "Players %s and %s not latency compatible (latencies: %dms vs %dms)",
                    member.id,
                    candidate.id,
                    member.latency,
                    candidate.latency,
                )
                return False
            if not self.region_compatible(member, candidate):
                logger.debug(
                    "Players %s and %s not region compatible (regions: %s vs %s)",
                    member.id,
                    candidate.id,
                    member.region,
                    candidate.region,
                )
                return False
        return True

    def quality(self, group: Sequence[Player]) -> float:
        """Match quality score, 0-100. Higher is better.

        60% skill balance (narrow rating range), 40% connection quality
        (low mean latency).
        """
        if len(group) < 2:
            return 0.0

        skills = [p.skill_rating for p in group]
        skill_score = _falloff_score(max(skills) - min(skills), self.max_skill_gap)

        mean_latency = sum(p.latency for p in group) / len(group)
        latency_score = _falloff_score(mean_latency, self.max_latency_threshold)

        return skill_score * 0.6 + latency_score * 0.4

    def estimate_wait(self, player: Player, pool_size: int) -> int:
        """Rough wait estimate in milliseconds, for display only.

        Extreme ratings and high latency wait longer; a busy pool shortens
        the wait.
        """
        wait = 5000
        wait += (abs(player.skill_rating - AVERAGE_SKILL) // 100) * 1000
        if player.latency > 50:
            wait += 2000
        if pool_size > 10:
            wait -= 2000
        return max(1000, wait)
