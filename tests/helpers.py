"""Test helpers shared across the suite."""

from matchmaker.core.types import Player
from matchmaker.services.waiting_pool import WaitingPool


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_player(
    player_id: str,
    skill: int = 1500,
    latency: int = 40,
    region: str = "us-east",
) -> Player:
    return Player(
        id=player_id,
        username=f"user-{player_id}",
        skill_rating=skill,
        latency=latency,
        region=region,
    )


def enqueue_in_order(pool: WaitingPool, clock: FakeClock, players: list[Player]) -> None:
    """Enqueue players one second apart so arrival order is unambiguous."""
    for player in players:
        pool.enqueue(player)
        clock.advance(1)
