"""Greedy group formation over an ordered list of players.

The first remaining player anchors a group; later players join in order
while they are compatible with everyone already in it. An anchor that
cannot fill a group is dropped for the rest of the pass and never retried
from another starting position; it stays queued for the next pass.
"""

import uuid
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import replace
from datetime import datetime

from matchmaker.consumers.compatibility import CompatibilityEngine
from matchmaker.core.types import Match, MatchStatus, Player, PlayerStatus


def build_group(
    anchor: Player,
    candidates: Iterable[Player],
    match_size: int,
    engine: CompatibilityEngine,
) -> list[Player]:
    """Grow a group from an anchor, stopping once it is full.

    Returns:
        The group (possibly short of match_size)
    """
    group = [anchor]
    for candidate in candidates:
        if len(group) >= match_size:
            break
        if engine.compatible(candidate, group):
            group.append(candidate)
    return group


def iter_groups(
    players: Iterable[Player],
    match_size: int,
    engine: CompatibilityEngine,
) -> Iterator[list[Player]]:
    """Yield full groups in formation order.

    Lazily, so a caller can commit each group before the next is formed.
    Players in a yielded group are removed from consideration whether or
    not the caller manages to commit it.
    """
    remaining = list(players)
    while len(remaining) >= match_size:
        anchor = remaining[0]
        group = build_group(anchor, remaining[1:], match_size, engine)

        if len(group) == match_size:
            yield group
            matched = {p.id for p in group}
            remaining = [p for p in remaining if p.id not in matched]
        else:
            remaining.pop(0)


def form_groups(
    players: Iterable[Player],
    match_size: int,
    engine: CompatibilityEngine,
) -> list[list[Player]]:
    """All groups a single pass would form over these players."""
    return list(iter_groups(players, match_size, engine))


def build_match(
    group: Sequence[Player],
    engine: CompatibilityEngine,
    created_at: datetime,
) -> Match:
    """Turn a full group into a READY match.

    Averages use truncating integer division. All members share one
    region, so the first player's region is the server region.
    """
    players = tuple(replace(p, status=PlayerStatus.MATCHED) for p in group)
    return Match(
        match_id=str(uuid.uuid4()),
        players=players,
        average_skill_rating=sum(p.skill_rating for p in group) // len(group),
        average_latency=sum(p.latency for p in group) // len(group),
        server_region=group[0].region,
        created_at=created_at,
        status=MatchStatus.READY,
        quality=engine.quality(group),
    )
