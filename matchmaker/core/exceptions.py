"""Matchmaker exception types.

Recoverable conditions are handled at the boundary of the unit they occur
in. Only ValidationError and AlreadyQueuedError are meant to reach an API
layer; lookups that find nothing return None instead of raising.
"""


class MatchmakerError(Exception):
    """Base class for matchmaker errors."""


class ValidationError(MatchmakerError):
    """Malformed player attributes, rejected before reaching the pool."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class AlreadyQueuedError(MatchmakerError):
    """Player tried to join while already waiting in the pool."""

    def __init__(self, player_id: str):
        super().__init__(f"Player already in queue: {player_id}")
        self.player_id = player_id


class LockAcquisitionFailure(MatchmakerError):
    """A lease is held by someone else; the guarded work did not run."""

    def __init__(self, name: str):
        super().__init__(f"Failed to acquire lock: {name}")
        self.name = name


class StaleEntryError(MatchmakerError):
    """A pool index entry whose backing player record is gone.

    Built for logging by the pool's pruning path; never raised to callers.
    """

    def __init__(self, player_id: str):
        super().__init__(f"Stale queue entry for player {player_id}")
        self.player_id = player_id
