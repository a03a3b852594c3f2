"""Shared types for the rating and team-balancing engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

DEFAULT_MU = 25.0
DEFAULT_SIGMA = 8.333

PairKey = tuple[int, int]


class RatingReason(str, Enum):
    """Why a rating event was recorded."""

    MATCH = "match"
    IDLE = "idle"
    MVP = "mvp"
    ROLLBACK = "rollback"


@dataclass(frozen=True)
class PlayerRatingState:
    """Current skill estimate of one player."""

    player_id: int
    mu: float = DEFAULT_MU
    sigma: float = DEFAULT_SIGMA
    games_played: int = 0
    last_played_at: datetime | None = None
    first_played_at: datetime | None = None
    mvp_count: int = 0
    created_at: datetime | None = None

    @property
    def last_activity_at(self) -> datetime | None:
        """Most recent known activity, falling back to the first game and registration."""
        return self.last_played_at or self.first_played_at or self.created_at


@dataclass(frozen=True)
class RatingEvent:
    """Immutable audit record of one rating change."""

    player_id: int
    reason: RatingReason
    mu_before: float
    mu_after: float
    sigma_before: float
    sigma_after: float
    event_time: datetime
    match_id: int | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def mu_delta(self) -> float:
        return self.mu_after - self.mu_before

    @property
    def sigma_delta(self) -> float:
        return self.sigma_after - self.sigma_before


@dataclass(frozen=True)
class RatingWriteBatch:
    """All writes produced by one engine operation; applied atomically."""

    updates: tuple[PlayerRatingState, ...] = ()
    events: tuple[RatingEvent, ...] = ()

    def is_empty(self) -> bool:
        return not self.updates and not self.events


def pair_key(player_a_id: int, player_b_id: int) -> PairKey:
    """Canonical key for an unordered pair of player ids."""
    if player_a_id == player_b_id:
        raise ValueError(f"pair requires two distinct players, got {player_a_id} twice")
    return (min(player_a_id, player_b_id), max(player_a_id, player_b_id))


@dataclass(frozen=True)
class PlayerPair:
    """Historical statistics for one unordered pair (player_a_id < player_b_id).

    ``vs_wins`` counts wins of player A when the two were opponents.
    """

    player_a_id: int
    player_b_id: int
    together_games: int = 0
    together_wins: int = 0
    vs_games: int = 0
    vs_wins: int = 0
    synergy_mu: float = 0.0
    synergy_sigma: float = 1.0
    counter_mu: float = 0.0
    counter_sigma: float = 1.0
    last_game_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.player_a_id >= self.player_b_id:
            raise ValueError(
                f"pair ids must be canonical (a < b), got {self.player_a_id}/{self.player_b_id}"
            )
        if not 0 <= self.together_wins <= self.together_games:
            raise ValueError(
                f"pair {self.key}: together_wins={self.together_wins} "
                f"outside 0..{self.together_games}"
            )
        if not 0 <= self.vs_wins <= self.vs_games:
            raise ValueError(
                f"pair {self.key}: vs_wins={self.vs_wins} outside 0..{self.vs_games}"
            )

    @property
    def key(self) -> PairKey:
        return (self.player_a_id, self.player_b_id)

    def counter_for(self, player_id: int) -> float:
        """Directional counter advantage of ``player_id`` over the other member."""
        if player_id == self.player_a_id:
            return self.counter_mu
        if player_id == self.player_b_id:
            return -self.counter_mu
        raise ValueError(f"player_id={player_id} is not part of pair {self.key}")


__all__ = [
    "DEFAULT_MU",
    "DEFAULT_SIGMA",
    "PairKey",
    "PlayerPair",
    "PlayerRatingState",
    "RatingEvent",
    "RatingReason",
    "RatingWriteBatch",
    "pair_key",
]
