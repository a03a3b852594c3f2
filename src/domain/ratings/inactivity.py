"""Uncertainty inflation for players who have not played for a while."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from math import exp, sqrt

from domain.common import PlayerRatingState, RatingEvent, RatingReason, RatingWriteBatch
from domain.config import InactivityParameters
from domain.protocol import PlayerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdleInflation:
    """Outcome of evaluating one player's inactivity."""

    player_id: int
    weeks_inactive: int
    sigma_before: float
    sigma_after: float

    @property
    def sigma_delta(self) -> float:
        return self.sigma_after - self.sigma_before


class InactivityModel:
    """Grows sigma toward the prior while a player sits out.

    The model is pure: the evaluation time is always passed in, never read from the clock.
    Only ``inflate_all`` touches storage, and it receives the repository explicitly.
    """

    def __init__(self, params: InactivityParameters) -> None:
        self.params = params

    def weeks_inactive(self, last_activity_at: datetime | None, now: datetime) -> int:
        if last_activity_at is None:
            return 0
        days = int((now - last_activity_at).total_seconds() // 86_400)
        if days <= 0:
            return 0
        return days // self.params.period_days

    def inflate_sigma(self, sigma: float, games_played: int, weeks_inactive: int) -> float:
        if not self.params.enabled or weeks_inactive <= 0 or games_played < 1:
            return sigma

        sigma0 = self.params.sigma0
        s2 = sigma * sigma
        s02 = sigma0 * sigma0
        s2_new = s2 + (s02 - s2) * (1.0 - exp(-self.params.decay_lambda * weeks_inactive))
        # never shrink, never exceed the prior
        return min(sigma0, sqrt(max(s2_new, s2)))

    def calculate_inflation(self, state: PlayerRatingState, now: datetime) -> IdleInflation:
        weeks = self.weeks_inactive(state.last_activity_at, now)
        return IdleInflation(
            player_id=state.player_id,
            weeks_inactive=weeks,
            sigma_before=state.sigma,
            sigma_after=self.inflate_sigma(state.sigma, state.games_played, weeks),
        )

    def is_significant(self, inflation: IdleInflation) -> bool:
        return abs(inflation.sigma_delta) > self.params.change_epsilon

    def build_event(
        self,
        state: PlayerRatingState,
        inflation: IdleInflation,
        *,
        event_time: datetime,
        match_id: int | None = None,
    ) -> RatingEvent:
        return RatingEvent(
            player_id=state.player_id,
            reason=RatingReason.IDLE,
            mu_before=state.mu,
            mu_after=state.mu,
            sigma_before=inflation.sigma_before,
            sigma_after=inflation.sigma_after,
            event_time=event_time,
            match_id=match_id,
            meta={
                "weeks_inactive": inflation.weeks_inactive,
                "lambda": self.params.decay_lambda,
            },
        )

    def inflate_all(
        self,
        repository: PlayerRepository,
        now: datetime,
        *,
        dry_run: bool = False,
    ) -> list[IdleInflation]:
        """Inflate sigma for every player with at least one game; one atomic batch."""
        if not self.params.enabled:
            logger.info("Idle inflation disabled, nothing to do")
            return []

        updates: list[PlayerRatingState] = []
        events: list[RatingEvent] = []
        applied: list[IdleInflation] = []
        for state in repository.find_active(min_games=1):
            inflation = self.calculate_inflation(state, now)
            if not self.is_significant(inflation):
                continue
            applied.append(inflation)
            updates.append(replace(state, sigma=inflation.sigma_after))
            events.append(self.build_event(state, inflation, event_time=now))

        if applied and not dry_run:
            repository.apply_batch(RatingWriteBatch(updates=tuple(updates), events=tuple(events)))

        logger.info(
            "Idle inflation %s for %d players as of %s",
            "computed" if dry_run else "applied",
            len(applied),
            now.isoformat(),
        )
        return applied


__all__ = ["IdleInflation", "InactivityModel"]
