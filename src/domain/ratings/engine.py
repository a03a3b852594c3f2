"""TrueSkill-style rating updates for weekly team matches."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from math import isfinite, sqrt

from domain.common import PlayerRatingState, RatingEvent, RatingReason, RatingWriteBatch
from domain.config import DrawParameters, EngineConfig, MvpParameters, TrueSkillParameters
from domain.errors import (
    DegenerateMatchError,
    InvalidMatchError,
    InvalidMvpError,
    MissingPlayerError,
    RatingError,
)
from domain.pairs.statistics import PairStatisticsStore
from domain.protocol import PairRepository, PlayerRepository
from domain.ratings.gaussian import SQRT_2, v_win, w_win
from domain.ratings.inactivity import InactivityModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingUpdateResult:
    """New player states and the events written for one operation."""

    states: dict[int, PlayerRatingState]
    events: tuple[RatingEvent, ...]
    team1_ids: tuple[int, ...] = ()
    team2_ids: tuple[int, ...] = ()
    draw: bool = False
    t: float | None = None
    team1_probability: float | None = None

    def mu_delta(self, player_id: int) -> float:
        """Net mu change for ``player_id`` over this operation."""
        first = next(event for event in self.events if event.player_id == player_id)
        return self.states[player_id].mu - first.mu_before


@dataclass(frozen=True)
class MiniMatchResult:
    """One round-robin game between two labelled teams of a three-team session."""

    team1: str
    team2: str
    score1: int
    score2: int

    @property
    def winner(self) -> str | None:
        if self.score1 > self.score2:
            return self.team1
        if self.score2 > self.score1:
            return self.team2
        return None


@dataclass(frozen=True)
class RoundRobinSummary:
    applied: tuple[RatingUpdateResult, ...] = ()
    failed: tuple[tuple[int, str], ...] = ()

    @property
    def draws(self) -> int:
        return sum(1 for result in self.applied if result.draw)


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _unique(ids: Sequence[int]) -> tuple[int, ...]:
    return tuple(dict.fromkeys(ids))


def draw_win_probability(avg_mu1: float, avg_mu2: float, sigma: float) -> float:
    """Logistic estimate that team 1 beats team 2, used to weigh draws."""
    return 1.0 / (1.0 + 10.0 ** ((avg_mu2 - avg_mu1) / (SQRT_2 * sigma)))


class RatingEngine:
    """Applies match outcomes to player ratings and writes them as one atomic batch.

    Collaborators are passed in explicitly. Pair statistics are a best-effort side effect:
    a failure there is logged and never undoes a committed rating update.
    """

    def __init__(
        self,
        players: PlayerRepository,
        *,
        params: TrueSkillParameters,
        inactivity: InactivityModel,
        mvp: MvpParameters,
        draw: DrawParameters,
        pair_store: PairStatisticsStore | None = None,
        round_robin_weight: float = 0.5,
    ) -> None:
        self.players = players
        self.params = params
        self.inactivity = inactivity
        self.mvp = mvp
        self.draw = draw
        self.pair_store = pair_store
        self.round_robin_weight = round_robin_weight

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        players: PlayerRepository,
        pairs: PairRepository | None = None,
    ) -> RatingEngine:
        pair_store = None if pairs is None else PairStatisticsStore(pairs, config.pairs)
        return cls(
            players,
            params=config.trueskill,
            inactivity=InactivityModel(config.inactivity),
            mvp=config.mvp,
            draw=config.draw,
            pair_store=pair_store,
            round_robin_weight=config.round_robin_weight,
        )

    def update_outcome(
        self,
        winner_ids: Sequence[int],
        loser_ids: Sequence[int],
        *,
        match_played_at: datetime | None = None,
        apply_idle_inflation: bool = True,
        weight: float = 1.0,
        mvp_ids: Sequence[int] = (),
        match_id: int | None = None,
    ) -> RatingUpdateResult:
        played_at = match_played_at or _utcnow()
        winners = _unique(winner_ids)
        losers = _unique(loser_ids)
        _validate_teams(winners, losers, weight=weight)
        mvp_set = _validate_mvp(mvp_ids, (winners, losers), max_count=self.mvp.max_per_match)

        states = self._load_states(winners + losers)
        events: list[RatingEvent] = []
        if apply_idle_inflation:
            states = self._apply_idle(states, played_at, match_id=match_id, events=events)

        mu_w = sum(states[player_id].mu for player_id in winners)
        mu_l = sum(states[player_id].mu for player_id in losers)
        s2_w = sum(states[player_id].sigma ** 2 for player_id in winners)
        s2_l = sum(states[player_id].sigma ** 2 for player_id in losers)

        c = sqrt(s2_w + s2_l + 2.0 * self.params.beta**2)
        if not isfinite(c) or c <= 0.0:
            raise DegenerateMatchError(f"invalid normaliser c={c!r}")

        t = (mu_w - mu_l) / c
        v = v_win(t, min_cdf=self.params.min_cdf) * weight
        w = w_win(t, min_cdf=self.params.min_cdf) * weight

        apply_mvp = self.mvp.enabled and bool(mvp_set)
        new_states: dict[int, PlayerRatingState] = {}
        mvp_events: list[RatingEvent] = []
        for player_id in winners + losers:
            state = states[player_id]
            won = player_id in winners
            s2 = state.sigma**2
            sign = 1.0 if won else -1.0
            mu_new = state.mu + sign * (s2 / c) * v
            sigma2_new = s2 * (1.0 - (s2 / (c * c)) * w) + self.params.tau**2
            sigma_new = max(self.params.sigma_floor, sqrt(max(sigma2_new, 0.0)))

            is_mvp = apply_mvp and player_id in mvp_set
            bonus = 0.0
            mvp_count = state.mvp_count
            if is_mvp:
                mu_before_bonus, sigma_before_bonus = mu_new, sigma_new
                mu_new, sigma_new = self._mvp_adjust(mu_new, sigma_new)
                bonus = self.mvp.mu_bonus
                mvp_count += 1
                mvp_events.append(
                    RatingEvent(
                        player_id=player_id,
                        reason=RatingReason.MVP,
                        mu_before=mu_before_bonus,
                        mu_after=mu_new,
                        sigma_before=sigma_before_bonus,
                        sigma_after=sigma_new,
                        event_time=played_at,
                        match_id=match_id,
                        meta={"bonus": bonus, "sigma_multiplier": self.mvp.sigma_multiplier},
                    )
                )

            new_states[player_id] = replace(
                state,
                mu=mu_new,
                sigma=sigma_new,
                games_played=state.games_played + 1,
                last_played_at=played_at,
                first_played_at=state.first_played_at or played_at,
                mvp_count=mvp_count,
            )
            events.append(
                RatingEvent(
                    player_id=player_id,
                    reason=RatingReason.MATCH,
                    mu_before=state.mu,
                    mu_after=mu_new,
                    sigma_before=state.sigma,
                    sigma_after=sigma_new,
                    event_time=played_at,
                    match_id=match_id,
                    meta={
                        "result": "win" if won else "loss",
                        "won": won,
                        "mvp": is_mvp,
                        "bonus": bonus,
                        "weight": weight,
                        "t": t,
                    },
                )
            )
        events.extend(mvp_events)

        self.players.apply_batch(
            RatingWriteBatch(updates=tuple(new_states.values()), events=tuple(events))
        )

        avg_delta_w = sum(new_states[i].mu - states[i].mu for i in winners) / len(winners)
        avg_delta_l = sum(new_states[i].mu - states[i].mu for i in losers) / len(losers)
        logger.info(
            "Rating updated: winners=%d, losers=%d, t=%.3f, avg delta mu (w)=%.2f, (l)=%.2f",
            len(winners),
            len(losers),
            t,
            avg_delta_w,
            avg_delta_l,
        )

        if self.pair_store is not None:
            try:
                self.pair_store.update_after_match(winners, losers, played_at)
            except Exception:
                logger.exception("Pair statistics update failed; ratings were kept")

        return RatingUpdateResult(
            states=new_states,
            events=tuple(events),
            team1_ids=winners,
            team2_ids=losers,
            t=t,
        )

    def update_draw(
        self,
        team1_ids: Sequence[int],
        team2_ids: Sequence[int],
        *,
        match_played_at: datetime | None = None,
        apply_idle_inflation: bool = True,
        weight: float = 1.0,
        match_id: int | None = None,
    ) -> RatingUpdateResult:
        played_at = match_played_at or _utcnow()
        team1 = _unique(team1_ids)
        team2 = _unique(team2_ids)
        _validate_teams(team1, team2, weight=weight)

        states = self._load_states(team1 + team2)
        events: list[RatingEvent] = []
        if apply_idle_inflation:
            states = self._apply_idle(states, played_at, match_id=match_id, events=events)

        avg1 = sum(states[player_id].mu for player_id in team1) / len(team1)
        avg2 = sum(states[player_id].mu for player_id in team2) / len(team2)
        p1 = draw_win_probability(avg1, avg2, self.draw.probability_sigma)
        delta1, delta2 = self.draw_deltas(p1)
        delta1 *= weight
        delta2 *= weight

        new_states: dict[int, PlayerRatingState] = {}
        for side, team, delta in ((1, team1, delta1), (2, team2, delta2)):
            for player_id in team:
                state = states[player_id]
                mu_new = state.mu + delta
                sigma_new = max(self.params.sigma_floor, state.sigma)
                new_states[player_id] = replace(
                    state,
                    mu=mu_new,
                    sigma=sigma_new,
                    games_played=state.games_played + 1,
                    last_played_at=played_at,
                    first_played_at=state.first_played_at or played_at,
                )
                events.append(
                    RatingEvent(
                        player_id=player_id,
                        reason=RatingReason.MATCH,
                        mu_before=state.mu,
                        mu_after=mu_new,
                        sigma_before=state.sigma,
                        sigma_after=sigma_new,
                        event_time=played_at,
                        match_id=match_id,
                        meta={
                            "result": "draw",
                            "draw": True,
                            "side": side,
                            "delta": delta,
                            "weight": weight,
                            "team1_probability": p1,
                        },
                    )
                )

        self.players.apply_batch(
            RatingWriteBatch(updates=tuple(new_states.values()), events=tuple(events))
        )
        logger.info(
            "Draw applied: team1=%d (avg mu %.2f, delta %+.3f), team2=%d (avg mu %.2f, delta %+.3f), p1=%.3f",
            len(team1),
            avg1,
            delta1,
            len(team2),
            avg2,
            delta2,
            p1,
        )

        if self.pair_store is not None:
            try:
                self.pair_store.update_after_draw(team1, team2, played_at)
            except Exception:
                logger.exception("Pair statistics update failed after draw; ratings were kept")

        return RatingUpdateResult(
            states=new_states,
            events=tuple(events),
            team1_ids=team1,
            team2_ids=team2,
            draw=True,
            team1_probability=p1,
        )

    def draw_deltas(self, team1_probability: float) -> tuple[float, float]:
        """Unweighted mu deltas for (team1, team2) after a draw."""
        base = self.draw.base_bonus
        threshold = self.draw.significant_probability
        if team1_probability > threshold:
            return base - self.draw.upset_penalty, base + self.draw.upset_bonus
        if team1_probability < 1.0 - threshold:
            return base + self.draw.upset_bonus, base - self.draw.upset_penalty
        return base, base

    def award_mvp(
        self,
        teams: Sequence[Sequence[int]],
        mvp_ids: Sequence[int],
        *,
        awarded_at: datetime | None = None,
        match_id: int | None = None,
    ) -> RatingUpdateResult:
        """Grant the MVP bonus after a match has already been rated."""
        event_time = awarded_at or _utcnow()
        rosters = tuple(_unique(team) for team in teams)
        mvp_set = _validate_mvp(mvp_ids, rosters, max_count=len(rosters))
        if not self.mvp.enabled or not mvp_set:
            logger.info("MVP bonus disabled or no MVP ids, nothing awarded")
            return RatingUpdateResult(states={}, events=())

        ordered = _unique(list(mvp_ids))
        states = self._load_states(ordered)
        new_states: dict[int, PlayerRatingState] = {}
        events: list[RatingEvent] = []
        for player_id in ordered:
            state = states[player_id]
            mu_new, sigma_new = self._mvp_adjust(state.mu, state.sigma)
            team_index = next(index for index, team in enumerate(rosters) if player_id in team)
            new_states[player_id] = replace(
                state, mu=mu_new, sigma=sigma_new, mvp_count=state.mvp_count + 1
            )
            events.append(
                RatingEvent(
                    player_id=player_id,
                    reason=RatingReason.MVP,
                    mu_before=state.mu,
                    mu_after=mu_new,
                    sigma_before=state.sigma,
                    sigma_after=sigma_new,
                    event_time=event_time,
                    match_id=match_id,
                    meta={"bonus": self.mvp.mu_bonus, "team": team_index},
                )
            )

        self.players.apply_batch(
            RatingWriteBatch(updates=tuple(new_states.values()), events=tuple(events))
        )
        logger.info("MVP bonus awarded to players %s", list(ordered))
        return RatingUpdateResult(states=new_states, events=tuple(events))

    def apply_round_robin(
        self,
        teams: Mapping[str, Sequence[int]],
        results: Sequence[MiniMatchResult],
        *,
        played_at: datetime | None = None,
        match_id: int | None = None,
    ) -> RoundRobinSummary:
        """Rate every mini-match of a three-team session at reduced weight.

        Each player is inflated for idleness once, in the first mini-match they play. A mini-match
        rejected by the engine is logged and reported; the remaining ones are still applied.
        """
        event_time = played_at or _utcnow()
        applied: list[RatingUpdateResult] = []
        failed: list[tuple[int, str]] = []
        inflated: set[int] = set()

        for seq, result in enumerate(results, start=1):
            try:
                if result.team1 not in teams or result.team2 not in teams:
                    raise InvalidMatchError(
                        f"unknown team label in {result.team1} vs {result.team2}"
                    )
                if result.team1 == result.team2:
                    raise InvalidMatchError(f"team {result.team1} cannot play itself")

                # players already rated this session have no idle time left
                inflate = not inflated.issuperset([*teams[result.team1], *teams[result.team2]])
                winner = result.winner
                if winner is None:
                    outcome = self.update_draw(
                        teams[result.team1],
                        teams[result.team2],
                        match_played_at=event_time,
                        apply_idle_inflation=inflate,
                        weight=self.round_robin_weight,
                        match_id=match_id,
                    )
                else:
                    loser = result.team2 if winner == result.team1 else result.team1
                    outcome = self.update_outcome(
                        teams[winner],
                        teams[loser],
                        match_played_at=event_time,
                        apply_idle_inflation=inflate,
                        weight=self.round_robin_weight,
                        match_id=match_id,
                    )
            except RatingError as error:
                logger.error("Mini-match %d (%s vs %s) rejected: %s", seq, result.team1, result.team2, error)
                failed.append((seq, str(error)))
                continue

            applied.append(outcome)
            inflated.update(outcome.states)

        logger.info(
            "Round robin processed: applied=%d, failed=%d, weight=%.2f",
            len(applied),
            len(failed),
            self.round_robin_weight,
        )
        return RoundRobinSummary(applied=tuple(applied), failed=tuple(failed))

    def rollback_match(
        self,
        match_id: int,
        *,
        rolled_back_at: datetime | None = None,
    ) -> RatingUpdateResult:
        """Restore every participant to the state recorded before ``match_id`` was rated."""
        event_time = rolled_back_at or _utcnow()
        match_events = self.players.events_for_match(match_id)
        if not match_events:
            raise InvalidMatchError(f"match_id={match_id} has no rating events")
        if any(event.reason is RatingReason.ROLLBACK for event in match_events):
            raise InvalidMatchError(f"match_id={match_id} was already rolled back")

        participants = sorted({event.player_id for event in match_events})
        later = self.players.events_after_match(match_id, participants)
        undone = {event.match_id for event in later if event.reason is RatingReason.ROLLBACK}
        blocking = sorted(
            {
                event.player_id
                for event in later
                if event.reason is not RatingReason.ROLLBACK and event.match_id not in undone
            }
        )
        if blocking:
            raise InvalidMatchError(
                f"match_id={match_id} cannot be rolled back: players {blocking} were rated after it"
            )

        first_event: dict[int, RatingEvent] = {}
        games: dict[int, int] = {}
        mvps: dict[int, int] = {}
        for event in match_events:
            first_event.setdefault(event.player_id, event)
            if event.reason is RatingReason.MATCH:
                games[event.player_id] = games.get(event.player_id, 0) + 1
            elif event.reason is RatingReason.MVP:
                mvps[event.player_id] = mvps.get(event.player_id, 0) + 1

        states = self._load_states(tuple(first_event))
        new_states: dict[int, PlayerRatingState] = {}
        events: list[RatingEvent] = []
        for player_id, origin in first_event.items():
            state = states[player_id]
            restored = replace(
                state,
                mu=origin.mu_before,
                sigma=max(self.params.sigma_floor, origin.sigma_before),
                games_played=max(0, state.games_played - games.get(player_id, 0)),
                mvp_count=max(0, state.mvp_count - mvps.get(player_id, 0)),
            )
            new_states[player_id] = restored
            events.append(
                RatingEvent(
                    player_id=player_id,
                    reason=RatingReason.ROLLBACK,
                    mu_before=state.mu,
                    mu_after=restored.mu,
                    sigma_before=state.sigma,
                    sigma_after=restored.sigma,
                    event_time=event_time,
                    match_id=match_id,
                    meta={"rolled_back_events": sum(1 for e in match_events if e.player_id == player_id)},
                )
            )

        self.players.apply_batch(
            RatingWriteBatch(updates=tuple(new_states.values()), events=tuple(events))
        )
        logger.info("Rolled back match_id=%d for %d players", match_id, len(new_states))

        if self.pair_store is not None:
            try:
                self._revert_pairs(self.pair_store, match_events, event_time)
            except Exception:
                logger.exception("Pair statistics rollback failed for match_id=%d", match_id)

        return RatingUpdateResult(states=new_states, events=tuple(events))

    def _revert_pairs(
        self,
        pair_store: PairStatisticsStore,
        match_events: Sequence[RatingEvent],
        reverted_at: datetime,
    ) -> None:
        results = [event for event in match_events if event.reason is RatingReason.MATCH]
        per_player = {event.player_id for event in results}
        if len(per_player) != len(results):
            logger.warning("Match has several mini-matches per player; pair counters left as is")
            return

        if any(event.meta.get("draw") for event in results):
            side1 = [event.player_id for event in results if event.meta.get("side") == 1]
            side2 = [event.player_id for event in results if event.meta.get("side") == 2]
            pair_store.revert_match(side1, side2, reverted_at, draw=True)
            return

        winners = [event.player_id for event in results if event.meta.get("won")]
        losers = [event.player_id for event in results if not event.meta.get("won")]
        pair_store.revert_match(winners, losers, reverted_at)

    def _mvp_adjust(self, mu: float, sigma: float) -> tuple[float, float]:
        return (
            mu + self.mvp.mu_bonus,
            max(self.params.sigma_floor, sigma * self.mvp.sigma_multiplier),
        )

    def _load_states(self, player_ids: Sequence[int]) -> dict[int, PlayerRatingState]:
        found = {state.player_id: state for state in self.players.find_by_ids(player_ids)}
        missing = [player_id for player_id in player_ids if player_id not in found]
        if missing:
            raise MissingPlayerError(missing)
        return {player_id: found[player_id] for player_id in player_ids}

    def _apply_idle(
        self,
        states: dict[int, PlayerRatingState],
        now: datetime,
        *,
        match_id: int | None,
        events: list[RatingEvent],
    ) -> dict[int, PlayerRatingState]:
        inflated: dict[int, PlayerRatingState] = {}
        for player_id, state in states.items():
            inflation = self.inactivity.calculate_inflation(state, now)
            if self.inactivity.is_significant(inflation):
                events.append(
                    self.inactivity.build_event(state, inflation, event_time=now, match_id=match_id)
                )
                logger.debug(
                    "Idle inflation player_id=%d weeks=%d sigma %.3f -> %.3f",
                    player_id,
                    inflation.weeks_inactive,
                    inflation.sigma_before,
                    inflation.sigma_after,
                )
                state = replace(state, sigma=inflation.sigma_after)
            inflated[player_id] = state
        return inflated


def _validate_teams(team1: Sequence[int], team2: Sequence[int], *, weight: float) -> None:
    if not team1 or not team2:
        raise InvalidMatchError("teams must be non-empty")
    overlap = set(team1) & set(team2)
    if overlap:
        raise InvalidMatchError(f"teams overlap: {sorted(overlap)}")
    if not isfinite(weight) or weight <= 0.0:
        raise InvalidMatchError(f"weight must be a positive number, got {weight!r}")


def _validate_mvp(
    mvp_ids: Sequence[int],
    teams: Sequence[Sequence[int]],
    *,
    max_count: int,
) -> frozenset[int]:
    ids = list(mvp_ids)
    if len(ids) > max_count:
        raise InvalidMvpError(f"maximum {max_count} MVP players allowed")
    if len(set(ids)) != len(ids):
        raise InvalidMvpError("MVP ids must be distinct")

    per_team = [0] * len(teams)
    for player_id in ids:
        index = next((i for i, team in enumerate(teams) if player_id in team), None)
        if index is None:
            raise InvalidMvpError(f"MVP player {player_id} not in match")
        per_team[index] += 1
    if any(count > 1 for count in per_team):
        raise InvalidMvpError("maximum 1 MVP per team allowed")
    return frozenset(ids)


__all__ = [
    "MiniMatchResult",
    "RatingEngine",
    "RatingUpdateResult",
    "RoundRobinSummary",
    "draw_win_probability",
]
