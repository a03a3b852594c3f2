"""Pairwise synergy (same team) and counter (opposing teams) statistics."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from itertools import combinations

from domain.common import PairKey, PlayerPair, pair_key
from domain.config import PairParameters
from domain.protocol import PairRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairRating:
    mu: float
    sigma: float


@dataclass(frozen=True)
class SynergyPartner:
    partner_id: int
    synergy_mu: float
    together_games: int
    win_rate: float


@dataclass(frozen=True)
class CounterOpponent:
    opponent_id: int
    counter_mu: float
    vs_games: int
    win_rate: float


@dataclass(frozen=True)
class PlayerPairStats:
    player_id: int
    best_synergies: tuple[SynergyPartner, ...]
    worst_counters: tuple[CounterOpponent, ...]


@dataclass
class _PairIncrement:
    together_games: int = 0
    together_wins: int = 0
    vs_games: int = 0
    vs_wins: int = 0


def calculate_decay(
    last_game_at: datetime | None,
    now: datetime,
    *,
    half_life_weeks: float,
    decay_factor: float,
) -> float:
    """Shrink factor for stale pairs.

    Within one "half-life" nothing decays; beyond it the factor is
    ``decay_factor ** (weeks / half_life_weeks)``, which with the default 0.9 is far gentler
    than a true halving.
    """
    if last_game_at is None:
        return 1.0
    weeks = (now - last_game_at).total_seconds() / 86_400.0 / 7.0
    if weeks <= half_life_weeks:
        return 1.0
    return decay_factor ** (weeks / half_life_weeks)


def calculate_pair_rating(
    wins: int,
    games: int,
    scale: float,
    last_game_at: datetime | None,
    now: datetime,
    params: PairParameters,
) -> PairRating:
    if games == 0:
        return PairRating(mu=0.0, sigma=1.0)

    # Beta(1, 1) prior
    p_win = (wins + 1) / (games + 2)
    mu = (p_win - 0.5) * scale
    mu = min(max(mu, -params.cap), params.cap)
    mu *= calculate_decay(
        last_game_at,
        now,
        half_life_weeks=params.half_life_weeks,
        decay_factor=params.decay_factor,
    )

    confidence = min(1.0, games / params.games_for_conf)
    return PairRating(mu=mu, sigma=max(0.0, 1.0 - confidence))


class PairStatisticsStore:
    """Maintains per-pair counters and their derived synergy/counter ratings."""

    def __init__(self, repository: PairRepository, params: PairParameters) -> None:
        self.repository = repository
        self.params = params

    def recalculate(self, pair: PlayerPair, now: datetime) -> PlayerPair:
        """Rebuild the derived fields of ``pair`` from its raw counts."""
        synergy = calculate_pair_rating(
            pair.together_wins,
            pair.together_games,
            self.params.scale_same,
            pair.last_game_at,
            now,
            self.params,
        )
        counter = calculate_pair_rating(
            pair.vs_wins,
            pair.vs_games,
            self.params.scale_vs,
            pair.last_game_at,
            now,
            self.params,
        )
        return replace(
            pair,
            synergy_mu=synergy.mu,
            synergy_sigma=synergy.sigma,
            counter_mu=counter.mu,
            counter_sigma=counter.sigma,
        )

    def update_after_match(
        self,
        winner_ids: Sequence[int],
        loser_ids: Sequence[int],
        match_date: datetime,
    ) -> list[PlayerPair]:
        if not self.params.enabled:
            logger.info("Pair synergy disabled, skipping pair updates")
            return []

        increments = _match_increments(winner_ids, loser_ids)
        pairs = self._apply(increments, now=match_date, sign=1, touch_last_game=True)
        logger.info(
            "Updated %d player pairs after match (winners=%d, losers=%d)",
            len(pairs),
            len(set(winner_ids)),
            len(set(loser_ids)),
        )
        return pairs

    def update_after_draw(
        self,
        team1_ids: Sequence[int],
        team2_ids: Sequence[int],
        match_date: datetime,
    ) -> list[PlayerPair]:
        """Draws count as a shared game without a win; vs counters are left alone."""
        if not self.params.enabled:
            logger.info("Pair synergy disabled, skipping pair updates")
            return []

        increments = _draw_increments(team1_ids, team2_ids)
        pairs = self._apply(increments, now=match_date, sign=1, touch_last_game=True)
        logger.info("Updated %d player pairs after draw", len(pairs))
        return pairs

    def revert_match(
        self,
        winner_ids: Sequence[int],
        loser_ids: Sequence[int],
        reverted_at: datetime,
        *,
        draw: bool = False,
    ) -> list[PlayerPair]:
        """Undo the counters added by one earlier match or draw."""
        if not self.params.enabled:
            return []

        if draw:
            increments = _draw_increments(winner_ids, loser_ids)
        else:
            increments = _match_increments(winner_ids, loser_ids)
        pairs = self._apply(increments, now=reverted_at, sign=-1, touch_last_game=False)
        logger.info("Reverted %d player pairs", len(pairs))
        return pairs

    def load_matrix_for(self, player_ids: Iterable[int]) -> dict[PairKey, PlayerPair]:
        """Every unordered pair of ``player_ids``; unseen pairs get neutral defaults."""
        if not self.params.enabled:
            return {}

        unique_ids = sorted(set(player_ids))
        keys = [pair_key(a, b) for a, b in combinations(unique_ids, 2)]
        stored = {pair.key: pair for pair in self.repository.get_pairs(keys)}
        return {
            key: stored.get(key) or PlayerPair(player_a_id=key[0], player_b_id=key[1])
            for key in keys
        }

    def get_player_pair_stats(self, player_id: int) -> PlayerPairStats:
        synergies: list[SynergyPartner] = []
        counters: list[CounterOpponent] = []

        for pair in self.repository.pairs_for_player(player_id):
            is_a = pair.player_a_id == player_id
            other_id = pair.player_b_id if is_a else pair.player_a_id

            if pair.together_games >= self.params.min_same_games:
                synergies.append(
                    SynergyPartner(
                        partner_id=other_id,
                        synergy_mu=pair.synergy_mu,
                        together_games=pair.together_games,
                        win_rate=pair.together_wins / pair.together_games if pair.together_games else 0.0,
                    )
                )

            if pair.vs_games >= self.params.min_vs_games:
                own_wins = pair.vs_wins if is_a else pair.vs_games - pair.vs_wins
                counters.append(
                    CounterOpponent(
                        opponent_id=other_id,
                        counter_mu=pair.counter_for(player_id),
                        vs_games=pair.vs_games,
                        win_rate=own_wins / pair.vs_games if pair.vs_games else 0.0,
                    )
                )

        synergies.sort(key=lambda item: item.synergy_mu, reverse=True)
        counters.sort(key=lambda item: item.counter_mu)
        return PlayerPairStats(
            player_id=player_id,
            best_synergies=tuple(synergies[: self.params.top_n]),
            worst_counters=tuple(counters[: self.params.top_n]),
        )

    def _apply(
        self,
        increments: dict[PairKey, _PairIncrement],
        *,
        now: datetime,
        sign: int,
        touch_last_game: bool,
    ) -> list[PlayerPair]:
        if not increments:
            return []

        existing = {pair.key: pair for pair in self.repository.get_pairs(increments.keys())}
        updated: list[PlayerPair] = []
        for key, increment in increments.items():
            current = existing.get(key)
            if current is None:
                if sign < 0:
                    continue
                current = PlayerPair(player_a_id=key[0], player_b_id=key[1])

            together_games = max(0, current.together_games + sign * increment.together_games)
            together_wins = max(0, current.together_wins + sign * increment.together_wins)
            vs_games = max(0, current.vs_games + sign * increment.vs_games)
            vs_wins = max(0, current.vs_wins + sign * increment.vs_wins)

            pair = replace(
                current,
                together_games=together_games,
                together_wins=min(together_wins, together_games),
                vs_games=vs_games,
                vs_wins=min(vs_wins, vs_games),
                last_game_at=now if touch_last_game else current.last_game_at,
            )
            updated.append(self.recalculate(pair, now))

        self.repository.upsert_pairs(updated)
        return updated


def _match_increments(
    winner_ids: Sequence[int],
    loser_ids: Sequence[int],
) -> dict[PairKey, _PairIncrement]:
    winners = sorted(set(winner_ids))
    losers = sorted(set(loser_ids))
    increments: dict[PairKey, _PairIncrement] = {}

    for a, b in combinations(winners, 2):
        increment = increments.setdefault(pair_key(a, b), _PairIncrement())
        increment.together_games += 1
        increment.together_wins += 1

    for a, b in combinations(losers, 2):
        increments.setdefault(pair_key(a, b), _PairIncrement()).together_games += 1

    for winner_id in winners:
        for loser_id in losers:
            key = pair_key(winner_id, loser_id)
            increment = increments.setdefault(key, _PairIncrement())
            increment.vs_games += 1
            # vs_wins is always credited relative to the smaller id
            if winner_id == key[0]:
                increment.vs_wins += 1

    return increments


def _draw_increments(
    team1_ids: Sequence[int],
    team2_ids: Sequence[int],
) -> dict[PairKey, _PairIncrement]:
    increments: dict[PairKey, _PairIncrement] = {}
    for team in (sorted(set(team1_ids)), sorted(set(team2_ids))):
        for a, b in combinations(team, 2):
            increments.setdefault(pair_key(a, b), _PairIncrement()).together_games += 1
    return increments


__all__ = [
    "CounterOpponent",
    "PairRating",
    "PairStatisticsStore",
    "PlayerPairStats",
    "SynergyPartner",
    "calculate_decay",
    "calculate_pair_rating",
]
