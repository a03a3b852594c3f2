"""Split a player pool into equal teams of similar strength."""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from itertools import combinations
from math import sqrt, tanh

from domain.common import PairKey, PlayerPair, PlayerRatingState
from domain.config import BalanceParameters
from domain.errors import InvalidPoolSizeError, RatingValidationError
from domain.pairs.statistics import PairStatisticsStore

logger = logging.getLogger(__name__)

PairMatrix = Mapping[PairKey, PlayerPair]


@dataclass(frozen=True)
class Team:
    players: tuple[PlayerRatingState, ...]
    total_rating: float
    average_rating: float

    @property
    def player_ids(self) -> tuple[int, ...]:
        return tuple(player.player_id for player in self.players)


@dataclass(frozen=True)
class TeamBalance:
    team_a: Team
    team_b: Team
    difference: float
    win_probability: float
    effective_difference: float | None = None
    synergy_enabled: bool = False


@dataclass(frozen=True)
class ThreeTeamBalance:
    team_a: Team
    team_b: Team
    team_c: Team
    max_difference: float
    avg_difference: float
    effective_spread: float | None = None
    synergy_enabled: bool = False

    @property
    def teams(self) -> tuple[Team, Team, Team]:
        return (self.team_a, self.team_b, self.team_c)


def player_weight(player: PlayerRatingState) -> float:
    return player.mu


def total_weight(players: Sequence[PlayerRatingState]) -> float:
    return sum(player_weight(player) for player in players)


def calculate_win_probability(
    team_a_weight: float,
    team_b_weight: float,
    sigma: float = 8.333,
) -> float:
    """Chance in percent that team A beats team B."""
    diff = team_b_weight - team_a_weight
    return 100.0 / (1.0 + 10.0 ** (diff / (sqrt(2.0) * sigma)))


def synergy_within(players: Sequence[PlayerRatingState], matrix: PairMatrix) -> float:
    """Confidence-weighted synergy summed over every pair inside one team."""
    total = 0.0
    for first, second in combinations(players, 2):
        pair = matrix.get(_key(first.player_id, second.player_id))
        if pair is not None:
            total += pair.synergy_mu * max(0.0, 1.0 - pair.synergy_sigma)
    return total


def counter_between(
    team: Sequence[PlayerRatingState],
    opponents: Sequence[PlayerRatingState],
    matrix: PairMatrix,
) -> float:
    """Confidence-weighted counter advantage of ``team`` over ``opponents``."""
    total = 0.0
    for own in team:
        for other in opponents:
            pair = matrix.get(_key(own.player_id, other.player_id))
            if pair is None:
                continue
            total += pair.counter_for(own.player_id) * max(0.0, 1.0 - pair.counter_sigma)
    return total


class TeamBalancer:
    """Snake-draft seeding refined by a randomized swap search.

    Without a pair matrix the objective is the raw rating difference. With one, each team's
    strength gets bounded synergy and counter bonuses, while the raw difference stays capped
    by ``max_base_diff``.
    """

    def __init__(
        self,
        params: BalanceParameters,
        pair_store: PairStatisticsStore | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.params = params
        self.pair_store = pair_store
        self.rng = rng or random.Random()

    def balance_two_teams(
        self,
        players: Sequence[PlayerRatingState],
        pair_matrix: PairMatrix | None = None,
    ) -> TeamBalance:
        expected = 2 * self.params.team_size
        if len(players) != expected:
            raise InvalidPoolSizeError(expected, len(players))
        _ensure_distinct(players)

        matrix = self._resolve_matrix(players, pair_matrix)
        use_synergy = bool(matrix)
        team_a, team_b = snake_draft_two(players)
        self._improve_two(team_a, team_b, matrix if use_synergy else None)

        weight_a = total_weight(team_a)
        weight_b = total_weight(team_b)
        difference = abs(weight_a - weight_b)
        effective_difference = None
        if use_synergy:
            effective_difference = abs(
                self.effective_strength(team_a, team_b, matrix)
                - self.effective_strength(team_b, team_a, matrix)
            )

        balance = TeamBalance(
            team_a=_build_team(team_a),
            team_b=_build_team(team_b),
            difference=difference,
            win_probability=calculate_win_probability(
                weight_a, weight_b, self.params.probability_sigma
            ),
            effective_difference=effective_difference,
            synergy_enabled=use_synergy,
        )
        logger.info(
            "Teams generated. Difference: %.2f, effective: %s, win probability: %.1f%%",
            balance.difference,
            "n/a" if effective_difference is None else f"{effective_difference:.2f}",
            balance.win_probability,
        )
        return balance

    def balance_three_teams(
        self,
        players: Sequence[PlayerRatingState],
        pair_matrix: PairMatrix | None = None,
    ) -> ThreeTeamBalance:
        expected = 3 * self.params.team_size
        if len(players) != expected:
            raise InvalidPoolSizeError(expected, len(players))
        _ensure_distinct(players)

        matrix = self._resolve_matrix(players, pair_matrix)
        use_synergy = bool(matrix)
        teams = snake_draft_three(players)
        self._improve_three(teams, matrix if use_synergy else None)

        weights = [total_weight(team) for team in teams]
        mean = sum(weights) / len(weights)
        effective_spread = None
        if use_synergy:
            effective = self._three_team_effective(teams, matrix)
            effective_spread = max(effective) - min(effective)

        balance = ThreeTeamBalance(
            team_a=_build_team(teams[0]),
            team_b=_build_team(teams[1]),
            team_c=_build_team(teams[2]),
            max_difference=max(weights) - min(weights),
            avg_difference=sum(abs(weight - mean) for weight in weights) / len(weights),
            effective_spread=effective_spread,
            synergy_enabled=use_synergy,
        )
        logger.info(
            "Three teams generated. Max difference: %.2f, avg deviation: %.2f",
            balance.max_difference,
            balance.avg_difference,
        )
        return balance

    def effective_strength(
        self,
        team: Sequence[PlayerRatingState],
        opponents: Sequence[PlayerRatingState],
        matrix: PairMatrix,
    ) -> float:
        return (
            total_weight(team)
            + self.params.weight_same * tanh(synergy_within(team, matrix))
            + self.params.weight_vs * tanh(counter_between(team, opponents, matrix))
        )

    def _resolve_matrix(
        self,
        players: Sequence[PlayerRatingState],
        pair_matrix: PairMatrix | None,
    ) -> PairMatrix:
        if not self.params.synergy_enabled:
            return {}
        if pair_matrix is not None:
            return pair_matrix
        if self.pair_store is None:
            return {}
        return self.pair_store.load_matrix_for(player.player_id for player in players)

    def _two_team_objective(
        self,
        team_a: list[PlayerRatingState],
        team_b: list[PlayerRatingState],
        matrix: PairMatrix | None,
    ) -> float:
        if matrix is None:
            return abs(total_weight(team_a) - total_weight(team_b))
        return abs(
            self.effective_strength(team_a, team_b, matrix)
            - self.effective_strength(team_b, team_a, matrix)
        )

    def _improve_two(
        self,
        team_a: list[PlayerRatingState],
        team_b: list[PlayerRatingState],
        matrix: PairMatrix | None,
    ) -> None:
        best = self._two_team_objective(team_a, team_b, matrix)
        base_diff = abs(total_weight(team_a) - total_weight(team_b))

        for _ in range(self.params.two_team_iterations):
            if best <= self.params.target_objective:
                break
            a_index = self.rng.randrange(len(team_a))
            b_index = self.rng.randrange(len(team_b))
            team_a[a_index], team_b[b_index] = team_b[b_index], team_a[a_index]

            new_base_diff = abs(total_weight(team_a) - total_weight(team_b))
            if self._exceeds_base_cap(new_base_diff, base_diff):
                team_a[a_index], team_b[b_index] = team_b[b_index], team_a[a_index]
                continue

            candidate = self._two_team_objective(team_a, team_b, matrix)
            if candidate < best:
                best = candidate
                base_diff = new_base_diff
            else:
                team_a[a_index], team_b[b_index] = team_b[b_index], team_a[a_index]

    def _three_team_effective(
        self,
        teams: Sequence[list[PlayerRatingState]],
        matrix: PairMatrix,
    ) -> list[float]:
        effective: list[float] = []
        for index, team in enumerate(teams):
            others = [other for other_index, other in enumerate(teams) if other_index != index]
            strengths = [self.effective_strength(team, other, matrix) for other in others]
            effective.append(sum(strengths) / len(strengths))
        return effective

    def _three_team_objective(
        self,
        teams: Sequence[list[PlayerRatingState]],
        matrix: PairMatrix | None,
    ) -> float:
        if matrix is None:
            values = [total_weight(team) for team in teams]
        else:
            values = self._three_team_effective(teams, matrix)
        return max(values) - min(values)

    def _improve_three(
        self,
        teams: list[list[PlayerRatingState]],
        matrix: PairMatrix | None,
    ) -> None:
        best = self._three_team_objective(teams, matrix)
        base_spread = _weight_spread(teams)

        for _ in range(self.params.three_team_iterations):
            if best <= self.params.target_objective:
                break
            first, second = self.rng.sample(range(len(teams)), 2)
            i = self.rng.randrange(len(teams[first]))
            j = self.rng.randrange(len(teams[second]))
            teams[first][i], teams[second][j] = teams[second][j], teams[first][i]

            new_spread = _weight_spread(teams)
            if self._exceeds_base_cap(new_spread, base_spread):
                teams[first][i], teams[second][j] = teams[second][j], teams[first][i]
                continue

            candidate = self._three_team_objective(teams, matrix)
            if candidate < best:
                best = candidate
                base_spread = new_spread
            else:
                teams[first][i], teams[second][j] = teams[second][j], teams[first][i]

    def _exceeds_base_cap(self, new_value: float, current_value: float) -> bool:
        # a seed already above the cap may still move toward it
        return new_value > self.params.max_base_diff and new_value > current_value


def snake_draft_two(
    players: Sequence[PlayerRatingState],
) -> tuple[list[PlayerRatingState], list[PlayerRatingState]]:
    """A-B-B-A over the players sorted by weight, strongest first."""
    ordered = sorted(players, key=player_weight, reverse=True)
    team_a: list[PlayerRatingState] = []
    team_b: list[PlayerRatingState] = []
    for index, player in enumerate(ordered):
        if index % 4 in (0, 3):
            team_a.append(player)
        else:
            team_b.append(player)
    return team_a, team_b


def snake_draft_three(players: Sequence[PlayerRatingState]) -> list[list[PlayerRatingState]]:
    """A-B-C on even cycles of three, C-B-A on odd ones."""
    ordered = sorted(players, key=player_weight, reverse=True)
    teams: list[list[PlayerRatingState]] = [[], [], []]
    for index, player in enumerate(ordered):
        cycle, position = divmod(index, 3)
        target = position if cycle % 2 == 0 else 2 - position
        teams[target].append(player)
    return teams


def _weight_spread(teams: Sequence[Sequence[PlayerRatingState]]) -> float:
    weights = [total_weight(team) for team in teams]
    return max(weights) - min(weights)


def _build_team(players: Sequence[PlayerRatingState]) -> Team:
    total = total_weight(players)
    return Team(players=tuple(players), total_rating=total, average_rating=total / len(players))


def _ensure_distinct(players: Sequence[PlayerRatingState]) -> None:
    seen: set[int] = set()
    duplicates: set[int] = set()
    for player in players:
        if player.player_id in seen:
            duplicates.add(player.player_id)
        seen.add(player.player_id)
    if duplicates:
        raise RatingValidationError(f"duplicate players in pool: {sorted(duplicates)}")


def _key(first_id: int, second_id: int) -> PairKey:
    return (first_id, second_id) if first_id < second_id else (second_id, first_id)


__all__ = [
    "PairMatrix",
    "Team",
    "TeamBalance",
    "TeamBalancer",
    "ThreeTeamBalance",
    "calculate_win_probability",
    "counter_between",
    "snake_draft_three",
    "snake_draft_two",
    "synergy_within",
]
