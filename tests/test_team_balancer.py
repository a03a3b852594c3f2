"""Unit tests for team balancing."""

from __future__ import annotations

import random

import pytest
from conftest import InMemoryPairRepository

from domain.common import PlayerPair, PlayerRatingState
from domain.config import BalanceParameters, PairParameters
from domain.errors import InvalidPoolSizeError
from domain.pairs.statistics import PairStatisticsStore
from domain.teams.balancer import (
    TeamBalancer,
    calculate_win_probability,
    counter_between,
    snake_draft_three,
    snake_draft_two,
    synergy_within,
)


def _pool(count: int, *, seed: int = 3) -> list[PlayerRatingState]:
    rng = random.Random(seed)
    return [
        PlayerRatingState(player_id=player_id, mu=round(rng.uniform(18.0, 34.0), 2))
        for player_id in range(1, count + 1)
    ]


def _ids(players: tuple[PlayerRatingState, ...]) -> set[int]:
    return {player.player_id for player in players}


def test_win_probability_formula() -> None:
    assert calculate_win_probability(200.0, 200.0) == pytest.approx(50.0)
    assert calculate_win_probability(210.0, 200.0) > 50.0
    assert calculate_win_probability(210.0, 200.0) + calculate_win_probability(200.0, 210.0) == pytest.approx(100.0)


def test_snake_draft_two_follows_abba_pattern() -> None:
    players = [PlayerRatingState(player_id=i, mu=float(100 - i)) for i in range(1, 17)]

    team_a, team_b = snake_draft_two(players)

    assert [p.player_id for p in team_a] == [1, 4, 5, 8, 9, 12, 13, 16]
    assert [p.player_id for p in team_b] == [2, 3, 6, 7, 10, 11, 14, 15]


def test_snake_draft_three_reverses_every_other_cycle() -> None:
    players = [PlayerRatingState(player_id=i, mu=float(100 - i)) for i in range(1, 25)]

    teams = snake_draft_three(players)

    assert [p.player_id for p in teams[0]][:4] == [1, 6, 7, 12]
    assert [p.player_id for p in teams[1]][:4] == [2, 5, 8, 11]
    assert [p.player_id for p in teams[2]][:4] == [3, 4, 9, 10]


def test_two_teams_partition_the_pool() -> None:
    players = _pool(16)
    balancer = TeamBalancer(BalanceParameters(synergy_enabled=False), rng=random.Random(7))

    balance = balancer.balance_two_teams(players)

    assert len(balance.team_a.players) == 8
    assert len(balance.team_b.players) == 8
    assert _ids(balance.team_a.players) | _ids(balance.team_b.players) == set(range(1, 17))
    assert not _ids(balance.team_a.players) & _ids(balance.team_b.players)
    assert balance.difference == pytest.approx(
        abs(balance.team_a.total_rating - balance.team_b.total_rating)
    )
    assert balance.team_a.average_rating == pytest.approx(balance.team_a.total_rating / 8)
    assert balance.effective_difference is None
    assert not balance.synergy_enabled


def test_search_never_worsens_the_seed() -> None:
    players = _pool(16, seed=11)
    seed_a, seed_b = snake_draft_two(players)
    seed_diff = abs(sum(p.mu for p in seed_a) - sum(p.mu for p in seed_b))
    balancer = TeamBalancer(BalanceParameters(synergy_enabled=False), rng=random.Random(1))

    balance = balancer.balance_two_teams(players)

    assert balance.difference <= seed_diff + 1e-9


def test_same_seed_gives_same_teams() -> None:
    players = _pool(16, seed=5)
    first = TeamBalancer(BalanceParameters(), rng=random.Random(42)).balance_two_teams(players)
    second = TeamBalancer(BalanceParameters(), rng=random.Random(42)).balance_two_teams(players)

    assert first.team_a.player_ids == second.team_a.player_ids


@pytest.mark.parametrize("count", [0, 15, 17, 24])
def test_two_teams_require_sixteen_players(count: int) -> None:
    balancer = TeamBalancer(BalanceParameters(), rng=random.Random(0))

    with pytest.raises(InvalidPoolSizeError) as excinfo:
        balancer.balance_two_teams(_pool(count))

    assert excinfo.value.expected == 16
    assert "Exactly 16 players are required" in str(excinfo.value)


@pytest.mark.parametrize("count", [16, 23, 25])
def test_three_teams_require_twenty_four_players(count: int) -> None:
    balancer = TeamBalancer(BalanceParameters(), rng=random.Random(0))

    with pytest.raises(InvalidPoolSizeError):
        balancer.balance_three_teams(_pool(count))


def test_three_teams_partition_the_pool() -> None:
    players = _pool(24)
    balancer = TeamBalancer(BalanceParameters(synergy_enabled=False), rng=random.Random(3))

    balance = balancer.balance_three_teams(players)

    ids = [_ids(team.players) for team in balance.teams]
    assert [len(team.players) for team in balance.teams] == [8, 8, 8]
    assert ids[0] | ids[1] | ids[2] == set(range(1, 25))
    assert not ids[0] & ids[1] and not ids[1] & ids[2] and not ids[0] & ids[2]
    totals = [team.total_rating for team in balance.teams]
    mean = sum(totals) / 3
    assert balance.max_difference == pytest.approx(max(totals) - min(totals))
    assert balance.avg_difference == pytest.approx(sum(abs(t - mean) for t in totals) / 3)


def test_synergy_within_weights_by_confidence() -> None:
    players = [PlayerRatingState(player_id=1), PlayerRatingState(player_id=2)]
    matrix = {(1, 2): PlayerPair(1, 2, synergy_mu=0.5, synergy_sigma=0.2)}

    assert synergy_within(players, matrix) == pytest.approx(0.4)


def test_counter_between_is_directional() -> None:
    one = [PlayerRatingState(player_id=1)]
    nine = [PlayerRatingState(player_id=9)]
    matrix = {(1, 9): PlayerPair(1, 9, counter_mu=0.4, counter_sigma=0.3)}

    assert counter_between(one, nine, matrix) == pytest.approx(0.28)
    assert counter_between(nine, one, matrix) == pytest.approx(-0.28)


def test_effective_strength_is_bounded_by_tanh() -> None:
    balancer = TeamBalancer(BalanceParameters())
    team = [PlayerRatingState(player_id=1, mu=25.0), PlayerRatingState(player_id=2, mu=27.0)]
    opponents = [PlayerRatingState(player_id=9, mu=25.0)]
    matrix = {(1, 2): PlayerPair(1, 2, synergy_mu=10.0, synergy_sigma=0.0)}

    strength = balancer.effective_strength(team, opponents, matrix)

    assert 52.0 < strength < 52.0 + 0.6 + 1e-9


def test_synergy_keeps_base_difference_under_cap() -> None:
    players = [
        PlayerRatingState(player_id=i, mu=30.0 if i <= 8 else 20.0) for i in range(1, 17)
    ]
    matrix = {(1, 9): PlayerPair(1, 9, synergy_mu=2.0, synergy_sigma=0.0)}
    balancer = TeamBalancer(BalanceParameters(max_base_diff=2.0), rng=random.Random(9))

    balance = balancer.balance_two_teams(players, matrix)

    assert balance.synergy_enabled
    assert balance.effective_difference is not None
    assert balance.difference <= 2.0 + 1e-9


def test_matrix_is_loaded_from_pair_store(pair_repository: InMemoryPairRepository) -> None:
    store = PairStatisticsStore(pair_repository, PairParameters())
    pair_repository.upsert_pairs([PlayerPair(1, 2, synergy_mu=1.0, synergy_sigma=0.0)])
    balancer = TeamBalancer(BalanceParameters(), pair_store=store, rng=random.Random(2))

    balance = balancer.balance_two_teams(_pool(16))

    assert balance.synergy_enabled
    assert balance.effective_difference is not None


def test_synergy_disabled_ignores_matrix() -> None:
    matrix = {(1, 2): PlayerPair(1, 2, synergy_mu=1.0, synergy_sigma=0.0)}
    balancer = TeamBalancer(BalanceParameters(synergy_enabled=False), rng=random.Random(2))

    balance = balancer.balance_two_teams(_pool(16), matrix)

    assert not balance.synergy_enabled
    assert balance.effective_difference is None


def test_three_teams_with_synergy_report_effective_spread() -> None:
    matrix = {(1, 2): PlayerPair(1, 2, synergy_mu=0.8, synergy_sigma=0.0)}
    balancer = TeamBalancer(BalanceParameters(), rng=random.Random(4))

    balance = balancer.balance_three_teams(_pool(24), matrix)

    assert balance.synergy_enabled
    assert balance.effective_spread is not None
    assert balance.effective_spread >= 0.0
