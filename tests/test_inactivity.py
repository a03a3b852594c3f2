"""Unit tests for idle sigma inflation."""

from __future__ import annotations

import math
from datetime import datetime, timedelta

import pytest
from conftest import InMemoryPlayerRepository

from domain.common import PlayerRatingState, RatingReason
from domain.config import InactivityParameters
from domain.ratings.inactivity import InactivityModel

NOW = datetime(2026, 3, 2, 20, 0, 0)


def _state(player_id: int, *, sigma: float, games: int, weeks_ago: float) -> PlayerRatingState:
    return PlayerRatingState(
        player_id=player_id,
        mu=27.0,
        sigma=sigma,
        games_played=games,
        last_played_at=NOW - timedelta(weeks=weeks_ago),
    )


def test_weeks_inactive_uses_whole_periods() -> None:
    model = InactivityModel(InactivityParameters())
    assert model.weeks_inactive(None, NOW) == 0
    assert model.weeks_inactive(NOW - timedelta(days=6), NOW) == 0
    assert model.weeks_inactive(NOW - timedelta(days=7), NOW) == 1
    assert model.weeks_inactive(NOW - timedelta(days=20), NOW) == 2
    assert model.weeks_inactive(NOW + timedelta(days=3), NOW) == 0


def test_inflate_sigma_matches_closed_form() -> None:
    model = InactivityModel(InactivityParameters(decay_lambda=0.35, sigma0=8.333))
    sigma = 4.0
    expected_s2 = sigma**2 + (8.333**2 - sigma**2) * (1.0 - math.exp(-0.35 * 3))
    assert model.inflate_sigma(sigma, games_played=5, weeks_inactive=3) == pytest.approx(
        math.sqrt(expected_s2)
    )


def test_inflate_sigma_is_capped_at_prior() -> None:
    model = InactivityModel(InactivityParameters())
    assert model.inflate_sigma(3.0, 10, 500) <= 8.333
    assert model.inflate_sigma(3.0, 10, 500) == pytest.approx(8.333, abs=1e-6)
    assert model.inflate_sigma(9.0, 10, 4) == pytest.approx(8.333)


def test_inflate_sigma_never_shrinks_below_input() -> None:
    model = InactivityModel(InactivityParameters())
    for weeks in (1, 2, 5, 20):
        assert model.inflate_sigma(5.0, 10, weeks) >= 5.0


def test_inflate_sigma_skips_players_without_games() -> None:
    model = InactivityModel(InactivityParameters())
    assert model.inflate_sigma(3.0, games_played=0, weeks_inactive=10) == pytest.approx(3.0)


def test_inflate_sigma_disabled_returns_input() -> None:
    model = InactivityModel(InactivityParameters(enabled=False))
    assert model.inflate_sigma(3.0, games_played=10, weeks_inactive=10) == pytest.approx(3.0)


def test_calculate_inflation_falls_back_to_first_game() -> None:
    model = InactivityModel(InactivityParameters())
    state = PlayerRatingState(
        player_id=1,
        sigma=4.0,
        games_played=1,
        first_played_at=NOW - timedelta(weeks=2),
    )
    inflation = model.calculate_inflation(state, NOW)
    assert inflation.weeks_inactive == 2
    assert inflation.sigma_after > inflation.sigma_before


def test_inflate_all_writes_one_batch_for_significant_changes() -> None:
    repository = InMemoryPlayerRepository(
        [
            _state(1, sigma=4.0, games=10, weeks_ago=3),
            _state(2, sigma=4.0, games=10, weeks_ago=0),
            _state(3, sigma=4.0, games=0, weeks_ago=10),
        ]
    )
    model = InactivityModel(InactivityParameters())

    applied = model.inflate_all(repository, NOW)

    assert [inflation.player_id for inflation in applied] == [1]
    assert len(repository.batches) == 1
    assert repository.states[1].sigma == pytest.approx(applied[0].sigma_after)
    assert repository.states[2].sigma == pytest.approx(4.0)
    (event,) = repository.events
    assert event.reason is RatingReason.IDLE
    assert event.mu_before == event.mu_after == pytest.approx(27.0)
    assert event.meta["weeks_inactive"] == 3


def test_inflate_all_dry_run_does_not_write() -> None:
    repository = InMemoryPlayerRepository([_state(1, sigma=4.0, games=10, weeks_ago=3)])
    model = InactivityModel(InactivityParameters())

    applied = model.inflate_all(repository, NOW, dry_run=True)

    assert len(applied) == 1
    assert repository.batches == []
    assert repository.states[1].sigma == pytest.approx(4.0)
