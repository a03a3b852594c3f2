"""SQLAlchemy repository tests against a temporary SQLite database."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from db import create_db_engine, create_session_factory
from domain.common import PlayerPair, PlayerRatingState, RatingEvent, RatingReason, RatingWriteBatch
from domain.config import EngineConfig
from domain.errors import InvalidMatchError, MissingPlayerError
from domain.protocol import PairRepository, PlayerRepository
from domain.ratings.engine import RatingEngine
from repositories import SqlPairRepository, SqlPlayerRepository, ensure_schema, register_player

PLAYED_AT = datetime(2026, 3, 2, 20, 0, 0)


@pytest.fixture
def session_factory(tmp_path: Path) -> sessionmaker[Session]:
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ratings.db'}")
    ensure_schema(engine)
    return create_session_factory(engine)


def _register(session_factory: sessionmaker[Session], *player_ids: int) -> None:
    for player_id in player_ids:
        register_player(session_factory, player_id, created_at=PLAYED_AT - timedelta(days=30))


def test_repositories_satisfy_protocols(session_factory: sessionmaker[Session]) -> None:
    assert isinstance(SqlPlayerRepository(session_factory), PlayerRepository)
    assert isinstance(SqlPairRepository(session_factory), PairRepository)


def test_register_player_creates_default_state(session_factory: sessionmaker[Session]) -> None:
    state = register_player(session_factory, 10, created_at=PLAYED_AT)
    again = register_player(session_factory, 10, mu=40.0)

    assert state.mu == pytest.approx(25.0)
    assert state.sigma == pytest.approx(8.333)
    assert state.games_played == 0
    assert again.mu == pytest.approx(25.0)
    assert again.created_at == PLAYED_AT


def test_apply_batch_round_trips_states_and_events(session_factory: sessionmaker[Session]) -> None:
    _register(session_factory, 1, 2)
    repository = SqlPlayerRepository(session_factory)
    event = RatingEvent(
        player_id=1,
        reason=RatingReason.MATCH,
        mu_before=25.0,
        mu_after=27.5,
        sigma_before=8.333,
        sigma_after=7.9,
        event_time=PLAYED_AT,
        match_id=5,
        meta={"won": True, "t": 0.0},
    )

    repository.apply_batch(
        RatingWriteBatch(
            updates=(
                PlayerRatingState(
                    player_id=1,
                    mu=27.5,
                    sigma=7.9,
                    games_played=1,
                    last_played_at=PLAYED_AT,
                    first_played_at=PLAYED_AT,
                ),
            ),
            events=(event,),
        )
    )

    (state,) = repository.find_by_ids([1])
    assert state.mu == pytest.approx(27.5)
    assert state.games_played == 1
    assert state.last_played_at == PLAYED_AT
    assert [s.player_id for s in repository.find_active(min_games=1)] == [1]
    assert repository.events_for_match(5) == [event]
    assert repository.events_after_match(5, [1]) == []
    assert repository.events_after_match(99, [1]) == []


def test_apply_batch_is_atomic(session_factory: sessionmaker[Session]) -> None:
    _register(session_factory, 1)
    repository = SqlPlayerRepository(session_factory)

    with pytest.raises(MissingPlayerError):
        repository.apply_batch(
            RatingWriteBatch(
                updates=(
                    PlayerRatingState(player_id=1, mu=30.0, games_played=1),
                    PlayerRatingState(player_id=99, mu=30.0, games_played=1),
                ),
            )
        )

    (state,) = repository.find_by_ids([1])
    assert state.mu == pytest.approx(25.0)


def test_check_constraint_rejects_negative_games(session_factory: sessionmaker[Session]) -> None:
    _register(session_factory, 1)
    repository = SqlPlayerRepository(session_factory)

    with pytest.raises(IntegrityError):
        repository.apply_batch(
            RatingWriteBatch(updates=(PlayerRatingState(player_id=1, games_played=-1),))
        )


def test_pair_repository_upserts_and_filters(session_factory: sessionmaker[Session]) -> None:
    _register(session_factory, 1, 2, 3)
    repository = SqlPairRepository(session_factory)

    repository.upsert_pairs([PlayerPair(1, 2, together_games=1), PlayerPair(2, 3, vs_games=2, vs_wins=1)])
    repository.upsert_pairs([PlayerPair(1, 2, together_games=2, together_wins=1, last_game_at=PLAYED_AT)])

    pairs = {pair.key: pair for pair in repository.get_pairs([(1, 2), (2, 3), (1, 3)])}
    assert set(pairs) == {(1, 2), (2, 3)}
    assert pairs[(1, 2)].together_games == 2
    assert pairs[(1, 2)].last_game_at == PLAYED_AT
    assert repository.get_pairs([(1, 3)]) == []
    assert [pair.key for pair in repository.pairs_for_player(2)] == [(1, 2), (2, 3)]


def test_engine_end_to_end_on_sqlite(session_factory: sessionmaker[Session]) -> None:
    _register(session_factory, *range(1, 9))
    players = SqlPlayerRepository(session_factory)
    pairs = SqlPairRepository(session_factory)
    engine = RatingEngine.from_config(EngineConfig(), players, pairs)

    engine.update_outcome([1, 2, 3, 4], [5, 6, 7, 8], match_played_at=PLAYED_AT, match_id=1)

    states = {state.player_id: state for state in players.find_by_ids(range(1, 9))}
    assert all(states[i].mu > 25.0 for i in (1, 2, 3, 4))
    assert all(states[i].mu < 25.0 for i in (5, 6, 7, 8))
    assert len(players.events_for_match(1)) == 8
    assert pairs.get_pairs([(1, 2)])[0].together_wins == 1

    engine.rollback_match(1, rolled_back_at=PLAYED_AT + timedelta(hours=2))

    restored = {state.player_id: state for state in players.find_by_ids(range(1, 9))}
    assert all(restored[i].mu == pytest.approx(25.0) for i in range(1, 9))
    assert pairs.get_pairs([(1, 2)])[0].together_games == 0


def test_events_after_match_blocks_rollback_of_older_match(
    session_factory: sessionmaker[Session],
) -> None:
    _register(session_factory, 1, 2, 3, 4)
    players = SqlPlayerRepository(session_factory)
    engine = RatingEngine.from_config(EngineConfig(), players)
    engine.update_outcome([1, 2], [3, 4], match_played_at=PLAYED_AT, match_id=1)
    engine.update_outcome([1, 3], [2, 4], match_played_at=PLAYED_AT, match_id=2)

    later = players.events_after_match(1, [1, 2, 3, 4])
    assert {event.match_id for event in later} == {2}
    assert [event.player_id for event in later] == [1, 3, 2, 4]
    assert players.events_after_match(2, [1, 2, 3, 4]) == []

    with pytest.raises(InvalidMatchError):
        engine.rollback_match(1)
