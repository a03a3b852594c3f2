"""SQLAlchemy storage for player rating state and the rating event log."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, sessionmaker

from domain.common import PlayerRatingState, RatingEvent, RatingReason, RatingWriteBatch
from domain.errors import MissingPlayerError
from models import Player, RatingEventRow


def player_to_state(player: Player) -> PlayerRatingState:
    return PlayerRatingState(
        player_id=player.id,
        mu=player.mu,
        sigma=player.sigma,
        games_played=player.games_played,
        last_played_at=player.last_played_at,
        first_played_at=player.first_played_at,
        mvp_count=player.mvp_count,
        created_at=player.created_at,
    )


def row_to_event(row: RatingEventRow) -> RatingEvent:
    return RatingEvent(
        player_id=row.player_id,
        reason=RatingReason(row.reason),
        mu_before=row.mu_before,
        mu_after=row.mu_after,
        sigma_before=row.sigma_before,
        sigma_after=row.sigma_after,
        event_time=row.event_time,
        match_id=row.match_id,
        meta=dict(row.meta_json or {}),
    )


def event_to_row(event: RatingEvent) -> RatingEventRow:
    return RatingEventRow(
        player_id=event.player_id,
        match_id=event.match_id,
        reason=event.reason.value,
        mu_before=event.mu_before,
        mu_after=event.mu_after,
        sigma_before=event.sigma_before,
        sigma_after=event.sigma_after,
        event_time=event.event_time,
        meta_json=dict(event.meta),
    )


class SqlPlayerRepository:
    """Player repository backed by the players and rating_events tables."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def find_by_ids(self, player_ids: Iterable[int]) -> list[PlayerRatingState]:
        ids = sorted(set(player_ids))
        if not ids:
            return []
        with self.session_factory() as session:
            players = session.scalars(select(Player).where(Player.id.in_(ids))).all()
            return [player_to_state(player) for player in players]

    def find_active(self, min_games: int = 1) -> list[PlayerRatingState]:
        with self.session_factory() as session:
            statement = select(Player).where(Player.games_played >= min_games).order_by(Player.id)
            return [player_to_state(player) for player in session.scalars(statement)]

    def apply_batch(self, batch: RatingWriteBatch) -> None:
        """Write all state updates and events in one transaction."""
        if batch.is_empty():
            return

        with self.session_factory.begin() as session:
            now = datetime.now(UTC).replace(tzinfo=None)
            ids = [state.player_id for state in batch.updates]
            players = {
                player.id: player
                for player in session.scalars(select(Player).where(Player.id.in_(ids)))
            }
            missing = [player_id for player_id in ids if player_id not in players]
            if missing:
                raise MissingPlayerError(missing)

            for state in batch.updates:
                player = players[state.player_id]
                player.mu = state.mu
                player.sigma = state.sigma
                player.games_played = state.games_played
                player.mvp_count = state.mvp_count
                player.last_played_at = state.last_played_at
                player.first_played_at = state.first_played_at
                player.updated_at = now

            session.add_all(event_to_row(event) for event in batch.events)

    def events_for_match(self, match_id: int) -> list[RatingEvent]:
        with self.session_factory() as session:
            statement = (
                select(RatingEventRow)
                .where(RatingEventRow.match_id == match_id)
                .order_by(RatingEventRow.id)
            )
            return [row_to_event(row) for row in session.scalars(statement)]

    def events_after_match(self, match_id: int, player_ids: Iterable[int]) -> list[RatingEvent]:
        ids = list(player_ids)
        with self.session_factory() as session:
            first_id = session.scalar(
                select(func.min(RatingEventRow.id)).where(RatingEventRow.match_id == match_id)
            )
            if first_id is None or not ids:
                return []
            statement = (
                select(RatingEventRow)
                .where(
                    RatingEventRow.player_id.in_(ids),
                    RatingEventRow.id > first_id,
                    or_(RatingEventRow.match_id.is_(None), RatingEventRow.match_id != match_id),
                )
                .order_by(RatingEventRow.id)
            )
            return [row_to_event(row) for row in session.scalars(statement)]
