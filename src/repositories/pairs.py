"""SQLAlchemy storage for pairwise statistics."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, sessionmaker

from domain.common import PairKey, PlayerPair
from models import PlayerPairRow


def row_to_pair(row: PlayerPairRow) -> PlayerPair:
    return PlayerPair(
        player_a_id=row.player_a_id,
        player_b_id=row.player_b_id,
        together_games=row.together_games,
        together_wins=row.together_wins,
        vs_games=row.vs_games,
        vs_wins=row.vs_wins,
        synergy_mu=row.synergy_mu,
        synergy_sigma=row.synergy_sigma,
        counter_mu=row.counter_mu,
        counter_sigma=row.counter_sigma,
        last_game_at=row.last_game_at,
    )


class SqlPairRepository:
    """Pair repository backed by the player_pairs table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def get_pairs(self, keys: Iterable[PairKey]) -> list[PlayerPair]:
        wanted = set(keys)
        if not wanted:
            return []

        # filter on both columns, then drop cross combinations
        a_ids = {a for a, _ in wanted}
        b_ids = {b for _, b in wanted}
        with self.session_factory() as session:
            statement = select(PlayerPairRow).where(
                PlayerPairRow.player_a_id.in_(a_ids),
                PlayerPairRow.player_b_id.in_(b_ids),
            )
            return [
                row_to_pair(row)
                for row in session.scalars(statement)
                if (row.player_a_id, row.player_b_id) in wanted
            ]

    def upsert_pairs(self, pairs: Sequence[PlayerPair]) -> None:
        if not pairs:
            return

        with self.session_factory.begin() as session:
            now = datetime.now(UTC).replace(tzinfo=None)
            for pair in pairs:
                row = session.get(PlayerPairRow, (pair.player_a_id, pair.player_b_id))
                if row is None:
                    row = PlayerPairRow(player_a_id=pair.player_a_id, player_b_id=pair.player_b_id)
                    session.add(row)
                row.together_games = pair.together_games
                row.together_wins = pair.together_wins
                row.vs_games = pair.vs_games
                row.vs_wins = pair.vs_wins
                row.synergy_mu = pair.synergy_mu
                row.synergy_sigma = pair.synergy_sigma
                row.counter_mu = pair.counter_mu
                row.counter_sigma = pair.counter_sigma
                row.last_game_at = pair.last_game_at
                row.updated_at = now

    def pairs_for_player(self, player_id: int) -> list[PlayerPair]:
        with self.session_factory() as session:
            statement = (
                select(PlayerPairRow)
                .where(
                    or_(
                        PlayerPairRow.player_a_id == player_id,
                        PlayerPairRow.player_b_id == player_id,
                    )
                )
                .order_by(PlayerPairRow.player_a_id, PlayerPairRow.player_b_id)
            )
            return [row_to_pair(row) for row in session.scalars(statement)]
