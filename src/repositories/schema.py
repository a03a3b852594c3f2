"""Schema creation and player registration."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from domain.common import DEFAULT_MU, DEFAULT_SIGMA, PlayerRatingState
from models import Base, Player, PlayerPairRow, RatingEventRow
from repositories.players import player_to_state


def ensure_schema(engine: Engine) -> None:
    """Create the players, rating_events and player_pairs tables if they do not exist."""
    Base.metadata.create_all(
        bind=engine,
        tables=[Player.__table__, RatingEventRow.__table__, PlayerPairRow.__table__],
    )


def register_player(
    session_factory: sessionmaker[Session],
    player_id: int,
    *,
    mu: float = DEFAULT_MU,
    sigma: float = DEFAULT_SIGMA,
    created_at: datetime | None = None,
) -> PlayerRatingState:
    """Create the rating row for a new player, or return the existing one unchanged."""
    with session_factory.begin() as session:
        player = session.get(Player, player_id)
        if player is None:
            now = created_at or datetime.now(UTC).replace(tzinfo=None)
            player = Player(
                id=player_id,
                mu=mu,
                sigma=sigma,
                games_played=0,
                mvp_count=0,
                created_at=now,
                updated_at=now,
            )
            session.add(player)
            session.flush()
        return player_to_state(player)
