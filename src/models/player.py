"""players table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Player(Base):
    """Current rating state of one registered player."""

    __tablename__ = "players"
    __table_args__ = (
        CheckConstraint("games_played >= 0", name="ck_players_games_played"),
        CheckConstraint("mvp_count >= 0", name="ck_players_mvp_count"),
        CheckConstraint("sigma > 0", name="ck_players_sigma_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    mu: Mapped[float] = mapped_column(Float, nullable=False)
    sigma: Mapped[float] = mapped_column(Float, nullable=False)
    games_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mvp_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_played_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    first_played_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
