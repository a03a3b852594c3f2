"""player_pairs table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class PlayerPairRow(Base):
    """Together/versus counters for one unordered pair, stored with player_a_id < player_b_id."""

    __tablename__ = "player_pairs"
    __table_args__ = (
        CheckConstraint("player_a_id < player_b_id", name="ck_player_pairs_order"),
        CheckConstraint(
            "together_wins >= 0 AND together_wins <= together_games",
            name="ck_player_pairs_together_wins",
        ),
        CheckConstraint(
            "vs_wins >= 0 AND vs_wins <= vs_games",
            name="ck_player_pairs_vs_wins",
        ),
        Index("idx_player_pairs_b", "player_b_id"),
    )

    player_a_id: Mapped[int] = mapped_column(ForeignKey("players.id"), primary_key=True)
    player_b_id: Mapped[int] = mapped_column(ForeignKey("players.id"), primary_key=True)
    together_games: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    together_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vs_games: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vs_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    synergy_mu: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    synergy_sigma: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    counter_mu: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    counter_sigma: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    last_game_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
