"""rating_events table model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Index, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONType


class RatingEventRow(Base):
    """Append-only history of rating changes (match, idle, mvp, rollback)."""

    __tablename__ = "rating_events"
    __table_args__ = (
        Index("idx_rating_events_player_time", "player_id", "event_time"),
        Index("idx_rating_events_match", "match_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    match_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str] = mapped_column(
        Enum(
            "match",
            "idle",
            "mvp",
            "rollback",
            name="rating_event_reason",
            native_enum=False,
        ),
        nullable=False,
    )
    mu_before: Mapped[float] = mapped_column(Float, nullable=False)
    mu_after: Mapped[float] = mapped_column(Float, nullable=False)
    sigma_before: Mapped[float] = mapped_column(Float, nullable=False)
    sigma_after: Mapped[float] = mapped_column(Float, nullable=False)
    event_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    meta_json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
