"""ORM models."""

from models.base import Base
from models.player import Player
from models.player_pair import PlayerPairRow
from models.rating_event import RatingEventRow

__all__ = [
    "Base",
    "Player",
    "PlayerPairRow",
    "RatingEventRow",
]
