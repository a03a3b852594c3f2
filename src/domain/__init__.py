"""Rating and team-balancing domain modules."""

from domain.common import PlayerPair, PlayerRatingState, RatingEvent, RatingReason
from domain.protocol import PairRepository, PlayerRepository

__all__ = [
    "PairRepository",
    "PlayerPair",
    "PlayerRatingState",
    "PlayerRepository",
    "RatingEvent",
    "RatingReason",
]
