"""Player skill ratings: the match update and idle inflation."""

from domain.ratings.engine import (
    MiniMatchResult,
    RatingEngine,
    RatingUpdateResult,
    RoundRobinSummary,
)
from domain.ratings.inactivity import IdleInflation, InactivityModel

__all__ = [
    "IdleInflation",
    "InactivityModel",
    "MiniMatchResult",
    "RatingEngine",
    "RatingUpdateResult",
    "RoundRobinSummary",
]
