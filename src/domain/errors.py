"""Error kinds raised by the rating and team-balancing engine."""

from __future__ import annotations

from collections.abc import Iterable


class RatingError(Exception):
    """Base class for every engine error."""


class RatingValidationError(RatingError, ValueError):
    """Caller input was rejected before any state was touched."""


class InvalidMatchError(RatingValidationError):
    """Team id sets are empty, overlapping or otherwise unusable."""


class InvalidMvpError(RatingValidationError):
    """MVP ids are not participants or break the one-per-team rule."""


class InvalidPoolSizeError(RatingValidationError):
    """Team balancing received the wrong number of players."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Exactly {expected} players are required, got {actual}")
        self.expected = expected
        self.actual = actual


class RatingConsistencyError(RatingError):
    """Stored state or configuration cannot support the requested operation."""


class MissingPlayerError(RatingConsistencyError):
    """Some referenced player ids have no rating state in the store."""

    def __init__(self, missing_ids: Iterable[int]) -> None:
        self.missing_ids = tuple(sorted(missing_ids))
        super().__init__(
            "missing player ids: " + ", ".join(str(player_id) for player_id in self.missing_ids)
        )


class DegenerateMatchError(RatingConsistencyError):
    """The update normaliser came out non-finite or non-positive."""


__all__ = [
    "DegenerateMatchError",
    "InvalidMatchError",
    "InvalidMvpError",
    "InvalidPoolSizeError",
    "MissingPlayerError",
    "RatingConsistencyError",
    "RatingError",
    "RatingValidationError",
]
