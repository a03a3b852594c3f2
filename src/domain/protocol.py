"""Storage contracts the engine depends on."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from domain.common import PairKey, PlayerPair, PlayerRatingState, RatingEvent, RatingWriteBatch


@runtime_checkable
class PlayerRepository(Protocol):
    """Player rating state plus the append-only rating event log."""

    def find_by_ids(self, player_ids: Iterable[int]) -> list[PlayerRatingState]: ...

    def find_active(self, min_games: int = 1) -> list[PlayerRatingState]: ...

    def apply_batch(self, batch: RatingWriteBatch) -> None:
        """Persist every update and event of ``batch`` or none of them."""
        ...

    def events_for_match(self, match_id: int) -> list[RatingEvent]: ...

    def events_after_match(self, match_id: int, player_ids: Iterable[int]) -> list[RatingEvent]:
        """Events of ``player_ids`` outside ``match_id`` recorded after its first event, oldest first."""
        ...


@runtime_checkable
class PairRepository(Protocol):
    """Per-pair historical statistics keyed by canonical ``(a, b)`` ids."""

    def get_pairs(self, keys: Iterable[PairKey]) -> list[PlayerPair]: ...

    def upsert_pairs(self, pairs: Sequence[PlayerPair]) -> None: ...

    def pairs_for_player(self, player_id: int) -> list[PlayerPair]: ...


__all__ = ["PairRepository", "PlayerRepository"]
