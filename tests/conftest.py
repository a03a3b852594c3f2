"""In-memory repositories shared by the engine tests."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import pytest

from domain.common import (
    PairKey,
    PlayerPair,
    PlayerRatingState,
    RatingEvent,
    RatingReason,
    RatingWriteBatch,
)


class InMemoryPlayerRepository:
    def __init__(self, states: Iterable[PlayerRatingState] = ()) -> None:
        self.states: dict[int, PlayerRatingState] = {state.player_id: state for state in states}
        self.events: list[RatingEvent] = []
        self.batches: list[RatingWriteBatch] = []
        self.fail_next_batch = False

    def add(self, state: PlayerRatingState) -> None:
        self.states[state.player_id] = state

    def find_by_ids(self, player_ids: Iterable[int]) -> list[PlayerRatingState]:
        return [self.states[player_id] for player_id in player_ids if player_id in self.states]

    def find_active(self, min_games: int = 1) -> list[PlayerRatingState]:
        return [state for state in self.states.values() if state.games_played >= min_games]

    def apply_batch(self, batch: RatingWriteBatch) -> None:
        if self.fail_next_batch:
            self.fail_next_batch = False
            raise RuntimeError("storage unavailable")
        self.batches.append(batch)
        for state in batch.updates:
            self.states[state.player_id] = state
        self.events.extend(batch.events)

    def events_for_match(self, match_id: int) -> list[RatingEvent]:
        return [event for event in self.events if event.match_id == match_id]

    def events_after_match(self, match_id: int, player_ids: Iterable[int]) -> list[RatingEvent]:
        positions = [index for index, event in enumerate(self.events) if event.match_id == match_id]
        if not positions:
            return []
        wanted = set(player_ids)
        return [
            event
            for event in self.events[positions[0] + 1 :]
            if event.player_id in wanted and event.match_id != match_id
        ]

    def events_with(self, reason: RatingReason) -> list[RatingEvent]:
        return [event for event in self.events if event.reason is reason]


class InMemoryPairRepository:
    def __init__(self) -> None:
        self.pairs: dict[PairKey, PlayerPair] = {}
        self.fail_on_upsert = False

    def get_pairs(self, keys: Iterable[PairKey]) -> list[PlayerPair]:
        return [self.pairs[key] for key in keys if key in self.pairs]

    def upsert_pairs(self, pairs: Sequence[PlayerPair]) -> None:
        if self.fail_on_upsert:
            raise RuntimeError("pair storage unavailable")
        for pair in pairs:
            self.pairs[pair.key] = pair

    def pairs_for_player(self, player_id: int) -> list[PlayerPair]:
        return [pair for key, pair in sorted(self.pairs.items()) if player_id in key]


@pytest.fixture
def player_repository() -> InMemoryPlayerRepository:
    return InMemoryPlayerRepository()


@pytest.fixture
def pair_repository() -> InMemoryPairRepository:
    return InMemoryPairRepository()
