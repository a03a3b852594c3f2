"""Database repository implementations."""

from repositories.pairs import SqlPairRepository
from repositories.players import SqlPlayerRepository
from repositories.schema import ensure_schema, register_player

__all__ = [
    "SqlPairRepository",
    "SqlPlayerRepository",
    "ensure_schema",
    "register_player",
]
