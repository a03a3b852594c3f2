"""Pairwise synergy and counter statistics."""

from domain.pairs.statistics import PairStatisticsStore, PlayerPairStats

__all__ = ["PairStatisticsStore", "PlayerPairStats"]
