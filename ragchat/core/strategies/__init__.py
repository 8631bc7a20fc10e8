"""Candidate fusion strategies."""
from .fusion import DeduplicateStrategy, FusionStrategy, ScoreRankStrategy, fuse

__all__ = [
    "FusionStrategy",
    "DeduplicateStrategy",
    "ScoreRankStrategy",
    "fuse",
]
