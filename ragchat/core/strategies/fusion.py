import logging
from abc import ABC, abstractmethod

from ..models.document import RetrievedCandidate

logger = logging.getLogger(__name__)


class FusionStrategy(ABC):
    """Base class for candidate fusion steps."""

    @abstractmethod
    def apply(self, candidates: list[RetrievedCandidate]) -> list[RetrievedCandidate]:
        """Apply strategy to candidates."""
        ...


class DeduplicateStrategy(FusionStrategy):
    """Keep the first occurrence of every document id."""

    def apply(self, candidates: list[RetrievedCandidate]) -> list[RetrievedCandidate]:
        seen: set[str] = set()
        unique = []
        for candidate in candidates:
            if candidate.id in seen:
                continue
            seen.add(candidate.id)
            unique.append(candidate)

        if len(unique) < len(candidates):
            logger.debug(f"Dedupe: {len(candidates)} → {len(unique)} candidates")

        return unique


class ScoreRankStrategy(FusionStrategy):
    """Order candidates by score, highest first.

    The sort is stable: equal scores keep their incoming order.
    """

    def apply(self, candidates: list[RetrievedCandidate]) -> list[RetrievedCandidate]:
        return sorted(candidates, key=lambda c: c.score, reverse=True)


def fuse(
    candidates: list[RetrievedCandidate],
    top_k: int,
    strategies: list[FusionStrategy] | None = None,
) -> list[RetrievedCandidate]:
    """Run fusion strategies in order and truncate to top_k."""
    for strategy in strategies or [DeduplicateStrategy(), ScoreRankStrategy()]:
        candidates = strategy.apply(candidates)
    return candidates[:top_k]
