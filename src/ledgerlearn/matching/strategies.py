"""Match strategies for fuzzy lookups.

Fuzzy searches (similar supplier, stored pattern) scan candidates in store
order and ask a strategy which one wins. FirstMatchStrategy returns the first
candidate that satisfies the predicate; BestScoreStrategy scores every
candidate and returns the highest.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Generic, TypeVar

T = TypeVar("T")


class MatchStrategy(Generic[T]):
    """Chooses one candidate among those accepted by a predicate."""

    name = "base"

    def select(
        self,
        candidates: Iterable[T],
        accept: Callable[[T], bool],
        score: Callable[[T], float] | None = None,
    ) -> T | None:
        raise NotImplementedError


class FirstMatchStrategy(MatchStrategy[T]):
    """First accepted candidate in iteration order (default)."""

    name = "first"

    def select(
        self,
        candidates: Iterable[T],
        accept: Callable[[T], bool],
        score: Callable[[T], float] | None = None,
    ) -> T | None:
        for candidate in candidates:
            if accept(candidate):
                return candidate
        return None


class BestScoreStrategy(MatchStrategy[T]):
    """Highest-scoring accepted candidate; ties keep iteration order."""

    name = "best"

    def select(
        self,
        candidates: Iterable[T],
        accept: Callable[[T], bool],
        score: Callable[[T], float] | None = None,
    ) -> T | None:
        if score is None:
            return FirstMatchStrategy().select(candidates, accept)

        best: T | None = None
        best_score = float("-inf")
        for candidate in candidates:
            if not accept(candidate):
                continue
            value = score(candidate)
            if value > best_score:
                best = candidate
                best_score = value
        return best


DEFAULT_STRATEGY: MatchStrategy = FirstMatchStrategy()
