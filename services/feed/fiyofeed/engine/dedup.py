"""Merge candidates from every strategy into one entry per content id."""
from fiyofeed.engine.types import Candidate


def deduplicate(candidates: list[Candidate]) -> list[Candidate]:
    """
    Keep one candidate per content id, in first-seen order.

    A later duplicate replaces the stored entry only if its strategy weight is
    strictly higher; on equal weight the first-seen entry stays.
    """
    merged: dict[str, Candidate] = {}
    for candidate in candidates:
        current = merged.get(candidate.id)
        if current is None or candidate.strategy_weight > current.strategy_weight:
            merged[candidate.id] = candidate
    return list(merged.values())
