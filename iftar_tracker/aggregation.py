"""
Merge, count and rank helpers for mosque listings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from iftar_tracker.catalog import MosqueRecord, VoteRecord, VoteType, normalize_id

logger = logging.getLogger(__name__)


@dataclass
class VoteCounts:
    true: int = 0
    fake: int = 0

    @property
    def net_score(self) -> int:
        return self.true - self.fake


def merge_mosques(
    seed: Sequence[MosqueRecord], fetched: Optional[Sequence[MosqueRecord]]
) -> list[MosqueRecord]:
    """
    Combine the bundled listings with rows fetched from the backend.

    Fetched rows come first and win on identifier conflicts; seed rows
    whose identifiers were not fetched follow in their original order.
    """
    if not fetched:
        return list(seed)

    merged: list[MosqueRecord] = []
    seen: set[str] = set()
    for mosque in fetched:
        key = normalize_id(mosque.id)
        if key in seen:
            continue
        seen.add(key)
        merged.append(mosque)
    for mosque in seed:
        key = normalize_id(mosque.id)
        if key not in seen:
            seen.add(key)
            merged.append(mosque)
    return merged


def aggregate_votes(votes: Iterable[VoteRecord]) -> dict[str, VoteCounts]:
    counts: dict[str, VoteCounts] = {}
    ignored = 0
    for vote in votes:
        if vote.vote_type == VoteType.TRUE.value:
            counts.setdefault(normalize_id(vote.mosque_id), VoteCounts()).true += 1
        elif vote.vote_type == VoteType.FAKE.value:
            counts.setdefault(normalize_id(vote.mosque_id), VoteCounts()).fake += 1
        else:
            ignored += 1
    if ignored:
        logger.debug("Ignored %d votes with unrecognised vote_type", ignored)
    return counts


def attach_counts(
    mosques: Iterable[MosqueRecord], counts: Mapping[str, VoteCounts]
) -> list[MosqueRecord]:
    attached = []
    for mosque in mosques:
        tally = counts.get(normalize_id(mosque.id)) or VoteCounts()
        attached.append(mosque.with_counts(tally.true, tally.fake))
    return attached


def _matches(mosque: MosqueRecord, needle: str) -> bool:
    return needle in mosque.name.lower() or needle in mosque.location.lower()


def filter_mosques(
    mosques: Iterable[MosqueRecord], term: Optional[str]
) -> list[MosqueRecord]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(mosques)
    return [mosque for mosque in mosques if _matches(mosque, needle)]


def rank_mosques(mosques: Iterable[MosqueRecord]) -> list[MosqueRecord]:
    # sorted() is stable, so equal scores keep their incoming order.
    return sorted(mosques, key=lambda mosque: mosque.net_score, reverse=True)


def search_and_rank(
    mosques: Iterable[MosqueRecord], term: Optional[str]
) -> list[MosqueRecord]:
    return rank_mosques(filter_mosques(mosques, term))
