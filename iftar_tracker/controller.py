"""
Application state and the single controller that updates it.

The controller owns an immutable ``TrackerState`` snapshot. Reads take the
current snapshot; refreshes, votes and submissions replace it whole under a
lock. Every change event re-runs fetch -> merge -> aggregate -> attach.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence

from iftar_tracker.aggregation import (
    aggregate_votes,
    attach_counts,
    merge_mosques,
    search_and_rank,
)
from iftar_tracker.catalog import (
    MOSQUES_TABLE,
    VOTES_TABLE,
    CatalogClient,
    CatalogError,
    MosqueRecord,
    NewMosque,
    VoteRecord,
    VoteType,
    normalize_id,
)
from iftar_tracker.changes import ChangeEvent, ChangeFeed, InMemoryChangeFeed
from iftar_tracker.markers import MarkerStoreError, VoteMarkerStore
from iftar_tracker.seed import INITIAL_MOSQUES

logger = logging.getLogger(__name__)


class CatalogNotConfiguredError(CatalogError):
    """Raised for writes while the service runs on seed data only."""


class UnknownMosqueError(KeyError):
    pass


@dataclass(frozen=True)
class TrackerState:
    mosques: tuple[MosqueRecord, ...]
    loaded: bool = False
    last_error: Optional[str] = None
    refreshed_at: Optional[float] = None


@dataclass(frozen=True)
class VoteOutcome:
    mosque: MosqueRecord
    vote_type: str
    accepted: bool


class TrackerController:
    def __init__(
        self,
        catalog: Optional[CatalogClient],
        markers: VoteMarkerStore,
        feed: Optional[ChangeFeed] = None,
        *,
        seed: Sequence[MosqueRecord] = INITIAL_MOSQUES,
        mode: Optional[str] = None,
    ):
        self.catalog = catalog
        self.markers = markers
        self.feed = feed or InMemoryChangeFeed()
        self.seed = tuple(mosque.with_counts(0, 0) for mosque in seed)
        self.mode = mode or ("static" if catalog is None else "live")
        self._state = TrackerState(mosques=self.seed)
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def read_only(self) -> bool:
        return self.catalog is None

    @property
    def state(self) -> TrackerState:
        return self._state

    def start(self) -> None:
        """Load the catalog and begin reacting to change events."""
        if self.read_only:
            logger.warning("No backend configured; serving seed data only")
        self.refresh()
        if self._unsubscribe is None:
            self._unsubscribe = self.feed.subscribe(self._on_change)
            self.feed.start()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.feed.stop()

    def _on_change(self, event: ChangeEvent) -> None:
        logger.debug("Change event from %s, refreshing", event.source)
        self.refresh()

    def refresh(self) -> bool:
        """
        Re-run the full pipeline. Returns False if the backend could not be
        read, in which case the previous state is kept.
        """
        if self.catalog is None:
            with self._lock:
                self._state = TrackerState(
                    mosques=self.seed, loaded=True, refreshed_at=time.time()
                )
            return True

        try:
            fetched = self.catalog.list_mosques()
            votes = self.catalog.list_votes()
        except CatalogError as exc:
            logger.exception("Error fetching catalog: %s", exc)
            with self._lock:
                self._state = replace(self._state, last_error=str(exc))
            return False

        mosques = attach_counts(merge_mosques(self.seed, fetched), aggregate_votes(votes))
        with self._lock:
            self._state = TrackerState(
                mosques=tuple(mosques), loaded=True, refreshed_at=time.time()
            )
        logger.info("Loaded %d mosques and %d votes", len(mosques), len(votes))
        return True

    def _ensure_loaded(self) -> TrackerState:
        if not self._state.loaded:
            self.refresh()
        return self._state

    def list_mosques(self, term: Optional[str] = None) -> list[MosqueRecord]:
        return search_and_rank(self._ensure_loaded().mosques, term)

    def get_mosque(self, mosque_id: str) -> MosqueRecord:
        try:
            key = normalize_id(mosque_id)
        except ValueError:
            raise UnknownMosqueError(mosque_id) from None
        for mosque in self._ensure_loaded().mosques:
            if mosque.id == key:
                return mosque
        raise UnknownMosqueError(key)

    def map_markers(self, term: Optional[str] = None) -> list[MosqueRecord]:
        return [mosque for mosque in self.list_mosques(term) if mosque.has_coordinates]

    def markers_for(self, client_id: str) -> dict[str, str]:
        try:
            return self.markers.all_for(client_id)
        except MarkerStoreError as exc:
            logger.warning("Vote markers unavailable: %s", exc)
            return {}

    def cast_vote(self, client_id: str, mosque_id: str, vote_type: str) -> VoteOutcome:
        """
        Record one vote per client per mosque. A repeat attempt returns the
        earlier choice with ``accepted=False`` and never reaches the backend.
        """
        vote_type = VoteType(vote_type).value
        mosque = self.get_mosque(mosque_id)
        if self.catalog is None:
            raise CatalogNotConfiguredError("Voting is disabled without a backend")

        existing = self.markers.claim(client_id, mosque.id, vote_type)
        if existing:
            logger.info("Client already voted %s on mosque %s", existing, mosque.id)
            return VoteOutcome(mosque=mosque, vote_type=existing, accepted=False)

        try:
            self.catalog.insert_vote(VoteRecord(mosque_id=mosque.id, vote_type=vote_type))
        except CatalogError:
            self._release_marker(client_id, mosque.id)
            raise
        self._apply_optimistic_vote(mosque.id, vote_type)
        self.feed.publish(ChangeEvent(source=VOTES_TABLE))
        return VoteOutcome(
            mosque=self.get_mosque(mosque.id), vote_type=vote_type, accepted=True
        )

    def _release_marker(self, client_id: str, mosque_id: str) -> None:
        try:
            self.markers.release(client_id, mosque_id)
        except MarkerStoreError as exc:
            logger.error("Could not release vote marker for mosque %s: %s", mosque_id, exc)

    def _apply_optimistic_vote(self, mosque_id: str, vote_type: str) -> None:
        # The next refresh recomputes counts from the backend and replaces this.
        with self._lock:
            updated = []
            for mosque in self._state.mosques:
                if mosque.id == mosque_id:
                    if vote_type == VoteType.TRUE.value:
                        mosque = mosque.with_counts(mosque.true_count + 1, mosque.fake_count)
                    else:
                        mosque = mosque.with_counts(mosque.true_count, mosque.fake_count + 1)
                updated.append(mosque)
            self._state = replace(self._state, mosques=tuple(updated))

    def add_mosque(self, submission: NewMosque) -> MosqueRecord:
        if self.catalog is None:
            raise CatalogNotConfiguredError("Submissions are disabled without a backend")

        created = self.catalog.insert_mosque(submission)
        logger.info("Added mosque %s (%s)", created.id, created.name)
        with self._lock:
            merged = merge_mosques(self._state.mosques, [created])
            self._state = replace(self._state, mosques=tuple(merged))
        self.feed.publish(ChangeEvent(source=MOSQUES_TABLE))
        return self.get_mosque(created.id)
