"""
Per-browser vote markers.

A marker records which tag a client already chose for a mosque. It is an
advisory guard only: a new client id (private window, cleared cookies)
gets a fresh set of markers.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation shared by every service process.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions


class MarkerStoreError(Exception):
    """Raised when the marker store cannot be reached."""


class VoteMarkerStore(Protocol):
    """Key-value store of ``(client_id, mosque_id) -> vote_type``."""

    def get(self, client_id: str, mosque_id: str) -> Optional[str]:
        ...

    def claim(self, client_id: str, mosque_id: str, vote_type: str) -> Optional[str]:
        """
        Store ``vote_type`` unless a marker exists. Returns the existing
        marker, or None if this call created it.
        """
        ...

    def release(self, client_id: str, mosque_id: str) -> None:
        ...

    def all_for(self, client_id: str) -> dict[str, str]:
        ...


@dataclass
class InMemoryVoteMarkerStore:
    """Dictionary-backed markers for testing/dev."""

    markers: dict[str, dict[str, str]] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()

    def get(self, client_id: str, mosque_id: str) -> Optional[str]:
        return self.markers.get(client_id, {}).get(mosque_id)

    def claim(self, client_id: str, mosque_id: str, vote_type: str) -> Optional[str]:
        with self._lock:
            client_markers = self.markers.setdefault(client_id, {})
            existing = client_markers.get(mosque_id)
            if existing is None:
                client_markers[mosque_id] = vote_type
            return existing

    def release(self, client_id: str, mosque_id: str) -> None:
        with self._lock:
            self.markers.get(client_id, {}).pop(mosque_id, None)

    def all_for(self, client_id: str) -> dict[str, str]:
        return dict(self.markers.get(client_id, {}))


@dataclass
class RedisVoteMarkerStore:
    """Redis-backed markers, one hash per client."""

    url: str
    key_prefix: str = "iftar:votes"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def _key(self, client_id: str) -> str:
        return f"{self.key_prefix}:{client_id}"

    def get(self, client_id: str, mosque_id: str) -> Optional[str]:
        try:
            return self.client.hget(self._key(client_id), mosque_id)
        except redis_exceptions.RedisError as exc:
            raise MarkerStoreError(f"Could not read vote marker: {exc}") from exc

    def claim(self, client_id: str, mosque_id: str, vote_type: str) -> Optional[str]:
        key = self._key(client_id)
        try:
            # HSETNX is atomic, so only one of two racing requests wins.
            if self.client.hsetnx(key, mosque_id, vote_type):
                return None
            return self.client.hget(key, mosque_id)
        except redis_exceptions.RedisError as exc:
            raise MarkerStoreError(f"Could not store vote marker: {exc}") from exc

    def release(self, client_id: str, mosque_id: str) -> None:
        try:
            self.client.hdel(self._key(client_id), mosque_id)
        except redis_exceptions.RedisError as exc:
            raise MarkerStoreError(f"Could not remove vote marker: {exc}") from exc

    def all_for(self, client_id: str) -> dict[str, str]:
        try:
            return dict(self.client.hgetall(self._key(client_id)))
        except redis_exceptions.RedisError as exc:
            raise MarkerStoreError(f"Could not read vote markers: {exc}") from exc
