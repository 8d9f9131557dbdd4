"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import Depends, Request, Response

from iftar_tracker.catalog import (
    CatalogClient,
    InMemoryCatalogClient,
    SqlCatalogClient,
    SupabaseCatalogClient,
)
from iftar_tracker.changes import (
    ChangeFeed,
    InMemoryChangeFeed,
    PollingChangeFeed,
    RedisChangeFeed,
)
from iftar_tracker.config import Settings, get_settings
from iftar_tracker.controller import TrackerController
from iftar_tracker.markers import InMemoryVoteMarkerStore, RedisVoteMarkerStore, VoteMarkerStore
from iftar_tracker.seed import INITIAL_MOSQUES

logger = logging.getLogger(__name__)

CLIENT_ID_HEADER = "X-Client-Id"

_catalog_client: Optional[CatalogClient] = None
_catalog_resolved = False
_marker_store: VoteMarkerStore | None = None
_change_feed: ChangeFeed | None = None
_controller: TrackerController | None = None


def _catalog_mode(settings: Settings) -> str:
    if settings.use_in_memory_backends:
        return "memory"
    if settings.database_url:
        return "sql"
    if settings.backend_configured:
        return "live"
    return "static"


def get_catalog_client() -> Optional[CatalogClient]:
    """
    Return the singleton catalog client, or None when no backend is
    configured and the service should run on seed data only.
    """
    global _catalog_client, _catalog_resolved
    if _catalog_resolved:
        return _catalog_client

    settings = get_settings()
    mode = _catalog_mode(settings)
    if mode == "memory":
        _catalog_client = InMemoryCatalogClient(start_id=len(INITIAL_MOSQUES) + 1)
    elif mode == "sql":
        _catalog_client = SqlCatalogClient(settings.database_url)
    elif mode == "live":
        _catalog_client = SupabaseCatalogClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.request_timeout_seconds,
            page_size=settings.page_size,
        )
    else:
        _catalog_client = None
    _catalog_resolved = True
    return _catalog_client


def get_marker_store() -> VoteMarkerStore:
    global _marker_store
    if _marker_store:
        return _marker_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _marker_store = RedisVoteMarkerStore(
            url=settings.redis_url, key_prefix=settings.redis_marker_key
        )
    else:
        _marker_store = InMemoryVoteMarkerStore()
    return _marker_store


def get_change_feed() -> ChangeFeed:
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    catalog = get_catalog_client()
    if settings.redis_url and not settings.use_in_memory_backends:
        _change_feed = RedisChangeFeed(
            url=settings.redis_url, channel=settings.redis_change_channel
        )
    elif catalog is not None and not isinstance(catalog, InMemoryCatalogClient):
        _change_feed = PollingChangeFeed(
            catalog, interval_seconds=settings.change_poll_interval_seconds
        )
    else:
        _change_feed = InMemoryChangeFeed()
    return _change_feed


def get_controller() -> TrackerController:
    """
    Return a singleton controller so state persists across requests.
    """
    global _controller
    if _controller:
        return _controller

    _controller = TrackerController(
        catalog=get_catalog_client(),
        markers=get_marker_store(),
        feed=get_change_feed(),
        mode=_catalog_mode(get_settings()),
    )
    return _controller


def reset_dependencies() -> None:
    """Drop every singleton (useful in tests)."""
    global _catalog_client, _catalog_resolved, _marker_store, _change_feed, _controller
    if _controller is not None:
        _controller.stop()
    _catalog_client = None
    _catalog_resolved = False
    _marker_store = None
    _change_feed = None
    _controller = None
    get_settings.cache_clear()


def get_client_id(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Identify the calling browser. An explicit header wins, then the cookie;
    a new id is issued as a cookie when neither is present.
    """
    client_id = request.headers.get(CLIENT_ID_HEADER) or request.cookies.get(
        settings.client_cookie_name
    )
    if client_id:
        return client_id
    client_id = uuid.uuid4().hex
    response.set_cookie(
        settings.client_cookie_name,
        client_id,
        max_age=60 * 60 * 24 * 365,
        httponly=True,
        samesite="lax",
    )
    return client_id
