"""
HTTP routes for the tracker API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from iftar_tracker.catalog import CatalogError, MosqueRecord, NewMosque
from iftar_tracker.controller import (
    CatalogNotConfiguredError,
    TrackerController,
    UnknownMosqueError,
)
from iftar_tracker.dependencies import get_client_id, get_controller
from iftar_tracker.markers import MarkerStoreError
from iftar_tracker.schemas import (
    MapMarker,
    MapResponse,
    MosqueListResponse,
    MosqueOut,
    MosqueSubmission,
    MyVotesResponse,
    RefreshResponse,
    StatusResponse,
    VoteRequest,
    VoteResponse,
)
from iftar_tracker.seed import MAP_CENTER, MAP_ZOOM

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_out(mosque: MosqueRecord, my_vote: str | None = None) -> MosqueOut:
    return MosqueOut(
        id=mosque.id,
        name=mosque.name,
        location=mosque.location,
        has_biryani=mosque.has_biryani,
        menu_items=list(mosque.menu_items),
        latitude=mosque.latitude,
        longitude=mosque.longitude,
        map_link=mosque.map_link,
        true_count=mosque.true_count,
        fake_count=mosque.fake_count,
        net_score=mosque.net_score,
        my_vote=my_vote,
    )


@router.get("/status", response_model=StatusResponse)
def status(controller: TrackerController = Depends(get_controller)):
    state = controller.state
    return StatusResponse(
        mode=controller.mode,
        read_only=controller.read_only,
        loaded=state.loaded,
        mosque_count=len(state.mosques),
        last_error=state.last_error,
        refreshed_at=state.refreshed_at,
    )


@router.get("/mosques", response_model=MosqueListResponse)
def list_mosques(
    search: str | None = Query(None, max_length=200),
    controller: TrackerController = Depends(get_controller),
    client_id: str = Depends(get_client_id),
):
    mosques = controller.list_mosques(search)
    my_votes = controller.markers_for(client_id)
    return MosqueListResponse(
        mosques=[_to_out(m, my_votes.get(m.id)) for m in mosques],
        total=len(mosques),
        search=search,
        read_only=controller.read_only,
    )


@router.get("/mosques/{mosque_id}", response_model=MosqueOut)
def get_mosque(
    mosque_id: str,
    controller: TrackerController = Depends(get_controller),
    client_id: str = Depends(get_client_id),
):
    try:
        mosque = controller.get_mosque(mosque_id)
    except UnknownMosqueError:
        raise HTTPException(status_code=404, detail="Mosque not found")
    return _to_out(mosque, controller.markers_for(client_id).get(mosque.id))


@router.post("/mosques", response_model=MosqueOut, status_code=201)
def add_mosque(
    payload: MosqueSubmission,
    controller: TrackerController = Depends(get_controller),
):
    submission = NewMosque(
        name=payload.name,
        location=payload.location,
        has_biryani=payload.has_biryani,
        menu_items=list(payload.menu_items),
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    try:
        created = controller.add_mosque(submission)
    except CatalogNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except CatalogError as exc:
        logger.error("Error adding mosque: %s", exc)
        raise HTTPException(status_code=502, detail=f"Could not add mosque: {exc}")
    return _to_out(created)


@router.post("/mosques/{mosque_id}/votes", response_model=VoteResponse)
def cast_vote(
    mosque_id: str,
    payload: VoteRequest,
    controller: TrackerController = Depends(get_controller),
    client_id: str = Depends(get_client_id),
):
    try:
        outcome = controller.cast_vote(client_id, mosque_id, payload.vote_type)
    except UnknownMosqueError:
        raise HTTPException(status_code=404, detail="Mosque not found")
    except CatalogNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except CatalogError as exc:
        logger.error("Error voting on mosque %s: %s", mosque_id, exc)
        raise HTTPException(status_code=502, detail=f"Could not submit vote: {exc}")
    except MarkerStoreError as exc:
        logger.error("Vote marker store failed for mosque %s: %s", mosque_id, exc)
        raise HTTPException(status_code=502, detail="Could not record vote, try again")
    return VoteResponse(
        accepted=outcome.accepted,
        vote_type=outcome.vote_type,
        mosque=_to_out(outcome.mosque, outcome.vote_type),
    )


@router.get("/votes/mine", response_model=MyVotesResponse)
def my_votes(
    controller: TrackerController = Depends(get_controller),
    client_id: str = Depends(get_client_id),
):
    return MyVotesResponse(votes=controller.markers_for(client_id))


@router.get("/map", response_model=MapResponse)
def map_view(
    search: str | None = Query(None, max_length=200),
    controller: TrackerController = Depends(get_controller),
):
    markers = [
        MapMarker(
            id=m.id,
            name=m.name,
            location=m.location,
            has_biryani=m.has_biryani,
            latitude=m.latitude,
            longitude=m.longitude,
            map_link=m.map_link,
        )
        for m in controller.map_markers(search)
    ]
    return MapResponse(center=MAP_CENTER, zoom=MAP_ZOOM, markers=markers)


@router.post("/refresh", response_model=RefreshResponse)
def refresh(controller: TrackerController = Depends(get_controller)):
    refreshed = controller.refresh()
    return RefreshResponse(refreshed=refreshed, last_error=controller.state.last_error)
