"""
Pydantic schemas for the tracker API.
"""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class MosqueOut(BaseModel):
    id: str
    name: str
    location: str
    has_biryani: bool
    menu_items: list[str]
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    map_link: Optional[str] = None
    true_count: int = 0
    fake_count: int = 0
    net_score: int = 0
    my_vote: Optional[Literal["true", "fake"]] = None


class MosqueListResponse(BaseModel):
    mosques: list[MosqueOut]
    total: int
    search: Optional[str] = None
    read_only: bool


class MosqueSubmission(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    location: str = Field(..., min_length=1, max_length=200)
    has_biryani: bool = False
    menu_items: Union[list[str], str] = Field(default_factory=list)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @field_validator("name", "location", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("menu_items", mode="after")
    @classmethod
    def _split_menu(cls, value):
        # The form sends a comma separated string.
        items = value.split(",") if isinstance(value, str) else value
        return [item.strip() for item in items if item and item.strip()]

    @model_validator(mode="after")
    def _coordinates_together(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self


class VoteRequest(BaseModel):
    vote_type: Literal["true", "fake"]


class VoteResponse(BaseModel):
    accepted: bool
    vote_type: Literal["true", "fake"]
    mosque: MosqueOut


class MyVotesResponse(BaseModel):
    votes: dict[str, str]


class MapMarker(BaseModel):
    id: str
    name: str
    location: str
    has_biryani: bool
    latitude: float
    longitude: float
    map_link: Optional[str] = None


class MapResponse(BaseModel):
    center: tuple[float, float]
    zoom: int
    markers: list[MapMarker]


class StatusResponse(BaseModel):
    mode: str
    read_only: bool
    loaded: bool
    mosque_count: int
    last_error: Optional[str] = None
    refreshed_at: Optional[float] = None


class RefreshResponse(BaseModel):
    refreshed: bool
    last_error: Optional[str] = None
