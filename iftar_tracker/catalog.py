"""
Catalog access for the hosted backend, a direct SQL connection and an
in-memory test implementation.

The backend owns two append-only tables: ``mosques`` and ``votes``. Every
client here returns plain records with identifiers already normalised to
strings so callers never compare mixed numeric/string ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Protocol

import requests
from sqlalchemy import JSON, Boolean, Column, Float, Integer, String, create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

MOSQUES_TABLE = "mosques"
VOTES_TABLE = "votes"

GOOGLE_MAPS_SEARCH_URL = "https://www.google.com/maps/search/?api=1&query={lat},{lng}"


class CatalogError(Exception):
    """Raised when the backend cannot be read from or written to."""


class VoteType(str, Enum):
    TRUE = "true"
    FAKE = "fake"


def normalize_id(value: Any) -> str:
    """Coerce a backend or seed identifier to its canonical string form."""
    if value is None:
        raise ValueError("identifier is required")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    normalized = str(value).strip()
    if not normalized:
        raise ValueError("identifier is required")
    return normalized


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _menu_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip() for item in value if str(item).strip()]


@dataclass(frozen=True)
class MosqueRecord:
    id: str
    name: str
    location: str
    has_biryani: bool = False
    menu_items: list[str] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    google_map_link: Optional[str] = None
    true_count: int = 0
    fake_count: int = 0

    @property
    def net_score(self) -> int:
        return self.true_count - self.fake_count

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def map_link(self) -> Optional[str]:
        if self.google_map_link:
            return self.google_map_link
        if not self.has_coordinates:
            return None
        return GOOGLE_MAPS_SEARCH_URL.format(lat=self.latitude, lng=self.longitude)

    def with_counts(self, true_count: int, fake_count: int) -> "MosqueRecord":
        return replace(self, true_count=true_count, fake_count=fake_count)

    @classmethod
    def from_row(cls, row: dict) -> "MosqueRecord":
        return cls(
            id=normalize_id(row.get("id")),
            name=str(row.get("name") or "").strip(),
            location=str(row.get("location") or "").strip(),
            has_biryani=bool(row.get("has_biryani") or False),
            menu_items=_menu_list(row.get("menu_items")),
            latitude=_optional_float(row.get("latitude")),
            longitude=_optional_float(row.get("longitude")),
            google_map_link=row.get("google_map_link") or None,
            true_count=int(row.get("true_count") or 0),
            fake_count=int(row.get("fake_count") or 0),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "has_biryani": self.has_biryani,
            "menu_items": list(self.menu_items),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "google_map_link": self.google_map_link,
            "true_count": self.true_count,
            "fake_count": self.fake_count,
        }


@dataclass(frozen=True)
class NewMosque:
    """A listing submitted by a user, before the backend assigns an id."""

    name: str
    location: str
    has_biryani: bool = False
    menu_items: list[str] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def as_row(self) -> dict:
        return {
            "name": self.name,
            "location": self.location,
            "has_biryani": self.has_biryani,
            "menu_items": list(self.menu_items),
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


@dataclass(frozen=True)
class VoteRecord:
    mosque_id: str
    vote_type: str

    @classmethod
    def from_row(cls, row: dict) -> "VoteRecord":
        return cls(
            mosque_id=normalize_id(row.get("mosque_id")),
            vote_type=str(row.get("vote_type") or ""),
        )

    def as_row(self) -> dict:
        return {"mosque_id": self.mosque_id, "vote_type": self.vote_type}


class CatalogClient(Protocol):
    """Interface for the backend tables."""

    def list_mosques(self) -> list[MosqueRecord]:
        ...

    def list_votes(self) -> list[VoteRecord]:
        ...

    def insert_mosque(self, mosque: NewMosque) -> MosqueRecord:
        ...

    def insert_vote(self, vote: VoteRecord) -> None:
        ...

    def row_counts(self) -> tuple[int, int]:
        """Return ``(mosque_rows, vote_rows)``; used to detect changes."""
        ...


def _rows_to_mosques(rows: list[dict]) -> list[MosqueRecord]:
    mosques: list[MosqueRecord] = []
    for row in rows:
        try:
            mosques.append(MosqueRecord.from_row(row))
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping malformed mosque row %s: %s", row, exc)
    return mosques


def _rows_to_votes(rows: list[dict]) -> list[VoteRecord]:
    votes: list[VoteRecord] = []
    for row in rows:
        try:
            votes.append(VoteRecord.from_row(row))
        except ValueError:
            logger.warning("Skipping vote row without mosque_id: %s", row)
    return votes


class InMemoryCatalogClient:
    """Simple in-memory backend for development and tests."""

    def __init__(self, start_id: int = 1):
        self.mosques: list[MosqueRecord] = []
        self.votes: list[VoteRecord] = []
        self._start_id = start_id
        self._next_id = start_id

    def list_mosques(self) -> list[MosqueRecord]:
        return list(self.mosques)

    def list_votes(self) -> list[VoteRecord]:
        return list(self.votes)

    def insert_mosque(self, mosque: NewMosque) -> MosqueRecord:
        row = mosque.as_row()
        row["id"] = self._next_id
        self._next_id += 1
        record = MosqueRecord.from_row(row)
        self.mosques.append(record)
        return record

    def insert_vote(self, vote: VoteRecord) -> None:
        self.votes.append(vote)

    def row_counts(self) -> tuple[int, int]:
        return len(self.mosques), len(self.votes)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.mosques.clear()
        self.votes.clear()
        self._next_id = self._start_id


class SupabaseCatalogClient:
    """
    Hosted backend reached through its PostgREST interface.

    Selects are paged with ``limit``/``offset`` because the service caps
    each response.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        page_size: int = 1000,
        session: Optional[requests.Session] = None,
    ):
        if not url or not api_key:
            raise ValueError("url and api_key are required for SupabaseCatalogClient")
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def _request(self, method: str, table: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(
                method, f"{self.base_url}/{table}", timeout=self.timeout, **kwargs
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise CatalogError(f"{method} {table} failed: {exc}") from exc
        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise CatalogError(f"Invalid JSON from backend: {exc}") from exc

    def _select(self, table: str, columns: str, order: Optional[str] = None) -> list[dict]:
        rows: list[dict] = []
        offset = 0
        while True:
            params = {"select": columns, "limit": self.page_size, "offset": offset}
            if order:
                params["order"] = order
            batch = self._json(self._request("GET", table, params=params))
            if not isinstance(batch, list):
                raise CatalogError(f"Unexpected payload for {table}: {batch!r}")
            rows.extend(batch)
            if len(batch) < self.page_size:
                return rows
            offset += self.page_size

    def list_mosques(self) -> list[MosqueRecord]:
        return _rows_to_mosques(self._select(MOSQUES_TABLE, "*", order="id.asc"))

    def list_votes(self) -> list[VoteRecord]:
        return _rows_to_votes(
            self._select(VOTES_TABLE, "id,mosque_id,vote_type", order="id.asc")
        )

    def insert_mosque(self, mosque: NewMosque) -> MosqueRecord:
        response = self._request(
            "POST",
            MOSQUES_TABLE,
            json=[mosque.as_row()],
            headers={"Prefer": "return=representation"},
        )
        rows = self._json(response)
        if not rows:
            raise CatalogError("Backend did not return the inserted mosque")
        try:
            return MosqueRecord.from_row(rows[0])
        except (TypeError, ValueError) as exc:
            raise CatalogError(f"Malformed mosque row from backend: {exc}") from exc

    def insert_vote(self, vote: VoteRecord) -> None:
        self._request(
            "POST",
            VOTES_TABLE,
            json=[vote.as_row()],
            headers={"Prefer": "return=minimal"},
        )

    def _count(self, table: str) -> int:
        response = self._request(
            "HEAD",
            table,
            params={"select": "*"},
            headers={"Prefer": "count=exact"},
        )
        # Content-Range looks like "0-24/3573" or "*/0".
        content_range = response.headers.get("Content-Range", "")
        _, _, total = content_range.rpartition("/")
        if not total.isdigit():
            raise CatalogError(f"Missing row count for {table}: {content_range!r}")
        return int(total)

    def row_counts(self) -> tuple[int, int]:
        return self._count(MOSQUES_TABLE), self._count(VOTES_TABLE)


class SqlCatalogClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (the
    backend's Postgres, or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlCatalogClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_mosque_record(self, row: "MosqueRow") -> MosqueRecord:
        return MosqueRecord.from_row(
            {
                "id": row.id,
                "name": row.name,
                "location": row.location,
                "has_biryani": row.has_biryani,
                "menu_items": row.menu_items,
                "latitude": row.latitude,
                "longitude": row.longitude,
                "google_map_link": row.google_map_link,
            }
        )

    def list_mosques(self) -> list[MosqueRecord]:
        try:
            with self.Session() as session:
                rows = session.execute(select(MosqueRow).order_by(MosqueRow.id.asc())).scalars()
                return [self._to_mosque_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise CatalogError(f"select mosques failed: {exc}") from exc

    def list_votes(self) -> list[VoteRecord]:
        try:
            with self.Session() as session:
                rows = session.execute(
                    select(VoteRow.mosque_id, VoteRow.vote_type).order_by(VoteRow.id.asc())
                ).all()
        except SQLAlchemyError as exc:
            raise CatalogError(f"select votes failed: {exc}") from exc
        return _rows_to_votes(
            [{"mosque_id": mosque_id, "vote_type": vote_type} for mosque_id, vote_type in rows]
        )

    def insert_mosque(self, mosque: NewMosque) -> MosqueRecord:
        try:
            with self.Session() as session:
                row = MosqueRow(**mosque.as_row())
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_mosque_record(row)
        except SQLAlchemyError as exc:
            raise CatalogError(f"insert mosque failed: {exc}") from exc

    def insert_vote(self, vote: VoteRecord) -> None:
        try:
            with self.Session() as session:
                session.add(VoteRow(mosque_id=vote.mosque_id, vote_type=vote.vote_type))
                session.commit()
        except SQLAlchemyError as exc:
            raise CatalogError(f"insert vote failed: {exc}") from exc

    def row_counts(self) -> tuple[int, int]:
        try:
            with self.Session() as session:
                mosques = session.execute(select(func.count()).select_from(MosqueRow)).scalar_one()
                votes = session.execute(select(func.count()).select_from(VoteRow)).scalar_one()
                return int(mosques), int(votes)
        except SQLAlchemyError as exc:
            raise CatalogError(f"count rows failed: {exc}") from exc


Base = declarative_base()


class MosqueRow(Base):
    __tablename__ = MOSQUES_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    location = Column(String, nullable=False)
    has_biryani = Column(Boolean, nullable=False, default=False)
    menu_items = Column(JSON, nullable=False, default=list)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    google_map_link = Column(String, nullable=True)


class VoteRow(Base):
    __tablename__ = VOTES_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    mosque_id = Column(String, nullable=False, index=True)
    vote_type = Column(String, nullable=False)
