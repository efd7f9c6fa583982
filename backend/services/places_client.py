"""
Places store clients.

Two interchangeable backends answer the same filtered reads:
- RestPlacesClient talks to a PostgREST endpoint (e.g. a Supabase project).
- DatabasePlacesClient queries the local SQLAlchemy `places` table.

Both are async at the surface; the blocking I/O runs in a worker thread so the
loader can keep cancelling superseded sessions while a request is outstanding.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Tuple

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from domain.models import Place, PlaceQuery
from repositories.places import PlacesRepository

PLACES_TABLE = "places"
TEXT_SEARCH_FIELDS = ("title", "description", "city")
_POSTGREST_RESERVED = set(',.:()"\\')


class StoreError(Exception):
    """A network or query failure reported by the places store."""


def decode_places(rows: Any) -> List[Place]:
    """Decode a batch of rows. Any malformed row fails the whole batch."""
    if not isinstance(rows, list):
        raise StoreError(f"Unexpected places payload: {type(rows).__name__}")
    try:
        return [Place.from_dict(row) for row in rows]
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Malformed place record: {exc}") from exc


class PlacesClient(ABC):
    """Interface shared by the store backends."""

    @abstractmethod
    async def query(self, place_query: PlaceQuery) -> List[Place]:
        ...

    async def query_by_ids(self, ids: Iterable[int]) -> List[Place]:
        id_set = frozenset(ids)
        if not id_set:
            return []
        return await self.query(PlaceQuery(ids=id_set))


def _quote_value(value: str) -> str:
    """Quote a PostgREST filter value when it holds reserved characters."""
    if not any(ch in _POSTGREST_RESERVED for ch in value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_postgrest_params(place_query: PlaceQuery) -> List[Tuple[str, str]]:
    """Translate a PlaceQuery into PostgREST query parameters."""
    params: List[Tuple[str, str]] = [("select", "*")]
    bounds = place_query.bounds
    if bounds is not None:
        params.extend(
            [
                ("coordinates_lat", f"gte.{bounds.min_lat}"),
                ("coordinates_lat", f"lte.{bounds.max_lat}"),
                ("coordinates_lng", f"gte.{bounds.min_lng}"),
                ("coordinates_lng", f"lte.{bounds.max_lng}"),
            ]
        )
    if place_query.text_search:
        needle = _quote_value(f"*{place_query.text_search.lower()}*")
        clauses = ",".join(f"{name}.ilike.{needle}" for name in TEXT_SEARCH_FIELDS)
        params.append(("or", f"({clauses})"))
    if place_query.ids is not None:
        ids = ",".join(str(i) for i in sorted(place_query.ids))
        params.append(("id", f"in.({ids})"))
    if place_query.limit is not None:
        params.append(("limit", str(place_query.limit)))
    return params


class RestPlacesClient(PlacesClient):
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{PLACES_TABLE}"

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _fetch(self, place_query: PlaceQuery) -> List[Place]:
        params = build_postgrest_params(place_query)
        try:
            resp = self.session.get(
                self.endpoint,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            self.logger.warning("Places store request failed: %s", exc)
            raise StoreError(str(exc)) from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            self.logger.warning("Places store returned invalid JSON: %s", exc)
            raise StoreError(f"Invalid JSON from places store: {exc}") from exc

        places = decode_places(payload)
        self.logger.debug(
            "RestPlacesClient.query: bounds=%s text=%r ids=%s limit=%s got %d places",
            place_query.bounds,
            place_query.text_search,
            len(place_query.ids) if place_query.ids is not None else None,
            place_query.limit,
            len(places),
        )
        return places

    async def query(self, place_query: PlaceQuery) -> List[Place]:
        return await asyncio.to_thread(self._fetch, place_query)


class DatabasePlacesClient(PlacesClient):
    def __init__(
        self,
        session_factory: sessionmaker,
        repository: Optional[PlacesRepository] = None,
    ):
        self.session_factory = session_factory
        self.repository = repository or PlacesRepository()
        self.logger = logging.getLogger(__name__)

    def _fetch(self, place_query: PlaceQuery) -> List[Place]:
        try:
            with self.session_factory() as session:
                places = self.repository.query(session, place_query)
        except SQLAlchemyError as exc:
            self.logger.warning("Places database query failed: %s", exc)
            raise StoreError(str(exc)) from exc
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Malformed place record: {exc}") from exc
        self.logger.debug(
            "DatabasePlacesClient.query: bounds=%s text=%r limit=%s got %d places",
            place_query.bounds,
            place_query.text_search,
            place_query.limit,
            len(places),
        )
        return places

    async def query(self, place_query: PlaceQuery) -> List[Place]:
        return await asyncio.to_thread(self._fetch, place_query)


def create_places_client(config) -> PlacesClient:
    """Build the store client selected by `config.PLACES_BACKEND`."""
    backend = config.PLACES_BACKEND
    if backend == "rest":
        if not config.PLACES_REST_URL:
            raise ValueError("PLACES_REST_URL must be set when PLACES_BACKEND=rest")
        return RestPlacesClient(
            base_url=config.PLACES_REST_URL,
            api_key=config.PLACES_REST_KEY,
            timeout=config.PLACES_REST_TIMEOUT,
        )
    if backend == "database":
        from db import SessionLocal

        return DatabasePlacesClient(SessionLocal)
    raise ValueError(f"Unknown PLACES_BACKEND: {backend}")
