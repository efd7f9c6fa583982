"""
Viewport-driven place loading.

The loader owns the visible place set and publishes every state transition to
its observers. Region loads run as asyncio tasks; at most one of them is
current. Starting a new one invalidates the previous session before any
awaiting happens, and a superseded session never writes state again, even if
its network call completes later.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Callable, List, Optional

from domain.models import Coordinate, PlaceQuery, PlacesState, Region
from services.places_client import PlacesClient, StoreError
from services.region_policy import (
    DEFAULT_MARGIN,
    bounds_around,
    expand_region,
    region_for_places,
    should_reload,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 300
DEFAULT_MIN_LOADING_SECONDS = 0.2
DEFAULT_LOAD_ALL_LIMIT = 1000
DEFAULT_NEARBY_RADIUS_KM = 50.0
GLOBAL_SEARCH_LIMIT = 50

StateListener = Callable[[PlacesState], None]


class _Session:
    """Handle for one region load; stale once the loader's generation moves on."""

    def __init__(self, loader: "PlacesLoader", generation: int):
        self._loader = loader
        self.generation = generation

    @property
    def is_current(self) -> bool:
        return self._loader._generation == self.generation


class PlacesLoader:
    def __init__(
        self,
        client: PlacesClient,
        *,
        margin: float = DEFAULT_MARGIN,
        max_results: int = DEFAULT_MAX_RESULTS,
        min_loading_seconds: float = DEFAULT_MIN_LOADING_SECONDS,
    ):
        self.client = client
        self.margin = margin
        self.max_results = max_results
        self.min_loading_seconds = min_loading_seconds
        self.search_text = ""
        self._state = PlacesState()
        self._listeners: List[StateListener] = []
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    # -- state publication -------------------------------------------------

    @property
    def state(self) -> PlacesState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register an observer; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes) -> None:
        self._state = dataclasses.replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Places state listener failed")

    # -- viewport loads ----------------------------------------------------

    @property
    def current_task(self) -> Optional[asyncio.Task]:
        return self._task

    def cancel(self) -> None:
        """Invalidate the in-flight region load, if any."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("Cancelled in-flight region load")
        self._task = None

    def load_region(self, region: Region) -> Optional[asyncio.Task]:
        """
        Start loading places for `region`; must be called from a running loop.

        Returns the new session task, or None when the last loaded region
        still covers `region` closely enough.
        """
        had_in_flight = self._task is not None and not self._task.done()
        self.cancel()

        if not should_reload(self._state.loaded_region, region):
            logger.debug("Region %s still covered by the loaded data; skipping fetch", region)
            if had_in_flight and self._state.is_loading:
                # the cancelled session can no longer clear its own flag
                self._update(is_loading=False)
            return None

        session = _Session(self, self._generation)
        self._task = asyncio.get_running_loop().create_task(
            self._run_region_load(session, region)
        )
        return self._task

    async def _run_region_load(self, session: _Session, region: Region) -> None:
        try:
            await self._load_region_session(session, region)
        except asyncio.CancelledError:
            logger.debug("Region load %d cancelled", session.generation)
        finally:
            if session.is_current and self._task is asyncio.current_task():
                self._task = None

    async def _load_region_session(self, session: _Session, region: Region) -> None:
        self._update(is_loading=True, error_message=None)

        bounds = expand_region(region, self.margin)
        place_query = PlaceQuery(
            bounds=bounds,
            text_search=self.search_text or None,
            limit=self.max_results,
        )

        try:
            places = await self.client.query(place_query)
        except StoreError as exc:
            if not session.is_current:
                return
            logger.warning("Failed to load places for region %s: %s", region, exc)
            self._update(error_message=f"Loading error: {exc}")
        else:
            if not session.is_current:
                return
            self._update(places=tuple(places), loaded_region=region)
            logger.info(
                "Loaded %d places in visible region lat %.2f-%.2f, lng %.2f-%.2f",
                len(places),
                bounds.min_lat,
                bounds.max_lat,
                bounds.min_lng,
                bounds.max_lng,
            )

        # minimum loading duration
        await asyncio.sleep(self.min_loading_seconds)
        if session.is_current:
            self._update(is_loading=False)

    # -- unconditional loads -------------------------------------------------

    async def _load_unconditionally(self, place_query: PlaceQuery, error_prefix: str) -> None:
        self._update(is_loading=True, error_message=None)
        try:
            places = await self.client.query(place_query)
        except StoreError as exc:
            logger.warning("%s: %s", error_prefix, exc)
            self._update(is_loading=False, error_message=f"{error_prefix}: {exc}")
            return
        self._update(places=tuple(places), is_loading=False)
        logger.info("Loaded %d places", len(places))

    async def load_all(self, limit: int = DEFAULT_LOAD_ALL_LIMIT) -> None:
        """Load up to `limit` places with no spatial filter."""
        await self._load_unconditionally(PlaceQuery(limit=limit), "Loading error")

    async def load_nearby(
        self, center: Coordinate, radius_km: float = DEFAULT_NEARBY_RADIUS_KM
    ) -> None:
        """Load every place within roughly `radius_km` of `center`."""
        await self._load_unconditionally(
            PlaceQuery(bounds=bounds_around(center, radius_km)),
            "Nearby search error",
        )

    async def search(self, text: Optional[str] = None) -> None:
        """
        Global text search, ignoring the viewport.

        Replaces the place set and asks the presentation layer to recenter on
        the results.
        """
        term = self.search_text if text is None else text
        if not term:
            return

        self._update(is_loading=True, error_message=None)
        try:
            places = await self.client.query(
                PlaceQuery(text_search=term.lower(), limit=GLOBAL_SEARCH_LIMIT)
            )
        except StoreError as exc:
            logger.warning("Search for %r failed: %s", term, exc)
            self._update(is_loading=False, error_message=f"Search error: {exc}")
            return

        changes = {"places": tuple(places), "is_loading": False}
        recenter = region_for_places(places)
        if recenter is not None and recenter != self._state.region_to_recenter:
            changes["region_to_recenter"] = recenter
        self._update(**changes)
        logger.info("Found %d places for query %r", len(places), term)
