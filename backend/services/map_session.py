"""
Map session: the state a map screen works against.

Wires the loader, the preference store, the viewport debouncer and the
clustering pass together. Filtering by category and search text happens here,
on top of whatever place set the loader last committed.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from domain.models import Coordinate, MapItem, Place, Region
from services.clustering import cluster_places
from services.debounce import DEFAULT_QUIET_PERIOD, ViewportDebouncer
from services.places_client import StoreError
from services.places_loader import PlacesLoader
from services.preferences import PreferencesStore
from services.region_policy import haversine_km

logger = logging.getLogger(__name__)

SEARCH_DESCRIPTION_PREFIX = 200


class MapSession:
    def __init__(
        self,
        loader: PlacesLoader,
        preferences: PreferencesStore,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
    ):
        self.loader = loader
        self.preferences = preferences
        self.debouncer = ViewportDebouncer(self._on_camera_settled, quiet_period)
        self.current_region: Optional[Region] = None
        self.clustered_items: List[MapItem] = []
        self.favorite_places_full: List[Place] = []

        self.selected_categories: Set[str] = preferences.get_selected_categories()
        self.favorite_ids: Set[int] = preferences.get_favorites()
        self.visited_ids: Set[int] = preferences.get_visited()

    # Derived place lists

    @property
    def places(self) -> List[Place]:
        return list(self.loader.state.places)

    @property
    def search_text(self) -> str:
        return self.loader.search_text

    @search_text.setter
    def search_text(self, value: str) -> None:
        self.loader.search_text = value

    @property
    def valid_places(self) -> List[Place]:
        """Places that can be drawn: coordinates present and not hidden."""
        return [
            p for p in self.places
            if p.coordinate is not None and not p.is_hidden_from_maps
        ]

    @property
    def favorite_places(self) -> List[Place]:
        return [p for p in self.valid_places if p.id in self.favorite_ids]

    @property
    def available_categories(self) -> List[str]:
        return sorted({p.category_name for p in self.places if p.category_name})

    @property
    def filtered_places(self) -> List[Place]:
        filtered = self.valid_places

        if self.selected_categories:
            filtered = [p for p in filtered if p.category_name in self.selected_categories]

        if self.search_text:
            needle = self.search_text.lower()
            filtered = [p for p in filtered if _matches_search(p, needle)]

        return filtered

    # Favorites / visited / categories

    def toggle_favorite(self, place_id: int) -> bool:
        """Flip favorite status; returns the new status."""
        if place_id in self.favorite_ids:
            self.favorite_ids.discard(place_id)
            self.preferences.remove_favorite(place_id)
            self.favorite_places_full = [p for p in self.favorite_places_full if p.id != place_id]
            return False

        self.favorite_ids.add(place_id)
        self.preferences.add_favorite(place_id)
        place = next((p for p in self.places if p.id == place_id), None)
        if place is not None:
            self.favorite_places_full.append(place)
        return True

    def is_favorite(self, place_id: int) -> bool:
        return place_id in self.favorite_ids

    def toggle_visited(self, place_id: int) -> bool:
        if place_id in self.visited_ids:
            self.visited_ids.discard(place_id)
            self.preferences.remove_visited(place_id)
            return False
        self.visited_ids.add(place_id)
        self.preferences.add_visited(place_id)
        return True

    def is_visited(self, place_id: int) -> bool:
        return place_id in self.visited_ids

    def toggle_category(self, category: str) -> bool:
        if category in self.selected_categories:
            self.selected_categories.discard(category)
            selected = False
        else:
            self.selected_categories.add(category)
            selected = True
        self.preferences.save_selected_categories(self.selected_categories)
        self._recluster()
        return selected

    def clear_category_filters(self) -> None:
        self.selected_categories.clear()
        self.preferences.save_selected_categories(self.selected_categories)
        self._recluster()

    async def refresh_favorite_places(self) -> List[Place]:
        """Fetch full records for every favorite id, wherever they are."""
        if not self.favorite_ids:
            self.favorite_places_full = []
            return self.favorite_places_full
        try:
            self.favorite_places_full = await self.loader.client.query_by_ids(self.favorite_ids)
        except StoreError as exc:
            logger.warning("Error fetching favorites: %s", exc)
        else:
            logger.info("Fetched %d favorite places", len(self.favorite_places_full))
        return self.favorite_places_full

    # Camera / clustering

    def on_camera_change(self, region: Region) -> asyncio.Task:
        """Recluster right away with current data, then fetch once the camera settles."""
        self.current_region = region
        self.update_clustered_items(region)
        return self.debouncer.schedule(region)

    async def _on_camera_settled(self, region: Region) -> None:
        task = self.loader.load_region(region)
        if task is not None:
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Region load for %s failed", region, exc_info=task.exception()
                )
        if region != self.current_region:
            logger.debug("Camera moved on from %s; not reclustering", region)
            return
        self.update_clustered_items(region)

    def update_clustered_items(self, region: Region) -> List[MapItem]:
        self.clustered_items = cluster_places(self.filtered_places, region)
        return self.clustered_items

    def _recluster(self) -> None:
        if self.current_region is not None:
            self.update_clustered_items(self.current_region)

    def distance_km(self, origin: Coordinate, place: Place) -> Optional[float]:
        if place.coordinate is None:
            return None
        return haversine_km(origin, place.coordinate)

    def close(self) -> None:
        self.debouncer.close()
        self.loader.cancel()


def _matches_search(place: Place, needle: str) -> bool:
    for value in (place.title, place.subtitle, place.city, place.country):
        if value and needle in value.lower():
            return True
    if place.description and needle in place.description[:SEARCH_DESCRIPTION_PREFIX].lower():
        return True
    return False
