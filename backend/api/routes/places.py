"""
Places API routes.
"""
import asyncio
import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query, Request

from api.schemas import (
    MapItemsResponse,
    PlacesStateResponse,
    RegionModel,
    map_item_to_response,
    place_to_response,
    state_to_response,
)
from domain.models import Coordinate, Region
from services.map_session import MapSession

router = APIRouter()
logger = logging.getLogger(__name__)


def get_map_session(request: Request) -> MapSession:
    return request.app.state.map_session


def _state_response(session: MapSession, filtered: bool = True) -> PlacesStateResponse:
    places = session.filtered_places if filtered else session.places
    return state_to_response(
        session.loader.state, places, session.favorite_ids, session.visited_ids
    )


def _items_response(session: MapSession, region: Region) -> MapItemsResponse:
    return MapItemsResponse(
        region=RegionModel.from_region(region),
        items=[map_item_to_response(item) for item in session.clustered_items],
    )


@router.get("", response_model=PlacesStateResponse)
async def get_places(request: Request, filtered: bool = True):
    """Current place set, narrowed by the active category/search filters unless filtered=false."""
    return _state_response(get_map_session(request), filtered)


@router.post("/camera", response_model=MapItemsResponse)
async def camera_changed(request: Request, data: RegionModel):
    """Camera moved: recluster now, fetch once the camera has been still for the quiet period."""
    session = get_map_session(request)
    region = data.to_region()
    session.on_camera_change(region)
    return _items_response(session, region)


@router.post("/load", response_model=PlacesStateResponse)
async def load_region(request: Request, data: RegionModel):
    """Load the region immediately (no debounce) and wait for the session to finish."""
    session = get_map_session(request)
    region = data.to_region()
    task = session.loader.load_region(region)
    if task is None:
        logger.debug("Region %s already loaded", region)
    else:
        await asyncio.wait({task})
    session.current_region = region
    session.update_clustered_items(region)
    return _state_response(session)


@router.get("/clusters", response_model=MapItemsResponse)
async def get_clusters(
    request: Request,
    latitude: float = Query(..., ge=-90.0, le=90.0),
    longitude: float = Query(..., ge=-180.0, le=180.0),
    latitude_delta: float = Query(..., gt=0.0),
    longitude_delta: float = Query(..., gt=0.0),
):
    session = get_map_session(request)
    region = Region.from_values(latitude, longitude, latitude_delta, longitude_delta)
    session.update_clustered_items(region)
    return _items_response(session, region)


@router.post("/load_all", response_model=PlacesStateResponse)
async def load_all(request: Request, limit: int = Query(1000, gt=0)):
    session = get_map_session(request)
    await session.loader.load_all(limit=limit)
    return _state_response(session)


@router.get("/nearby", response_model=PlacesStateResponse)
async def load_nearby(
    request: Request,
    latitude: float = Query(..., ge=-90.0, le=90.0),
    longitude: float = Query(..., ge=-180.0, le=180.0),
    radius_km: float = Query(50.0, gt=0.0),
):
    session = get_map_session(request)
    await session.loader.load_nearby(Coordinate(latitude, longitude), radius_km=radius_km)
    return _state_response(session)


@router.get("/search", response_model=PlacesStateResponse)
async def search(request: Request, q: str = ""):
    """Set the search text; a non-empty term also runs a global search."""
    session = get_map_session(request)
    session.search_text = q.strip()
    if session.search_text:
        await session.loader.search()
    return _state_response(session)


@router.get("/categories", response_model=List[str])
async def list_categories(request: Request):
    return get_map_session(request).available_categories


@router.get("/{place_id}/distance")
async def place_distance(
    request: Request,
    place_id: int,
    latitude: float = Query(..., ge=-90.0, le=90.0),
    longitude: float = Query(..., ge=-180.0, le=180.0),
):
    """Distance in km from the given point to a loaded place."""
    session = get_map_session(request)
    place = next((p for p in session.places if p.id == place_id), None)
    if place is None:
        raise HTTPException(status_code=404, detail="Place not found")
    distance = session.distance_km(Coordinate(latitude, longitude), place)
    if distance is None:
        raise HTTPException(status_code=400, detail="Place has no coordinates")
    return {"place": place_to_response(place).model_dump(), "distance_km": distance}
