"""
Preferences API routes: favorites, visited places and category filters.
"""
from typing import List

from fastapi import APIRouter, Request

from api.schemas import (
    CategoryToggle,
    PlaceResponse,
    PreferencesResponse,
    ToggleResponse,
    place_to_response,
)
from api.routes.places import get_map_session
from services.map_session import MapSession

router = APIRouter()


def _preferences_response(session: MapSession) -> PreferencesResponse:
    return PreferencesResponse(
        favorites=sorted(session.favorite_ids),
        visited=sorted(session.visited_ids),
        selected_categories=sorted(session.selected_categories),
    )


@router.get("", response_model=PreferencesResponse)
async def get_preferences(request: Request):
    return _preferences_response(get_map_session(request))


@router.post("/favorites/{place_id}/toggle", response_model=ToggleResponse)
async def toggle_favorite(request: Request, place_id: int):
    selected = get_map_session(request).toggle_favorite(place_id)
    return ToggleResponse(key=str(place_id), selected=selected)


@router.get("/favorites/places", response_model=List[PlaceResponse])
async def favorite_places(request: Request):
    """Fetch full records for every favorite, including ones outside the viewport."""
    session = get_map_session(request)
    places = await session.refresh_favorite_places()
    return [place_to_response(p, session.favorite_ids, session.visited_ids) for p in places]


@router.post("/visited/{place_id}/toggle", response_model=ToggleResponse)
async def toggle_visited(request: Request, place_id: int):
    selected = get_map_session(request).toggle_visited(place_id)
    return ToggleResponse(key=str(place_id), selected=selected)


@router.post("/categories/toggle", response_model=ToggleResponse)
async def toggle_category(request: Request, data: CategoryToggle):
    selected = get_map_session(request).toggle_category(data.category)
    return ToggleResponse(key=data.category, selected=selected)


@router.delete("/categories", response_model=PreferencesResponse)
async def clear_categories(request: Request):
    session = get_map_session(request)
    session.clear_category_filters()
    return _preferences_response(session)
