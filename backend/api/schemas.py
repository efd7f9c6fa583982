"""
Pydantic request/response models shared by the API routers.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.models import ClusterItem, MapItem, Place, PlacesState, Region


class RegionModel(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    latitude_delta: float = Field(..., gt=0.0, le=180.0)
    longitude_delta: float = Field(..., gt=0.0, le=360.0)

    def to_region(self) -> Region:
        return Region.from_values(
            self.latitude, self.longitude, self.latitude_delta, self.longitude_delta
        )

    @classmethod
    def from_region(cls, region: Region) -> "RegionModel":
        return cls(
            latitude=region.center.latitude,
            longitude=region.center.longitude,
            latitude_delta=region.span.latitude_delta,
            longitude_delta=region.span.longitude_delta,
        )


class PlaceResponse(BaseModel):
    id: int
    title: Optional[str] = None
    display_name: str
    subtitle: Optional[str] = None
    full_location: Optional[str] = None
    category: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None
    directions: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    image_cover: Optional[str] = None
    is_favorite: bool = False
    is_visited: bool = False


class MapItemResponse(BaseModel):
    id: str
    kind: str  # "place" | "cluster"
    latitude: float
    longitude: float
    count: int
    place_ids: List[int]


class MapItemsResponse(BaseModel):
    region: RegionModel
    items: List[MapItemResponse]


class PlacesStateResponse(BaseModel):
    places: List[PlaceResponse]
    total_loaded: int
    is_loading: bool
    error_message: Optional[str] = None
    loaded_region: Optional[RegionModel] = None
    region_to_recenter: Optional[RegionModel] = None


class CategoryToggle(BaseModel):
    category: str = Field(..., min_length=1)


class PreferencesResponse(BaseModel):
    favorites: List[int]
    visited: List[int]
    selected_categories: List[str]


class ToggleResponse(BaseModel):
    key: str
    selected: bool


def place_to_response(place: Place, favorites=(), visited=()) -> PlaceResponse:
    coord = place.coordinate
    return PlaceResponse(
        id=place.id,
        title=place.title,
        display_name=place.display_name,
        subtitle=place.subtitle,
        full_location=place.full_location,
        category=place.category_name,
        latitude=coord.latitude if coord else None,
        longitude=coord.longitude if coord else None,
        description=place.description,
        directions=place.directions,
        url=place.url,
        thumbnail_url=place.thumbnail_url,
        image_cover=place.image_cover,
        is_favorite=place.id in favorites,
        is_visited=place.id in visited,
    )


def map_item_to_response(item: MapItem) -> MapItemResponse:
    if isinstance(item, ClusterItem):
        members = [p.id for p in item.places]
        kind = "cluster"
    else:
        members = [item.place.id]
        kind = "place"
    return MapItemResponse(
        id=item.item_id,
        kind=kind,
        latitude=item.coordinate.latitude,
        longitude=item.coordinate.longitude,
        count=len(members),
        place_ids=members,
    )


def state_to_response(
    state: PlacesState, places: List[Place], favorites=(), visited=()
) -> PlacesStateResponse:
    return PlacesStateResponse(
        places=[place_to_response(p, favorites, visited) for p in places],
        total_loaded=len(state.places),
        is_loading=state.is_loading,
        error_message=state.error_message,
        loaded_region=RegionModel.from_region(state.loaded_region) if state.loaded_region else None,
        region_to_recenter=(
            RegionModel.from_region(state.region_to_recenter) if state.region_to_recenter else None
        ),
    )
