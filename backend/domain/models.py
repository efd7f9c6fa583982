"""
Core domain models for the places map.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union
import uuid


CATEGORY_LINK_PREFIX = "/categories/"
FALLBACK_DISPLAY_NAME = "Secret place"


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in degrees."""
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Span:
    """Angular size of a viewport."""
    latitude_delta: float
    longitude_delta: float


@dataclass(frozen=True)
class Region:
    """
    The visible map rectangle: a center point plus an angular span.

    Two regions are equal only when center and span match exactly. Equality is
    used to detect redundant recenter events, never for reload decisions.
    """
    center: Coordinate
    span: Span

    @classmethod
    def from_values(
        cls, latitude: float, longitude: float, latitude_delta: float, longitude_delta: float
    ) -> "Region":
        return cls(
            center=Coordinate(latitude, longitude),
            span=Span(latitude_delta, longitude_delta),
        )


@dataclass(frozen=True)
class Bounds:
    """Rectangular lat/lng box used as a store query predicate."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, coordinate: Coordinate) -> bool:
        return (
            self.min_lat <= coordinate.latitude <= self.max_lat
            and self.min_lng <= coordinate.longitude <= self.max_lng
        )


def _opt_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"Field {key!r} must be a string, got {type(value).__name__}")
    return value


def _opt_float(data: Dict[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Field {key!r} must be a number, got {type(value).__name__}")
    return float(value)


@dataclass(frozen=True)
class Place:
    """
    A geotagged point of interest as stored in the `places` table.

    Places are built once from a store row and never mutated; every successful
    fetch replaces the whole visible set.
    """
    id: int
    title: Optional[str] = None
    subtitle: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    location: Optional[str] = None  # free-text address
    url: Optional[str] = None
    hide_from_maps: Optional[str] = None
    physical_status: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_url_3x2: Optional[str] = None
    coordinates_lat: Optional[float] = None
    coordinates_lng: Optional[float] = None
    description: Optional[str] = None
    directions: Optional[str] = None
    tags_title: Optional[str] = None
    tags_link: Optional[str] = None  # e.g. "/categories/abandoned-places"
    image_cover: Optional[str] = None
    images: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Place":
        """Decode a store row. Raises ValueError/TypeError on malformed fields."""
        if not isinstance(data, dict):
            raise TypeError(f"Place row must be an object, got {type(data).__name__}")
        raw_id = data.get("id")
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            raise ValueError(f"Place row has invalid id: {raw_id!r}")
        return cls(
            id=raw_id,
            title=_opt_str(data, "title"),
            subtitle=_opt_str(data, "subtitle"),
            city=_opt_str(data, "city"),
            country=_opt_str(data, "country"),
            location=_opt_str(data, "location"),
            url=_opt_str(data, "url"),
            hide_from_maps=_opt_str(data, "hide_from_maps"),
            physical_status=_opt_str(data, "physical_status"),
            thumbnail_url=_opt_str(data, "thumbnail_url"),
            thumbnail_url_3x2=_opt_str(data, "thumbnail_url_3x2"),
            coordinates_lat=_opt_float(data, "coordinates_lat"),
            coordinates_lng=_opt_float(data, "coordinates_lng"),
            description=_opt_str(data, "description"),
            directions=_opt_str(data, "directions"),
            tags_title=_opt_str(data, "tags_title"),
            tags_link=_opt_str(data, "tags_link"),
            image_cover=_opt_str(data, "image_cover"),
            images=_opt_str(data, "images"),
        )

    @property
    def coordinate(self) -> Optional[Coordinate]:
        """Both latitude and longitude, or None for a non-mappable place."""
        if self.coordinates_lat is None or self.coordinates_lng is None:
            return None
        return Coordinate(self.coordinates_lat, self.coordinates_lng)

    @property
    def category_name(self) -> Optional[str]:
        """Human-readable category derived from `tags_link`."""
        if self.tags_link is None:
            return None
        clean = self.tags_link.replace(CATEGORY_LINK_PREFIX, "")
        return " ".join(token.capitalize() for token in clean.split("-") if token)

    @property
    def display_name(self) -> str:
        return self.title if self.title is not None else FALLBACK_DISPLAY_NAME

    @property
    def full_location(self) -> Optional[str]:
        if self.city and self.country:
            return f"{self.city}, {self.country}"
        if self.city:
            return self.city
        if self.country:
            return self.country
        return self.location

    @property
    def is_hidden_from_maps(self) -> bool:
        return self.hide_from_maps == "true"


@dataclass(frozen=True)
class PlaceItem:
    """A standalone pin."""
    place: Place

    @property
    def item_id(self) -> str:
        return str(self.place.id)

    @property
    def coordinate(self) -> Coordinate:
        return self.place.coordinate or Coordinate(0.0, 0.0)


@dataclass(frozen=True)
class ClusterItem:
    """
    An aggregate marker for several nearby places.

    The id is synthetic and regenerated on every clustering pass, so it takes
    no part in equality.
    """
    coordinate: Coordinate
    places: Tuple[Place, ...]
    id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)

    @property
    def item_id(self) -> str:
        return f"cluster-{self.id}"

    @property
    def count(self) -> int:
        return len(self.places)


MapItem = Union[PlaceItem, ClusterItem]


@dataclass(frozen=True)
class PlaceQuery:
    """
    Filter sent to the place repository.

    - bounds: inclusive range on coordinates_lat / coordinates_lng
    - text_search: case-insensitive substring OR'd across title/description/city
    - ids: restrict to these ids (OR'd equality)
    - limit: maximum row count, None for no limit
    """
    bounds: Optional[Bounds] = None
    text_search: Optional[str] = None
    ids: Optional[FrozenSet[int]] = None
    limit: Optional[int] = None


@dataclass(frozen=True)
class PlacesState:
    """Snapshot of the loader state published to observers."""
    places: Tuple[Place, ...] = ()
    is_loading: bool = False
    error_message: Optional[str] = None
    loaded_region: Optional[Region] = None
    region_to_recenter: Optional[Region] = None

    @property
    def place_ids(self) -> List[int]:
        return [p.id for p in self.places]
