"""
Viewport geometry helpers: when to refetch, and which box to fetch.
"""
from __future__ import annotations

import math
from typing import Iterable, Optional

from domain.models import Bounds, Coordinate, Place, Region, Span

MOVE_RATIO = 0.2
ZOOM_RATIO = 0.3
DEFAULT_MARGIN = 1.2
KM_PER_DEGREE = 111.0
EARTH_RADIUS_KM = 6371.0
MIN_RECENTER_SPAN = 0.05
RECENTER_PADDING = 1.5
MAX_LATITUDE_SPAN = 180.0
MAX_LONGITUDE_SPAN = 360.0


def should_reload(previous: Optional[Region], new: Region) -> bool:
    """
    Decide whether moving from `previous` to `new` warrants a refetch.

    Thresholds scale with the new span, so the sensitivity is the same at any
    zoom level.
    """
    if previous is None:
        return True

    lat_diff = abs(previous.center.latitude - new.center.latitude)
    lng_diff = abs(previous.center.longitude - new.center.longitude)
    span_diff = abs(previous.span.latitude_delta - new.span.latitude_delta)

    has_moved = (
        lat_diff > new.span.latitude_delta * MOVE_RATIO
        or lng_diff > new.span.longitude_delta * MOVE_RATIO
    )
    has_zoomed = span_diff > new.span.latitude_delta * ZOOM_RATIO
    return has_moved or has_zoomed


def expand_region(region: Region, margin: float = DEFAULT_MARGIN) -> Bounds:
    """Bounding box of `region` with its span multiplied by `margin`."""
    lat_delta = region.span.latitude_delta * margin
    lng_delta = region.span.longitude_delta * margin
    return Bounds(
        min_lat=region.center.latitude - lat_delta / 2,
        max_lat=region.center.latitude + lat_delta / 2,
        min_lng=region.center.longitude - lng_delta / 2,
        max_lng=region.center.longitude + lng_delta / 2,
    )


def bounds_around(center: Coordinate, radius_km: float) -> Bounds:
    """Square box approximating a disc, at a flat 111 km per degree."""
    radius_deg = radius_km / KM_PER_DEGREE
    return Bounds(
        min_lat=center.latitude - radius_deg,
        max_lat=center.latitude + radius_deg,
        min_lng=center.longitude - radius_deg,
        max_lng=center.longitude + radius_deg,
    )


def _padded_span(extent: float, limit: float) -> float:
    return min(max(extent * RECENTER_PADDING, MIN_RECENTER_SPAN), limit)


def region_for_places(places: Iterable[Place]) -> Optional[Region]:
    """Region framing every mappable place, or None if there are none."""
    coords = [p.coordinate for p in places if p.coordinate is not None]
    if not coords:
        return None

    min_lat = min(c.latitude for c in coords)
    max_lat = max(c.latitude for c in coords)
    min_lng = min(c.longitude for c in coords)
    max_lng = max(c.longitude for c in coords)

    if len(coords) == 1:
        return Region(
            center=Coordinate(min_lat, min_lng),
            span=Span(MIN_RECENTER_SPAN, MIN_RECENTER_SPAN),
        )

    return Region(
        center=Coordinate((min_lat + max_lat) / 2, (min_lng + max_lng) / 2),
        span=Span(
            _padded_span(max_lat - min_lat, MAX_LATITUDE_SPAN),
            _padded_span(max_lng - min_lng, MAX_LONGITUDE_SPAN),
        ),
    )


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Compute distance in kilometers between two lat/lon points."""
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(a.latitude))
        * math.cos(math.radians(b.latitude))
        * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
