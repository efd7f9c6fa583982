"""
Greedy proximity clustering of map pins.

Groups are formed in a single pass: each unassigned place claims every later
unassigned place within `threshold` degrees on both axes. The threshold is tied
to the current zoom (latitude span / 30), so clusters break apart as the user
zooms in.

This is O(N^2); inputs are viewport-bounded (at most a few hundred places).
The proximity test is rectangular in degrees, not geodesic, and is not
corrected near the poles or across the antimeridian.
"""
from __future__ import annotations

import uuid
from typing import Callable, Iterable, List, Optional

from domain.models import ClusterItem, Coordinate, MapItem, Place, PlaceItem, Region, Span

THRESHOLD_DIVISOR = 30.0
DEFAULT_CLUSTER_ZOOM_SPAN = 0.5


def _new_cluster_id() -> str:
    return uuid.uuid4().hex


def cluster_threshold(region: Region) -> float:
    return region.span.latitude_delta / THRESHOLD_DIVISOR


def cluster_places(
    places: Iterable[Place],
    region: Region,
    id_factory: Callable[[], str] = _new_cluster_id,
) -> List[MapItem]:
    """
    Group `places` into standalone pins and clusters for `region`.

    Output order follows group formation (the first member's position in the
    input). Places without coordinates are dropped.
    """
    mappable = [p for p in places if p.coordinate is not None]
    if not mappable:
        return []

    threshold = cluster_threshold(region)
    assigned = [False] * len(mappable)
    items: List[MapItem] = []

    for i, anchor in enumerate(mappable):
        if assigned[i]:
            continue
        assigned[i] = True
        a_lat = anchor.coordinates_lat
        a_lng = anchor.coordinates_lng
        group = [anchor]

        for j in range(i + 1, len(mappable)):
            if assigned[j]:
                continue
            other = mappable[j]
            if (
                abs(a_lat - other.coordinates_lat) < threshold
                and abs(a_lng - other.coordinates_lng) < threshold
            ):
                group.append(other)
                assigned[j] = True

        if len(group) == 1:
            items.append(PlaceItem(anchor))
            continue

        avg_lat = sum(p.coordinates_lat for p in group) / len(group)
        avg_lng = sum(p.coordinates_lng for p in group) / len(group)
        items.append(
            ClusterItem(
                coordinate=Coordinate(avg_lat, avg_lng),
                places=tuple(group),
                id=id_factory(),
            )
        )

    return items


def zoom_region_for_cluster(cluster: ClusterItem, current: Optional[Region]) -> Region:
    """Region centered on a cluster at half the current span."""
    if current is None:
        lat_delta = lng_delta = DEFAULT_CLUSTER_ZOOM_SPAN
    else:
        lat_delta = current.span.latitude_delta
        lng_delta = current.span.longitude_delta
    return Region(center=cluster.coordinate, span=Span(lat_delta / 2.0, lng_delta / 2.0))
