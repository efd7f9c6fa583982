"""
Place repository backed by SQLAlchemy/SQLite.
"""
from typing import Iterable, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from domain.models import Place, PlaceQuery
from repositories.models import PlaceORM

PLACE_COLUMNS = [c.name for c in PlaceORM.__table__.columns]
TEXT_SEARCH_COLUMNS = (PlaceORM.title, PlaceORM.description, PlaceORM.city)


def _place_to_dict(orm: PlaceORM) -> dict:
    return {name: getattr(orm, name) for name in PLACE_COLUMNS}


def _place_from_orm(orm: PlaceORM) -> Place:
    return Place.from_dict(_place_to_dict(orm))


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PlacesRepository:
    """Read/write operations for places."""

    def query(self, session: Session, place_query: PlaceQuery) -> List[Place]:
        query = session.query(PlaceORM)
        bounds = place_query.bounds
        if bounds is not None:
            query = query.filter(
                PlaceORM.coordinates_lat >= bounds.min_lat,
                PlaceORM.coordinates_lat <= bounds.max_lat,
                PlaceORM.coordinates_lng >= bounds.min_lng,
                PlaceORM.coordinates_lng <= bounds.max_lng,
            )
        if place_query.text_search:
            pattern = f"%{_escape_like(place_query.text_search.lower())}%"
            query = query.filter(
                or_(*[column.ilike(pattern, escape="\\") for column in TEXT_SEARCH_COLUMNS])
            )
        if place_query.ids is not None:
            if not place_query.ids:
                return []
            query = query.filter(PlaceORM.id.in_(sorted(place_query.ids)))
        query = query.order_by(PlaceORM.id)
        if place_query.limit is not None:
            query = query.limit(place_query.limit)
        return [_place_from_orm(p) for p in query.all()]

    def upsert_places(self, session: Session, places: Iterable[Place]) -> int:
        """Insert or replace places by id. Returns the number of rows written."""
        count = 0
        for place in places:
            orm = session.get(PlaceORM, place.id)
            values = {name: getattr(place, name) for name in PLACE_COLUMNS}
            if orm is None:
                session.add(PlaceORM(**values))
            else:
                for name, value in values.items():
                    setattr(orm, name, value)
            count += 1
        session.commit()
        return count

    def count(self, session: Session) -> int:
        return session.query(PlaceORM).count()
