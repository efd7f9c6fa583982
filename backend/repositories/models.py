"""
SQLAlchemy ORM models for persistence.
"""
from sqlalchemy import BigInteger, Column, Float, Index, String, Text

from db import Base


class PlaceORM(Base):
    __tablename__ = "places"

    # ids come from the upstream catalogue, never generated locally
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    title = Column(String, nullable=True)
    subtitle = Column(String, nullable=True)
    city = Column(String, nullable=True)
    country = Column(String, nullable=True)
    location = Column(String, nullable=True)
    url = Column(String, nullable=True)
    hide_from_maps = Column(String, nullable=True)
    physical_status = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    thumbnail_url_3x2 = Column(String, nullable=True)
    coordinates_lat = Column(Float, nullable=True)
    coordinates_lng = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    directions = Column(Text, nullable=True)
    tags_title = Column(String, nullable=True)
    tags_link = Column(String, nullable=True)
    image_cover = Column(String, nullable=True)
    images = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_places_coordinates", "coordinates_lat", "coordinates_lng"),
    )
