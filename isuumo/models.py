"""SQLAlchemy models for chairs and estates.

The *_range columns hold bucket ids computed at ingest so that range
facets become equality filters. popularity_m is the sort key used by
every listing query.
"""
from geoalchemy2 import Geometry
from sqlalchemy import Boolean, Column, Float, Integer, String, Text
from sqlalchemy.orm import deferred

from isuumo.database import Base


class Chair(Base):
    """Chair listing, stored in the chair database."""

    __tablename__ = "chair"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(64), nullable=False)
    description = Column(Text, nullable=False)
    thumbnail = Column(String(128), nullable=False)
    price = Column(Integer, nullable=False, index=True)
    price_range = Column(Integer, nullable=False, index=True)
    height = Column(Integer, nullable=False)
    height_range = Column(Integer, nullable=False, index=True)
    width = Column(Integer, nullable=False)
    width_range = Column(Integer, nullable=False, index=True)
    depth = Column(Integer, nullable=False)
    depth_range = Column(Integer, nullable=False, index=True)
    color = Column(String(64), nullable=False, index=True)
    features = Column(Text, nullable=False)
    kind = Column(String(64), nullable=False, index=True)
    popularity = Column(Integer, nullable=False)
    popularity_m = Column(Integer, nullable=False, index=True)
    stock = Column(Integer, nullable=False)
    in_stock = Column(Boolean, nullable=False, index=True)

    def __repr__(self):
        return f"<Chair {self.id}: {self.name}>"


class Estate(Base):
    """Estate listing, stored in the estate database."""

    __tablename__ = "estate"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(64), nullable=False)
    description = Column(Text, nullable=False)
    thumbnail = Column(String(128), nullable=False)
    address = Column(String(128), nullable=False)
    latitude = Column(Float, nullable=False, index=True)
    longitude = Column(Float, nullable=False, index=True)
    rent = Column(Integer, nullable=False, index=True)
    rent_range = Column(Integer, nullable=False, index=True)
    door_height = Column(Integer, nullable=False)
    door_height_range = Column(Integer, nullable=False, index=True)
    door_width = Column(Integer, nullable=False)
    door_width_range = Column(Integer, nullable=False, index=True)
    features = Column(Text, nullable=False)
    popularity = Column(Integer, nullable=False)
    popularity_m = Column(Integer, nullable=False, index=True)
    # POINT(latitude longitude), written at ingest; only the containment query reads it
    point = deferred(Column(Geometry("POINT", srid=4326), nullable=False))

    def __repr__(self):
        return f"<Estate {self.id}: {self.name}>"
