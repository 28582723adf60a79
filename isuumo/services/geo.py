"""Polygon containment ("nazotte") search over estate points."""
from dataclasses import dataclass
from typing import Sequence

from geoalchemy2 import WKTElement
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from isuumo.errors import InvalidInput
from isuumo.models import Estate
from isuumo.schemas import Coordinate


# Spatial reference of estate points and search polygons
SRID = 4326


@dataclass(frozen=True)
class BoundingBox:
    """Corners holding the minimum and maximum latitude/longitude."""
    top_left: Coordinate
    bottom_right: Coordinate


def point_wkt(latitude: float, longitude: float) -> str:
    return f"POINT({latitude:f} {longitude:f})"


def estate_point(latitude: float, longitude: float) -> WKTElement:
    """Geometry value stored in an estate's point column at ingest."""
    return WKTElement(point_wkt(latitude, longitude), srid=SRID)


def coordinates_to_wkt(coordinates: Sequence[Coordinate]) -> str:
    """
    Build a WKT polygon from an ordered list of vertices.

    The ring is passed through as given; closing it is left to the store.
    """
    if not coordinates:
        raise InvalidInput("polygon needs at least one coordinate")
    points = ",".join(f"{c.latitude:f} {c.longitude:f}" for c in coordinates)
    return f"POLYGON(({points}))"


def bounding_box(coordinates: Sequence[Coordinate]) -> BoundingBox:
    if not coordinates:
        raise InvalidInput("polygon needs at least one coordinate")
    latitudes = [c.latitude for c in coordinates]
    longitudes = [c.longitude for c in coordinates]
    return BoundingBox(
        top_left=Coordinate(latitude=min(latitudes), longitude=min(longitudes)),
        bottom_right=Coordinate(latitude=max(latitudes), longitude=max(longitudes)),
    )


def build_containment_query(coordinates: Sequence[Coordinate], limit: int):
    """Select estates inside the polygon, most popular first."""
    polygon = coordinates_to_wkt(coordinates)
    box = bounding_box(coordinates)
    return (
        select(Estate)
        .where(
            Estate.latitude.between(box.top_left.latitude, box.bottom_right.latitude),
            Estate.longitude.between(box.top_left.longitude, box.bottom_right.longitude),
            func.ST_Contains(
                func.ST_PolygonFromText(polygon, SRID),
                Estate.point,
            ),
        )
        .order_by(Estate.popularity_m.asc(), Estate.id.asc())
        .limit(limit)
    )


def search_estates_in_polygon(
    session: Session, coordinates: Sequence[Coordinate], limit: int
) -> list[Estate]:
    """Return estates whose point lies inside the polygon, capped at ``limit``."""
    statement = build_containment_query(coordinates, limit)
    return list(session.execute(statement).scalars().all())
