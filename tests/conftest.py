"""
Shared fixtures: an application context over two SQLite stores.

SQLite has no spatial functions, so ST_PolygonFromText and ST_Contains are
registered per connection, backed by shapely. geoalchemy2 binds points
through GeomFromEWKT and issues SpatiaLite metadata calls around CREATE and
DROP TABLE; those are registered too, and points are kept as WKT text.
"""
import re

import pytest
from fastapi.testclient import TestClient
from shapely import wkt
from shapely.geometry import Polygon
from sqlalchemy import create_engine, event
from sqlalchemy.pool import NullPool, StaticPool

from isuumo.config import Settings, settings
from isuumo.context import AppContext, get_context, load_chair_condition, load_estate_condition
from isuumo.main import app
from isuumo.schemas import ChairSearchCondition, EstateSearchCondition, RangeCondition


_POLYGON_RE = re.compile(r"POLYGON\s*\(\((.*)\)\)", re.IGNORECASE)


def _strip_srid(ewkt):
    """'SRID=4326;POINT(1 2)' -> 'POINT(1 2)'"""
    return ewkt.split(";", 1)[-1]


def _st_contains(polygon_text, point_text):
    """Polygon containment; an open ring is closed the way the store does it."""
    match = _POLYGON_RE.fullmatch(_strip_srid(polygon_text).strip())
    vertices = [tuple(map(float, pair.split())) for pair in match.group(1).split(",")]
    if len(vertices) < 3:
        return 0
    return int(Polygon(vertices).contains(wkt.loads(_strip_srid(point_text))))


def _polygon_from_text(text, srid=None):
    return text


def _spatial_metadata(*args):
    return None


SPATIAL_FUNCTIONS = {
    "ST_PolygonFromText": _polygon_from_text,
    "ST_Contains": _st_contains,
    "GeomFromEWKT": _strip_srid,
    "ST_GeomFromEWKT": _strip_srid,
    "RecoverGeometryColumn": _spatial_metadata,
    "CreateSpatialIndex": _spatial_metadata,
    "CheckSpatialIndex": _spatial_metadata,
    "DisableSpatialIndex": _spatial_metadata,
    "DiscardGeometryColumn": _spatial_metadata,
}


def make_sqlite_engine(url="sqlite:///:memory:", poolclass=StaticPool):
    """SQLite engine with the spatial functions above on every connection."""
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=poolclass,
    )

    @event.listens_for(engine, "connect")
    def register_spatial_functions(dbapi_connection, connection_record):
        for name, function in SPATIAL_FUNCTIONS.items():
            dbapi_connection.create_function(name, -1, function)

    return engine


# Bucket boundaries used by the search scenarios: [0,1500) [1500,3500) [3500,5000) [5000,inf)
PRICE_RANGES = {
    "prefix": "",
    "suffix": "円",
    "ranges": [
        {"id": 0, "min": 0, "max": 1500},
        {"id": 1, "min": 1500, "max": 3500},
        {"id": 2, "min": 3500, "max": 5000},
        {"id": 3, "min": 5000, "max": -1},
    ],
}

SIZE_RANGES = {
    "prefix": "",
    "suffix": "cm",
    "ranges": [
        {"id": 0, "min": -1, "max": 80},
        {"id": 1, "min": 80, "max": 110},
        {"id": 2, "min": 110, "max": 150},
        {"id": 3, "min": 150, "max": -1},
    ],
}


@pytest.fixture
def chair_condition() -> ChairSearchCondition:
    """The shipped chair condition with the test price buckets."""
    condition = load_chair_condition(settings.CHAIR_CONDITION_PATH)
    return condition.model_copy(
        update={"price": RangeCondition.model_validate(PRICE_RANGES)}
    )


@pytest.fixture
def estate_condition() -> EstateSearchCondition:
    return load_estate_condition(settings.ESTATE_CONDITION_PATH)


@pytest.fixture
def ctx(chair_condition, estate_condition):
    """Fresh context with empty tables in both stores."""
    context = AppContext(
        chair_engine=make_sqlite_engine(),
        estate_engine=make_sqlite_engine(),
        chair_condition=chair_condition,
        estate_condition=estate_condition,
        settings=Settings(),
    )
    context.create_schema()
    yield context
    context.dispose()


@pytest.fixture
def file_ctx(tmp_path, chair_condition, estate_condition):
    """Context over file-backed stores; every session opens its own connection."""
    context = AppContext(
        chair_engine=make_sqlite_engine(f"sqlite:///{tmp_path / 'chair.db'}", NullPool),
        estate_engine=make_sqlite_engine(f"sqlite:///{tmp_path / 'estate.db'}", NullPool),
        chair_condition=chair_condition,
        estate_condition=estate_condition,
        settings=Settings(),
    )
    context.create_schema()
    yield context
    context.dispose()


@pytest.fixture
def client(ctx):
    """Test client bound to the fixture context."""
    app.dependency_overrides[get_context] = lambda: ctx
    yield TestClient(app)
    app.dependency_overrides.clear()
