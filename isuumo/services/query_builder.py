"""Faceted search query construction.

Builds a shared predicate from recognized query parameters and pairs a
COUNT(*) statement with a paginated select. Every value, bucket ids
included, goes through SQLAlchemy bind parameters.
"""
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from isuumo.errors import InvalidInput
from isuumo.models import Chair, Estate
from isuumo.schemas import ChairSearchCondition, EstateSearchCondition, RangeCondition
from isuumo.services.ranges import parse_int, validate_bucket_id


@dataclass(frozen=True)
class RangeFacet:
    """Query parameter holding a bucket id for one *_range column."""
    param: str
    condition: str
    column: Any


@dataclass(frozen=True)
class EqualityFacet:
    param: str
    column: Any


@dataclass(frozen=True)
class FeatureFacet:
    """Comma-separated substrings, each of which must appear in the column."""
    param: str
    column: Any


CHAIR_RANGE_FACETS = (
    RangeFacet("priceRangeId", "price", Chair.price_range),
    RangeFacet("heightRangeId", "height", Chair.height_range),
    RangeFacet("widthRangeId", "width", Chair.width_range),
    RangeFacet("depthRangeId", "depth", Chair.depth_range),
)
CHAIR_EQUALITY_FACETS = (
    EqualityFacet("kind", Chair.kind),
    EqualityFacet("color", Chair.color),
)
CHAIR_FEATURE_FACET = FeatureFacet("features", Chair.features)

ESTATE_RANGE_FACETS = (
    RangeFacet("doorHeightRangeId", "door_height", Estate.door_height_range),
    RangeFacet("doorWidthRangeId", "door_width", Estate.door_width_range),
    RangeFacet("rentRangeId", "rent", Estate.rent_range),
)
ESTATE_FEATURE_FACET = FeatureFacet("features", Estate.features)


@dataclass
class SearchQuery:
    """A count/select statement pair sharing one predicate."""
    where: list = field(default_factory=list)
    count_statement: Any = None
    select_statement: Any = None
    page: int = 0
    per_page: int = 0

    @property
    def offset(self) -> int:
        return self.page * self.per_page


def _facet_value(params: Mapping[str, str], name: str) -> Optional[str]:
    value = params.get(name)
    return value if value else None


def build_predicate(
    params: Mapping[str, str],
    condition,
    range_facets=(),
    equality_facets=(),
    feature_facet: Optional[FeatureFacet] = None,
) -> list:
    """
    Collect one clause per recognized facet present in ``params``.

    Raises InvalidInput for a bad bucket id or when no facet is present.
    """
    where = []

    for facet in range_facets:
        raw = _facet_value(params, facet.param)
        if raw is None:
            continue
        ranges: RangeCondition = getattr(condition, facet.condition)
        bucket_id = validate_bucket_id(ranges, facet.param, raw)
        where.append(facet.column == bucket_id)

    for facet in equality_facets:
        value = _facet_value(params, facet.param)
        if value is not None:
            where.append(facet.column == value)

    if feature_facet is not None:
        raw = _facet_value(params, feature_facet.param)
        if raw is not None:
            for feature in raw.split(","):
                where.append(feature_facet.column.contains(feature, autoescape=True))

    if not where:
        raise InvalidInput("Search condition not found")
    return where


def parse_pagination(
    params: Mapping[str, str], max_per_page: Optional[int] = None
) -> tuple[int, int]:
    """Return (page, per_page) from the ``page`` and ``perPage`` parameters."""
    page = parse_int("page", params.get("page"))
    per_page = parse_int("perPage", params.get("perPage"))
    if page < 0:
        raise InvalidInput(f"page must not be negative : {page}")
    if per_page <= 0:
        raise InvalidInput(f"perPage must be positive : {per_page}")
    if max_per_page is not None and per_page > max_per_page:
        raise InvalidInput(f"perPage must not exceed {max_per_page} : {per_page}")
    return page, per_page


def _paired_query(model, where: list, page: int, per_page: int) -> SearchQuery:
    count_statement = select(func.count()).select_from(model).where(*where)
    select_statement = (
        select(model)
        .where(*where)
        .order_by(model.popularity_m.asc(), model.id.asc())
        .limit(per_page)
        .offset(page * per_page)
    )
    return SearchQuery(
        where=where,
        count_statement=count_statement,
        select_statement=select_statement,
        page=page,
        per_page=per_page,
    )


def build_chair_search(
    params: Mapping[str, str],
    condition: ChairSearchCondition,
    max_per_page: Optional[int] = None,
) -> SearchQuery:
    """Chair search: bucket, kind, color and feature facets over in-stock chairs."""
    where = build_predicate(
        params,
        condition,
        range_facets=CHAIR_RANGE_FACETS,
        equality_facets=CHAIR_EQUALITY_FACETS,
        feature_facet=CHAIR_FEATURE_FACET,
    )
    where.append(Chair.in_stock.is_(True))
    page, per_page = parse_pagination(params, max_per_page)
    return _paired_query(Chair, where, page, per_page)


def build_estate_search(
    params: Mapping[str, str],
    condition: EstateSearchCondition,
    max_per_page: Optional[int] = None,
) -> SearchQuery:
    """Estate search: door size, rent and feature facets."""
    where = build_predicate(
        params,
        condition,
        range_facets=ESTATE_RANGE_FACETS,
        feature_facet=ESTATE_FEATURE_FACET,
    )
    page, per_page = parse_pagination(params, max_per_page)
    return _paired_query(Estate, where, page, per_page)


def run_search(session: Session, query: SearchQuery) -> tuple[int, list]:
    """Execute a SearchQuery, returning (total count, rows of the page)."""
    count = session.execute(query.count_statement).scalar_one()
    rows = list(session.execute(query.select_statement).scalars().all())
    return count, rows
