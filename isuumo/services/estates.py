"""Estate lookups, listings and recommendations."""
from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import sessionmaker

from isuumo.database import store_errors
from isuumo.errors import InvalidInput, NotFound
from isuumo.logging_config import get_logger
from isuumo.models import Chair, Estate
from isuumo.schemas import Coordinate, EstateResponse
from isuumo.services.geo import search_estates_in_polygon
from isuumo.services.query_builder import build_estate_search, run_search

if TYPE_CHECKING:
    from isuumo.context import AppContext


logger = get_logger(__name__)


def estate_detail_loader(sessions: sessionmaker):
    """Loader for the per-id estate cache."""
    def load_estate(estate_id: int) -> EstateResponse:
        with store_errors("getEstateDetail"):
            with sessions() as session:
                estate = session.get(Estate, estate_id)
                if estate is None:
                    raise NotFound(f"estate {estate_id} not found")
                return EstateResponse.model_validate(estate)
    return load_estate


def low_priced_estate_loader(sessions: sessionmaker, limit: int):
    """Loader for the cheapest estates by rent."""
    def load_low_priced_estates(_key) -> list[EstateResponse]:
        statement = select(Estate).order_by(Estate.rent.asc(), Estate.id.asc()).limit(limit)
        with store_errors("getLowPricedEstate"):
            with sessions() as session:
                estates = session.execute(statement).scalars().all()
                return [EstateResponse.model_validate(e) for e in estates]
    return load_low_priced_estates


def get_estate(ctx: AppContext, estate_id: int) -> EstateResponse:
    return ctx.estate_detail_cache.get(estate_id)


def get_low_priced_estates(ctx: AppContext) -> list[EstateResponse]:
    return ctx.low_priced_estate_cache.get(ctx.UNIT)


def search_estates(
    ctx: AppContext, params: Mapping[str, str]
) -> tuple[int, list[EstateResponse]]:
    query = build_estate_search(
        params, ctx.estate_condition, max_per_page=ctx.settings.SEARCH_MAX_PER_PAGE
    )
    with store_errors("searchEstates"):
        with ctx.estate_sessions() as session:
            count, estates = run_search(session, query)
            return count, [EstateResponse.model_validate(e) for e in estates]


def search_estates_nazotte(
    ctx: AppContext, coordinates: Sequence[Coordinate]
) -> list[EstateResponse]:
    """Estates inside the drawn polygon, capped at NAZOTTE_LIMIT."""
    if not coordinates:
        raise InvalidInput("post search estate nazotte failed : no coordinates")
    with store_errors("searchEstateNazotte"):
        with ctx.estate_sessions() as session:
            estates = search_estates_in_polygon(
                session, coordinates, ctx.settings.NAZOTTE_LIMIT
            )
            return [EstateResponse.model_validate(e) for e in estates]


def door_fits(width: int, height: int, depth: int):
    """Clause matching doors the chair passes through in any orientation."""
    sides = (width, height, depth)
    pairs = [(a, b) for i, a in enumerate(sides) for j, b in enumerate(sides) if i != j]
    return or_(*(
        and_(Estate.door_width >= w, Estate.door_height >= h) for w, h in pairs
    ))


def recommend_estates_for_chair(ctx: AppContext, chair_id: int) -> list[EstateResponse]:
    """Estates the chair fits into. An unknown chair is invalid input."""
    with store_errors("searchRecommendedEstateWithChair"):
        with ctx.chair_sessions() as session:
            chair = session.get(Chair, chair_id)
            if chair is None:
                logger.info("Requested chair id %s not found", chair_id)
                raise InvalidInput(f"chair {chair_id} not found")
            fits = door_fits(chair.width, chair.height, chair.depth)

        statement = (
            select(Estate)
            .where(fits)
            .order_by(Estate.popularity_m.asc(), Estate.id.asc())
            .limit(ctx.settings.LIST_LIMIT)
        )
        with ctx.estate_sessions() as session:
            estates = session.execute(statement).scalars().all()
            return [EstateResponse.model_validate(e) for e in estates]
