"""Chair lookups, listings and the purchase transition."""
from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from isuumo.database import store_errors
from isuumo.errors import NotFound
from isuumo.logging_config import get_logger
from isuumo.models import Chair
from isuumo.schemas import ChairResponse
from isuumo.services.query_builder import build_chair_search, run_search

if TYPE_CHECKING:
    from isuumo.context import AppContext


logger = get_logger(__name__)


def chair_detail_loader(sessions: sessionmaker):
    """Loader for the per-id chair cache. Sold-out chairs are still loaded."""
    def load_chair(chair_id: int) -> ChairResponse:
        with store_errors("getChairDetail"):
            with sessions() as session:
                chair = session.get(Chair, chair_id)
                if chair is None:
                    raise NotFound(f"chair {chair_id} not found")
                return ChairResponse.model_validate(chair)
    return load_chair


def low_priced_chair_loader(sessions: sessionmaker, limit: int):
    """Loader for the cheapest in-stock chairs."""
    def load_low_priced_chairs(_key) -> list[ChairResponse]:
        statement = (
            select(Chair)
            .where(Chair.in_stock.is_(True))
            .order_by(Chair.price.asc(), Chair.id.asc())
            .limit(limit)
        )
        with store_errors("getLowPricedChair"):
            with sessions() as session:
                chairs = session.execute(statement).scalars().all()
                return [ChairResponse.model_validate(c) for c in chairs]
    return load_low_priced_chairs


def get_chair(ctx: AppContext, chair_id: int) -> ChairResponse:
    """Chair detail; a sold-out chair is reported as not found."""
    chair = ctx.chair_detail_cache.get(chair_id)
    if chair.stock <= 0:
        logger.info("requested id's chair is sold out : %s", chair_id)
        raise NotFound(f"chair {chair_id} not found")
    return chair


def get_low_priced_chairs(ctx: AppContext) -> list[ChairResponse]:
    return ctx.low_priced_chair_cache.get(ctx.UNIT)


def search_chairs(ctx: AppContext, params: Mapping[str, str]) -> tuple[int, list[ChairResponse]]:
    query = build_chair_search(
        params, ctx.chair_condition, max_per_page=ctx.settings.SEARCH_MAX_PER_PAGE
    )
    with store_errors("searchChairs"):
        with ctx.chair_sessions() as session:
            count, chairs = run_search(session, query)
            return count, [ChairResponse.model_validate(c) for c in chairs]


def _decrement_stock(session: Session, chair_id: int) -> int:
    session.execute(
        select(Chair.id).where(Chair.id == chair_id).with_for_update()
    ).scalar_one_or_none()
    # The stock > 0 guard holds even where FOR UPDATE is a no-op (SQLite).
    result = session.execute(
        update(Chair)
        .where(Chair.id == chair_id, Chair.stock > 0)
        .values(stock=Chair.stock - 1, in_stock=Chair.stock > 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound(f"buyChair chair id {chair_id} not found")
    return session.execute(
        select(Chair.stock).where(Chair.id == chair_id)
    ).scalar_one()


def buy_chair(ctx: AppContext, chair_id: int) -> int:
    """
    Take one unit of stock inside a single locking transaction.

    Returns the remaining stock. Raises NotFound when the chair does not
    exist or is already sold out.
    """
    with store_errors("buyChair"):
        with ctx.chair_sessions.begin() as session:
            stock = _decrement_stock(session, chair_id)
    ctx.chair_detail_cache.forget(chair_id)
    ctx.low_priced_chair_cache.purge()
    logger.debug("chair %s bought, %s left", chair_id, stock)
    return stock
