"""Application context.

Built once at startup and handed to every handler through ``get_context``.
It owns both store engines, the loaded search conditions and the four
caches, so nothing here is a process-wide global.
"""
from pathlib import Path

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from isuumo.config import Settings, settings as default_settings
from isuumo.database import Base, create_store_engine
from isuumo.logging_config import get_logger
from isuumo.models import Chair, Estate
from isuumo.schemas import ChairSearchCondition, EstateSearchCondition
from isuumo.services.cache import UNIT, SingleFlightCache
from isuumo.services.chairs import chair_detail_loader, low_priced_chair_loader
from isuumo.services.estates import estate_detail_loader, low_priced_estate_loader


logger = get_logger(__name__)


def load_chair_condition(path: Path) -> ChairSearchCondition:
    return ChairSearchCondition.model_validate_json(Path(path).read_text(encoding="utf-8"))


def load_estate_condition(path: Path) -> EstateSearchCondition:
    return EstateSearchCondition.model_validate_json(Path(path).read_text(encoding="utf-8"))


class AppContext:
    """Shared handles for one running application."""

    UNIT = UNIT

    def __init__(
        self,
        chair_engine: Engine,
        estate_engine: Engine,
        chair_condition: ChairSearchCondition,
        estate_condition: EstateSearchCondition,
        settings: Settings = default_settings,
    ):
        self.settings = settings
        self.chair_engine = chair_engine
        self.estate_engine = estate_engine
        self.chair_condition = chair_condition
        self.estate_condition = estate_condition

        self.chair_sessions = sessionmaker(
            bind=chair_engine, autoflush=False, expire_on_commit=False
        )
        self.estate_sessions = sessionmaker(
            bind=estate_engine, autoflush=False, expire_on_commit=False
        )

        ttl = settings.CACHE_TTL_SECONDS
        self.chair_detail_cache = SingleFlightCache(
            chair_detail_loader(self.chair_sessions), ttl, name="chair_detail"
        )
        self.estate_detail_cache = SingleFlightCache(
            estate_detail_loader(self.estate_sessions), ttl, name="estate_detail"
        )
        self.low_priced_chair_cache = SingleFlightCache(
            low_priced_chair_loader(self.chair_sessions, settings.LIST_LIMIT),
            ttl,
            name="low_priced_chair",
        )
        self.low_priced_estate_cache = SingleFlightCache(
            low_priced_estate_loader(self.estate_sessions, settings.LIST_LIMIT),
            ttl,
            name="low_priced_estate",
        )

    @property
    def caches(self) -> tuple[SingleFlightCache, ...]:
        return (
            self.chair_detail_cache,
            self.estate_detail_cache,
            self.low_priced_chair_cache,
            self.low_priced_estate_cache,
        )

    def create_schema(self) -> None:
        """Create each table in its own store."""
        Base.metadata.create_all(bind=self.chair_engine, tables=[Chair.__table__])
        Base.metadata.create_all(bind=self.estate_engine, tables=[Estate.__table__])

    def reset(self) -> None:
        """Drop and recreate both schemas and empty every cache."""
        Base.metadata.drop_all(bind=self.chair_engine, tables=[Chair.__table__])
        Base.metadata.drop_all(bind=self.estate_engine, tables=[Estate.__table__])
        self.create_schema()
        for cache in self.caches:
            cache.purge()

    def dispose(self) -> None:
        self.chair_engine.dispose()
        self.estate_engine.dispose()


def build_context(settings: Settings = default_settings) -> AppContext:
    """Connect both stores and read the search conditions."""
    logger.info("loading search conditions")
    return AppContext(
        chair_engine=create_store_engine(settings.CHAIR_DATABASE_URL, settings),
        estate_engine=create_store_engine(settings.ESTATE_DATABASE_URL, settings),
        chair_condition=load_chair_condition(settings.CHAIR_CONDITION_PATH),
        estate_condition=load_estate_condition(settings.ESTATE_CONDITION_PATH),
        settings=settings,
    )


def get_context(request: Request) -> AppContext:
    """Dependency returning the context created by the lifespan handler."""
    return request.app.state.context
