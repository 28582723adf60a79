"""Process-wide logging, configured once from Settings."""
import logging
from typing import Optional

from isuumo.config import Settings, settings as default_settings


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def resolve_level(settings: Settings = default_settings) -> str:
    """LOG_LEVEL when set, otherwise DEBUG for APP_ENV=dev and INFO elsewhere."""
    if settings.LOG_LEVEL:
        return settings.LOG_LEVEL.upper()
    if settings.APP_ENV.lower() == "dev":
        return "DEBUG"
    return "INFO"


def configure_logging(settings: Settings = default_settings, force: bool = False) -> None:
    """
    Configure root logging. Later calls are no-ops unless ``force`` is set.

    SQL_ECHO turns on SQLAlchemy's statement log for both stores.
    """
    global _configured
    if _configured and not force:
        return
    logging.basicConfig(level=resolve_level(settings), format=LOG_FORMAT, force=force)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.SQL_ECHO else logging.WARNING
    )
    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or "isuumo")
