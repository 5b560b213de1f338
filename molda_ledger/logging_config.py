import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from molda_ledger.config import Settings, get_settings

APP_LOGGER = "molda_ledger"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries whose chatter is held at the third-party level
NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "alembic",
    "uvicorn.access",
    "urllib3",
)


def _level(name: str, default: int) -> int:
    return getattr(logging, name.upper(), default)


def _file_handler(settings: Settings, formatter: logging.Formatter) -> logging.Handler:
    path = Path(settings.log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure the ``molda_ledger`` logger tree.

    Ledger modules log balance changes at INFO, rejected mutations at WARNING
    and store or notifier failures at ERROR. Output goes to stdout and, when
    LOG_FILE is set, to a rotating file as well. Calling this again replaces
    the handlers instead of stacking them.
    """
    settings = settings or get_settings()
    app_level = _level(settings.app_log_level, logging.INFO)
    third_party_level = _level(settings.third_party_log_level, logging.WARNING)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(app_level)
    app_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    app_logger.addHandler(console)

    if settings.log_file:
        app_logger.addHandler(_file_handler(settings, formatter))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    # SQL_ECHO wants the statements even when third-party logs are quiet
    if settings.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    app_logger.propagate = False
    return app_logger


def get_logger(name: str = APP_LOGGER) -> logging.Logger:
    """Logger under the application namespace, e.g. ``molda_ledger.crud.crud_account``."""
    if name == APP_LOGGER or name.startswith(APP_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER}.{name}")
