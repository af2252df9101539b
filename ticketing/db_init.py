"""Schema bootstrap run once from the application lifespan.

SQLite databases (local runs, tests) get ``create_all``. Every other backend
is brought to the Alembic head revision.
"""

import logging
import time
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from ticketing.config import settings
from ticketing.models import Base
from ticketing.models.database import _normalize_database_url, engine

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _ping() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def wait_for_db(retries: int, retry_delay_seconds: int) -> None:
    """Block until ``SELECT 1`` succeeds, giving up after ``retries`` tries."""
    failure = None
    attempt = 0
    while attempt < retries:
        attempt += 1
        try:
            _ping()
        except OperationalError as exc:
            failure = exc
            logger.warning("Database ping %s of %s failed: %s", attempt, retries, exc)
            if attempt < retries:
                time.sleep(retry_delay_seconds)
            continue
        if attempt > 1:
            logger.info("Database answered after %s pings", attempt)
        return

    raise RuntimeError(
        f"Database is unreachable: {retries} pings to DATABASE_URL failed, last error: {failure}"
    ) from failure


def init_db() -> None:
    wait_for_db(
        retries=settings.DB_CONNECT_RETRIES,
        retry_delay_seconds=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
    )
    if not settings.DATABASE_URL.startswith("sqlite"):
        run_migrations()
        return

    logger.info("SQLite database, creating tables from model metadata")
    Base.metadata.create_all(bind=engine)


def _alembic_config():
    from alembic.config import Config

    ini_path = PROJECT_ROOT / "alembic.ini"
    scripts_path = PROJECT_ROOT / "alembic"
    missing = [str(path) for path in (ini_path, scripts_path) if not path.exists()]
    if missing:
        raise RuntimeError(f"Cannot run migrations, missing: {', '.join(missing)}")

    config = Config(str(ini_path))
    config.set_main_option("script_location", str(scripts_path))
    # ConfigParser treats "%" as interpolation.
    config.set_main_option("sqlalchemy.url", _normalize_database_url(settings.DATABASE_URL).replace("%", "%%"))
    return config


def run_migrations() -> None:
    from alembic import command

    logger.info("Upgrading database schema to head")
    command.upgrade(_alembic_config(), "head")
