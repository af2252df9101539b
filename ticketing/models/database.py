from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from ticketing.config import settings

SQLITE_BUSY_TIMEOUT_SECONDS = 15


def _normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+psycopg://", 1)

    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://", 1)

    return database_url


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # Request handlers run on the server threadpool.
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
            }
        }
    return {"pool_pre_ping": True}


def enable_sqlite_write_locks(sqlite_engine) -> None:
    """Start every transaction on ``sqlite_engine`` with ``BEGIN IMMEDIATE``.

    SQLite has no row locks and ignores ``FOR UPDATE``. Taking the database
    write lock when the transaction opens gives ``lock_ticket`` the same
    guarantee it has on Postgres: a second buyer waits until the first
    order commits before reading the reserved count.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        # pysqlite would otherwise emit its own deferred BEGIN.
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


_database_url = _normalize_database_url(settings.DATABASE_URL)
engine = create_engine(_database_url, **_engine_options(_database_url))
if _database_url.startswith("sqlite"):
    enable_sqlite_write_locks(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
