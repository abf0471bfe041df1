import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker

from jobboard.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.debug}
    if url.startswith("sqlite"):
        # TestClient runs handlers in a worker thread
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        # pool_size=5: maintain 5 connections ready
        # max_overflow=10: allow 10 extra connections under load
        kwargs["pool_size"] = 5
        kwargs["max_overflow"] = 10
        kwargs["pool_pre_ping"] = True
    return kwargs


engine = create_engine(settings.sqlalchemy_url, **_engine_kwargs(settings.sqlalchemy_url))

if engine.dialect.name == "sqlite":
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.
    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM users"))
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def test_postgres_connection() -> bool:
    """
    Test if the relational database is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as test"))
            row = result.fetchone()
            return row[0] == 1
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


def rows_to_dicts(result) -> list:
    columns = list(result.keys())
    return [dict(zip(columns, row)) for row in result.fetchall()]


def execute_raw_sql(sql: str, params: dict = None) -> list:
    """
    Execute raw SQL and return results as list of dicts.
    This is useful for complex queries and aggregates.
    """
    with get_db_session() as db:
        result = db.execute(text(sql), params or {})
        return rows_to_dicts(result)


def fetch_one(sql: str, params: dict = None):
    """Like execute_raw_sql but returns the first row dict or None."""
    rows = execute_raw_sql(sql, params)
    return rows[0] if rows else None
