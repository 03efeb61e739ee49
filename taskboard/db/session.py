import logging

from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine

from taskboard.core.config import settings

logger = logging.getLogger(__name__)

_engine = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ships with foreign keys off; cascades depend on them
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str, **kwargs):
    """
    Build an engine for the given URL.

    SQLite engines get a connect hook turning on foreign key enforcement so the
    store itself performs the cascade deletes (project -> tasks, memberships;
    task -> comments).
    """
    is_sqlite = db_url.startswith("sqlite")

    # SQLite fix for multithreading
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})

    engine = create_engine(db_url, **kwargs)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_engine():
    global _engine

    if _engine is None:
        _engine = create_db_engine(settings.DATABASE_URL)
    return _engine


def init_db(engine=None):
    """Create any missing tables."""
    # Import models so every table is registered on the metadata
    import taskboard.models  # noqa: F401

    engine = engine or get_engine()
    SQLModel.metadata.create_all(engine)
    logger.info("Database tables verified")


def get_db():
    with Session(get_engine()) as session:
        yield session
