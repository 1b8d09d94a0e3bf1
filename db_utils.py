"""
SQLite engine and per-request sessions for the chat store.
"""
from collections.abc import Generator

from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine

from settings import get_settings


__all__ = ("engine", "create_db_and_tables", "get_db_session")


DATABASE_URL = get_settings().database_url
IS_SQLITE = DATABASE_URL.startswith("sqlite")


# check_same_thread=False: sessions are used from FastAPI's threadpool
# timeout=30: seconds to wait on a locked database before failing
engine = create_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False, "timeout": 30} if IS_SQLITE else {},
)


@event.listens_for(engine, "connect")
def _sqlite_set_pragmas(dbapi_connection, _connection_record):
    """
    Per-connection pragmas:
    - journal_mode=WAL so readers don't block the writer.
    - foreign_keys=ON so rows cannot reference a session that was never created.
    """
    if not IS_SQLITE:
        return
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
    finally:
        cursor.close()


def create_db_and_tables() -> None:
    """Create missing tables; existing tables and rows are left alone."""
    # table classes register themselves on the metadata when imported
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_db_session() -> Generator[Session, None, None]:
    """
    Yield a SQLAlchemy session (not a chat session) for one request.

    FastAPI closes it once the response is sent.
    """
    with Session(engine) as db_session:
        yield db_session
