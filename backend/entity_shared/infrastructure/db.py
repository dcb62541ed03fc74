"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns with one session per request.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from entity_shared.config.settings import settings


_TX_DEPTH_KEY = "entity_tx_depth"


def create_engine_from_settings(url: str | None = None, **overrides) -> Engine:
    """
    Build the shared engine (connection pool sized by configuration).

    SQLite URLs skip the pool sizing arguments and get foreign keys enabled,
    so referential integrity behaves the same as on PostgreSQL.
    """
    url = url or settings.database_url

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": settings.db_echo}
        kwargs.update(overrides)
        sqlite_engine = create_engine(url, **kwargs)
        enable_sqlite_foreign_keys(sqlite_engine)
        return sqlite_engine

    kwargs = {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "connect_args": {"connect_timeout": 10},
        "echo": settings.db_echo,
    }
    kwargs.update(overrides)
    return create_engine(url, **kwargs)


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """Turn on ``PRAGMA foreign_keys`` for every new SQLite connection."""

    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_engine_from_settings()

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @app.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.scalars(select(Item)).all()

    The session is automatically closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Safe commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Run a block as one unit of work.

    The outermost block commits on success and rolls back on any exception.
    Nested blocks (a cascade hook calling back into the service) join the
    enclosing unit of work and leave commit/rollback to it.

    Usage:
        with transaction(db):
            db.add(course)
            run_hooks(...)
    """
    depth = db.info.get(_TX_DEPTH_KEY, 0)
    db.info[_TX_DEPTH_KEY] = depth + 1
    try:
        yield db
        if depth == 0:
            db.flush()
            safe_commit(db)
    except BaseException:
        if depth == 0:
            db.rollback()
        raise
    finally:
        db.info[_TX_DEPTH_KEY] = depth


def in_transaction(db: Session) -> bool:
    """True while inside a :func:`transaction` block."""
    return db.info.get(_TX_DEPTH_KEY, 0) > 0
