"""Database connection and session management."""
from sqlalchemy import case, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from jobprofit.config import get_settings

settings = get_settings()

Base = declarative_base()


def create_db_engine(database_url: str):
    """Build an engine for PostgreSQL (production) or SQLite (tests, local runs)."""
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)
        _configure_sqlite(engine)
        return engine

    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )

    @event.listens_for(engine, "connect")
    def set_statement_timeout(dbapi_connection, connection_record):
        """Bound long-running import statements."""
        cursor = dbapi_connection.cursor()
        cursor.execute("SET statement_timeout = '30s'")
        cursor.close()

    return engine


def _configure_sqlite(engine) -> None:
    """Enable foreign keys and emit BEGIN ourselves so rollbacks and savepoints hold."""

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_db_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_insert(db: Session, model):
    """
    Return an INSERT construct that supports ON CONFLICT for the bound dialect.

    Args:
        db: Database session
        model: Mapped class or table to insert into

    Returns:
        Dialect-specific Insert with on_conflict_do_update/do_nothing
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upserts are not supported on {dialect}")
    return insert(model)


def least_of(current, incoming):
    """LEAST() that ignores NULLs, portable across PostgreSQL and SQLite."""
    return case(
        (current.is_(None), incoming),
        (incoming.is_(None), current),
        (incoming < current, incoming),
        else_=current,
    )


def greatest_of(current, incoming):
    """GREATEST() that ignores NULLs, portable across PostgreSQL and SQLite."""
    return case(
        (current.is_(None), incoming),
        (incoming.is_(None), current),
        (incoming > current, incoming),
        else_=current,
    )
