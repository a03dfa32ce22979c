from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agency_booking.core.config import Settings, settings


def create_engine_with_settings(config: Settings) -> Engine:
    """Build the engine for ``config.DATABASE_URL`` with pool settings applied."""
    url = make_url(config.DATABASE_URL)
    backend = url.get_backend_name()

    if backend == "sqlite":
        # Single shared connection so in-memory databases survive across sessions
        engine = create_engine(
            config.DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if url.database in (None, "", ":memory:") else None,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    connect_args = {}
    if backend.startswith("postgresql"):
        connect_args["options"] = (
            f"-c timezone=utc -c statement_timeout={config.DB_STATEMENT_TIMEOUT_MS}"
        )

    return create_engine(
        config.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_recycle=config.DB_POOL_RECYCLE,
        connect_args=connect_args,
    )


engine = create_engine_with_settings(settings)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
