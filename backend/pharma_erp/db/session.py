"""Engine and session factory. SQLite by default, any SQLAlchemy URL in production."""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from pharma_erp.core.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless this is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(database_url: str, **overrides) -> Engine:
    """
    SQLite gets NullPool (one connection per checkout, thread-safe with the
    request-scoped sessions); server databases get a bounded QueuePool.
    `overrides` go straight to create_engine (tests pass StaticPool).
    """
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        options = {
            "connect_args": {"check_same_thread": False},
            "poolclass": NullPool,
        }
    else:
        options = {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
        }
    options.update(overrides)

    engine = create_engine(database_url, **options)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
