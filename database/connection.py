"""Engine and session handling for the primary document store."""

from contextlib import contextmanager
from typing import Generator, Optional

import structlog
from sqlalchemy import create_engine, event, pool
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from database.models import Base

logger = structlog.get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///visibility.db"


def _build_engine(database_url: str, pool_size: int, echo: bool) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            poolclass=pool.QueuePool,
            pool_size=pool_size,
            max_overflow=pool_size * 2,
            pool_recycle=3600,
            pool_pre_ping=True,
            echo=echo,
        )

    # Store calls run in worker threads; an in-memory database must keep one connection
    return create_engine(
        database_url,
        poolclass=pool.StaticPool if ":memory:" in database_url else pool.QueuePool,
        connect_args={"check_same_thread": False},
        echo=echo,
    )


class DatabaseConnection:
    """Owns the engine behind ``SqlDocumentStore``.

    Args:
        database_url: SQLAlchemy URL, PostgreSQL in production, SQLite locally
        pool_size: Pooled connections for server databases
        echo: Log emitted SQL
    """

    def __init__(self, database_url: Optional[str] = None, pool_size: int = 10, echo: bool = False):
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.engine = _build_engine(self.database_url, pool_size, echo)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)

        @event.listens_for(self.engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            logger.debug("document_db_connection_opened", dialect=self.engine.dialect.name)

        logger.info(
            "document_db_initialized",
            dialect=self.engine.dialect.name,
            pool=type(self.engine.pool).__name__,
        )

    def create_tables(self):
        Base.metadata.create_all(bind=self.engine)
        logger.info("document_db_tables_ready", tables=sorted(Base.metadata.tables))

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Transactional scope; commits on success, rolls back on error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self):
        self.engine.dispose()
        logger.info("document_db_closed")


def init_db(database_url: Optional[str] = None, **kwargs) -> DatabaseConnection:
    """Create the connection used by the service entry points."""
    return DatabaseConnection(database_url=database_url, **kwargs)
