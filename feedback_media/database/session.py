"""Database session management."""

from contextlib import contextmanager
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..utils.config import get_database_url, load_config
from ..utils.logger import setup_worker_logger

logger = setup_worker_logger('database')


class DatabaseSessionManager:
    """Holds the engine and session factory for one database URL."""

    def __init__(self, database_url: Optional[str] = None, **engine_kwargs: Any):
        config = load_config()['database']
        self.database_url = database_url or get_database_url()
        engine_kwargs.setdefault('echo', bool(config.get('echo', False)))
        if self.database_url.startswith('sqlite'):
            connect_args = engine_kwargs.setdefault('connect_args', {})
            connect_args.setdefault('check_same_thread', False)
        else:
            engine_kwargs.setdefault('pool_pre_ping', True)

        self._engine: Engine = create_engine(self.database_url, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info(f"Database engine created for {self._safe_url()}")

    def _safe_url(self) -> str:
        return self._engine.url.render_as_string(hide_password=True)

    @property
    def engine(self) -> Engine:
        return self._engine

    def get_session(self):
        """Get a new database session."""
        return self._session_factory()

    def dispose(self):
        """Dispose of the engine and all pooled connections."""
        logger.info("Disposing database engine and connection pool")
        self._engine.dispose()

    def get_connection_info(self) -> Dict[str, Any]:
        url = self._engine.url
        return {
            'drivername': url.drivername,
            'host': url.host,
            'port': url.port,
            'database': url.database,
        }


# Global session manager instance (lazy initialized)
session_manager: Optional[DatabaseSessionManager] = None


def _get_session_manager() -> DatabaseSessionManager:
    """Get or create the global session manager instance."""
    global session_manager
    if session_manager is None:
        session_manager = DatabaseSessionManager()
    return session_manager


def configure_database(database_url: str, **engine_kwargs: Any) -> DatabaseSessionManager:
    """Replace the global session manager (e.g. to point at a test database)."""
    global session_manager
    if session_manager is not None:
        session_manager.dispose()
    session_manager = DatabaseSessionManager(database_url, **engine_kwargs)
    return session_manager


def get_engine() -> Engine:
    """Get the SQLAlchemy engine."""
    return _get_session_manager().engine


@contextmanager
def get_session():
    """Context manager for database sessions."""
    session = _get_session_manager().get_session()
    try:
        yield session
    finally:
        session.close()


def get_connection_info() -> Dict[str, Any]:
    return _get_session_manager().get_connection_info()


def init_db():
    """Create the feedback_media and owner tables if they don't exist."""
    from .models import Base
    Base.metadata.create_all(get_engine())
    logger.info(f"Successfully initialized database schema on {get_connection_info()['drivername']}")
