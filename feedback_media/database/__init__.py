"""
Database initialization module.
Job-row access should go through MediaJobStore.
"""

from .session import (
    DatabaseSessionManager,
    configure_database,
    get_session,
    get_engine,
    get_connection_info,
    init_db,
)
from .models import Base
from .media_job_store import MediaJobStore

__all__ = [
    'DatabaseSessionManager',
    'configure_database',
    'get_session',
    'get_engine',
    'get_connection_info',
    'init_db',
    'Base',
    'MediaJobStore',
]
