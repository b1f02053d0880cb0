"""
Database package: async PostgreSQL via SQLAlchemy.
"""

from src.db.engine import init_db, close_db, get_session_factory
from src.db.models import ImageHistory

__all__ = [
    "init_db",
    "close_db",
    "get_session_factory",
    "ImageHistory",
]
