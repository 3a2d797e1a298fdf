"""
Database package initializer exposing key public interfaces for configuration,
engine/session management, and the storage backend interface.
"""

from .base import Base
from .config import get_settings, Settings
from .session import (
    get_engine,
    get_session_maker,
    dispose_engine,
)

# Import models to ensure they are registered with SQLAlchemy metadata
# when the db package is imported.
from . import models as models  # noqa: F401

__all__ = [
    "Base",
    "Settings",
    "get_settings",
    "get_engine",
    "get_session_maker",
    "dispose_engine",
    "models",
]
