"""Database module exports."""

from photobooth_server.db.base import Base
from photobooth_server.db.models import SharedPhoto
from photobooth_server.db.session import (
    dispose_engine,
    get_db,
    get_engine,
    get_sessionmaker,
    init_db,
)

__all__ = [
    "Base",
    "SharedPhoto",
    "dispose_engine",
    "get_db",
    "get_engine",
    "get_sessionmaker",
    "init_db",
]
