"""Database layer — engine, session factory, ORM base."""

from lighter_service.db.base import Base
from lighter_service.db.engine import get_engine, get_session_factory, init_engine

__all__ = ["Base", "get_engine", "get_session_factory", "init_engine"]
