"""Database layer for the mock test engine."""

from .database import async_session, engine, init_db
from .models import Base, ExamDB

__all__ = [
    "async_session",
    "engine",
    "init_db",
    "Base",
    "ExamDB",
]
