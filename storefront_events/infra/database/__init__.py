"""Database engine and session management."""

from __future__ import annotations

from .session import (
    build_engine,
    close_database,
    get_async_session,
    get_engine,
    get_session_factory,
    init_database,
)

__all__ = [
    "build_engine",
    "close_database",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
