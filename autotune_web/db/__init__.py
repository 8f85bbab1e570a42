"""Database engine and session helpers."""

from autotune_web.db.session import (
    Base,
    SessionLocal,
    check_db_connection,
    create_tables,
    engine,
    get_db,
)

__all__ = ["Base", "SessionLocal", "check_db_connection", "create_tables", "engine", "get_db"]
