"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

from autotune_web.db.session import get_db  # re-export

__all__ = ["get_db"]
