"""Shared infrastructure services."""

from services.database import get_sync_session, init_db
from services.http_client import AsyncHttpClient

__all__ = [
    "init_db",
    "get_sync_session",
    "AsyncHttpClient",
]
