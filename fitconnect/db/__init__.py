"""
SQL persistence for the document store.

Usage:
    from fitconnect.db import SqlDocumentStore, create_engine_for, create_session_factory, init_models
"""
from .models import Base, DocumentRow
from .session import create_engine_for, create_session_factory, get_async_url, init_models
from .store import SqlDocumentStore

__all__ = [
    "Base",
    "DocumentRow",
    "SqlDocumentStore",
    "create_engine_for",
    "create_session_factory",
    "get_async_url",
    "init_models",
]
