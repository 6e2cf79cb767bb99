"""
Tests for the SQL-backed document store.

Runs against in-memory SQLite through aiosqlite.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from fitconnect.db import SqlDocumentStore, create_engine_for, create_session_factory, get_async_url, init_models
from fitconnect.shared.errors import NotFoundError, WriteConflictError, WriteError


async def _make_store():
    engine = create_engine_for("sqlite:///:memory:")
    await init_models(engine)
    return engine, SqlDocumentStore(create_session_factory(engine))


def run_with_store(scenario):
    """Run `scenario(store)` on a fresh database and dispose the engine."""
    async def runner():
        engine, store = await _make_store()
        try:
            return await scenario(store)
        finally:
            await engine.dispose()

    return asyncio.run(runner())


# =============================================================================
# Test URL handling
# =============================================================================

class TestAsyncUrl:
    """Tests for sync → async URL conversion."""

    def test_sqlite(self):
        assert get_async_url("sqlite:///./app.db") == "sqlite+aiosqlite:///./app.db"

    def test_postgres(self):
        assert get_async_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"

    def test_already_async(self):
        assert get_async_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


# =============================================================================
# Test CRUD
# =============================================================================

class TestSqlCrud:
    """Tests for document operations on SQL."""

    def test_set_get_update_delete(self):
        async def scenario(store):
            await store.set_document("c", "1", {"a": 1, "nested": {"x": [1, 2]}})
            first = await store.get_document("c", "1")
            await store.update_fields("c", "1", {"a": 2})
            second = await store.get_document("c", "1")
            await store.set_document("c", "1", {"b": True})
            third = await store.get_document("c", "1")
            await store.delete_document("c", "1")
            remaining = await store.query("c")
            return first.data, second.data, third.data, remaining

        first, second, third, remaining = run_with_store(scenario)
        assert first == {"a": 1, "nested": {"x": [1, 2]}}
        assert second == {"a": 2, "nested": {"x": [1, 2]}}
        assert third == {"b": True}
        assert remaining == []

    def test_missing(self):
        async def scenario(store):
            await store.get_document("c", "missing")

        with pytest.raises(NotFoundError):
            run_with_store(scenario)

    def test_update_missing(self):
        async def scenario(store):
            await store.update_fields("c", "missing", {"a": 1})

        with pytest.raises(NotFoundError):
            run_with_store(scenario)

    def test_collections_are_separate(self):
        async def scenario(store):
            await store.set_document("userChallenges/u1/challenges", "c1", {"v": 1})
            await store.set_document("userChallenges/u2/challenges", "c1", {"v": 2})
            return await store.query("userChallenges/u1/challenges")

        docs = run_with_store(scenario)
        assert [doc.data for doc in docs] == [{"v": 1}]

    def test_query_filters(self):
        async def scenario(store):
            await store.set_document("c", "a", {"is_active": True, "created_at": "2024-01-01"})
            await store.set_document("c", "b", {"is_active": False, "created_at": "2024-02-01"})
            await store.set_document("c", "c", {"is_active": True, "created_at": "2024-03-01"})
            return await store.query("c", filters={"is_active": True}, order_by="created_at", descending=True, limit=1)

        assert [doc.id for doc in run_with_store(scenario)] == ["c"]

    def test_concurrent_insert_is_conflict(self):
        """Insert racing another writer's insert of the same document."""
        async def scenario(store):
            await store.set_document("c", "1", {"v": 1})
            with patch.object(store, "_get_row", AsyncMock(return_value=None)):
                with pytest.raises(WriteConflictError) as exc_info:
                    await store.set_document("c", "1", {"v": 2})
            return exc_info.value, (await store.get_document("c", "1")).data

        error, data = run_with_store(scenario)
        assert isinstance(error, WriteError)
        assert error.collection == "c"
        assert error.doc_id == "1"
        assert data == {"v": 1}


# =============================================================================
# Test Subscriptions
# =============================================================================

class TestSqlSubscriptions:
    """Listeners see committed state."""

    def test_listener_sees_changes(self):
        async def scenario(store):
            seen = []
            token = store.subscribe("c", "1", seen.append)
            await store.flush()
            await store.set_document("c", "1", {"v": 1})
            await store.flush()
            await store.delete_document("c", "1")
            await store.flush()
            token.remove()
            await store.set_document("c", "1", {"v": 2})
            await store.flush()
            return [doc.data for doc in seen]

        assert run_with_store(scenario) == [None, {"v": 1}, None]
