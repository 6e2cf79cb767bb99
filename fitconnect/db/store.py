"""
SQL-backed document store.

Implements DocumentStore on SQLAlchemy async sessions. Change
notifications are fanned out in-process after each committed write,
so listeners only see state that is durable.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitconnect.shared.document_store import Document, DocumentStore, apply_query
from fitconnect.shared.errors import NetworkError, NotFoundError, WriteConflictError, WriteError

from .models import DocumentRow

logger = logging.getLogger(__name__)


class SqlDocumentStore(DocumentStore):
    """Document store over a single `documents` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__()
        self._session_factory = session_factory

    async def _get_row(self, session: AsyncSession, collection: str, doc_id: str) -> Optional[DocumentRow]:
        result = await session.execute(
            select(DocumentRow)
            .where(DocumentRow.collection == collection)
            .where(DocumentRow.doc_id == doc_id)
        )
        return result.scalar_one_or_none()

    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DocumentRow).where(DocumentRow.collection == collection)
                )
                rows = list(result.scalars().all())
        except OperationalError as e:
            raise NetworkError(f"Query on {collection} failed: {e}") from e
        documents = [Document(collection, row.doc_id, dict(row.data)) for row in rows]
        return apply_query(documents, filters, order_by, descending, limit)

    async def _snapshot(self, collection: str, doc_id: str) -> Document:
        try:
            async with self._session_factory() as session:
                row = await self._get_row(session, collection, doc_id)
        except OperationalError as e:
            raise NetworkError(f"Read of {collection}/{doc_id} failed: {e}") from e
        return Document(collection, doc_id, dict(row.data) if row is not None else None)

    async def get_document(self, collection: str, doc_id: str) -> Document:
        document = await self._snapshot(collection, doc_id)
        if not document.exists:
            raise NotFoundError(collection, doc_id)
        return document

    async def set_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        try:
            async with self._session_factory() as session:
                row = await self._get_row(session, collection, doc_id)
                if row is None:
                    session.add(DocumentRow(collection=collection, doc_id=doc_id, data=dict(data)))
                else:
                    row.data = dict(data)
                await session.commit()
        except IntegrityError as e:
            # Another writer inserted the same document between read and commit
            raise WriteConflictError(str(e), collection, doc_id) from e
        except SQLAlchemyError as e:
            raise WriteError(str(e), collection, doc_id) from e
        logger.debug(f"Stored {collection}/{doc_id}")
        self._changed(collection, doc_id, data)

    async def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            async with self._session_factory() as session:
                row = await self._get_row(session, collection, doc_id)
                if row is None:
                    raise NotFoundError(collection, doc_id)
                # Reassign so the JSON column is flagged dirty
                merged = {**row.data, **fields}
                row.data = merged
                await session.commit()
        except SQLAlchemyError as e:
            raise WriteError(str(e), collection, doc_id) from e
        self._changed(collection, doc_id, merged)

    async def delete_document(self, collection: str, doc_id: str) -> None:
        try:
            async with self._session_factory() as session:
                row = await self._get_row(session, collection, doc_id)
                if row is None:
                    return
                await session.delete(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise WriteError(str(e), collection, doc_id) from e
        self._changed(collection, doc_id, None)
