"""
Base repository with common document operations.

Provides typed access to one document-store collection.
Entities are pydantic models; documents are stored as JSON dicts.

Usage:
    class ChallengeRepository(DocumentRepository[Challenge]):
        def __init__(self, store: DocumentStore):
            super().__init__(store, "challenges", Challenge)

        async def list_active(self) -> list[Challenge]:
            return await self.find(filters={"is_active": True})
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .document_store import Document, DocumentStore
from .errors import DecodeError, NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def decode_document(document: Document, model: Type[T]) -> T:
    """
    Decode a document into a model.

    Raises:
        NotFoundError: document does not exist
        DecodeError: document data does not validate
    """
    if not document.exists:
        raise NotFoundError(document.collection, document.id)
    try:
        return model.model_validate(document.data)
    except ValidationError as e:
        raise DecodeError(document.collection, document.id, str(e)) from e


class DocumentRepository(Generic[T]):
    """
    Base repository for one collection.

    All methods are async and go through the DocumentStore.
    """

    def __init__(self, store: DocumentStore, collection: str, model: Type[T]):
        """
        Initialize repository.

        Args:
            store: Document store
            collection: Collection path
            model: Pydantic model class
        """
        self.store = store
        self.collection = collection
        self.model = model

    def decode(self, document: Document) -> T:
        return decode_document(document, self.model)

    def encode(self, entity: T) -> dict[str, Any]:
        return entity.model_dump(mode="json", exclude={"id"} if "id" in self.model.model_fields else None)

    async def get_by_id(self, doc_id: str) -> T:
        """
        Get entity by document ID.

        Raises:
            NotFoundError: if the document does not exist
            DecodeError: if the document is malformed
        """
        document = await self.store.get_document(self.collection, doc_id)
        return self._with_id(self.decode(document), doc_id)

    async def get_optional(self, doc_id: str) -> Optional[T]:
        """Get entity by ID, None if it does not exist."""
        try:
            return await self.get_by_id(doc_id)
        except NotFoundError:
            return None

    async def find(
        self,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[T]:
        """
        Query entities by field equality with optional ordering.

        Malformed documents are logged and skipped.
        """
        documents = await self.store.query(
            self.collection, filters=filters, order_by=order_by,
            descending=descending, limit=limit,
        )
        entities = []
        for document in documents:
            try:
                entities.append(self._with_id(self.decode(document), document.id))
            except DecodeError as e:
                logger.warning(f"Skipping malformed document: {e}")
        return entities

    async def save(self, doc_id: str, entity: T) -> T:
        """Create or replace the document for an entity."""
        await self.store.set_document(self.collection, doc_id, self.encode(entity))
        return self._with_id(entity, doc_id)

    async def update(self, doc_id: str, **fields) -> None:
        """Merge fields into an existing document."""
        await self.store.update_fields(self.collection, doc_id, fields)

    async def delete(self, doc_id: str) -> None:
        await self.store.delete_document(self.collection, doc_id)

    def _with_id(self, entity: T, doc_id: str) -> T:
        if "id" in self.model.model_fields and getattr(entity, "id", None) != doc_id:
            return entity.model_copy(update={"id": doc_id})
        return entity
