"""
Document store abstraction.

The backend is an external collaborator offering document CRUD,
simple queries and per-document push subscriptions. Documents are
opaque JSON-compatible dicts; typed decoding happens in repositories.

Usage:
    store = InMemoryDocumentStore()
    token = store.subscribe("challenges", "E123", on_change)
    await store.set_document("challenges", "E123", {"title": "Steps"})
    ...
    token.remove()
"""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    """Snapshot of one remote document. `data is None` means it does not exist."""

    collection: str
    id: str
    data: Optional[dict[str, Any]] = None

    @property
    def exists(self) -> bool:
        return self.data is not None


Listener = Callable[[Document], None]


class SubscriptionToken:
    """
    Live connection to one remote document.

    Removing the token is the cancellation mechanism: snapshots that
    were already queued for delivery are dropped once it is removed.
    """

    def __init__(self, collection: str, doc_id: str, listener: Listener,
                 release: Callable[["SubscriptionToken"], None]):
        self.collection = collection
        self.doc_id = doc_id
        self._listener = listener
        self._release = release
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def remove(self) -> None:
        """Release the listener. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._release(self)
        logger.debug(f"Listener removed for {self.collection}/{self.doc_id}")

    def deliver(self, document: Document) -> None:
        """Invoke the listener unless the token was released meanwhile."""
        if not self._active:
            return
        try:
            self._listener(document)
        except Exception as e:
            logger.error(f"Listener for {self.collection}/{self.doc_id} failed: {e}")

    def __repr__(self):
        state = "active" if self._active else "removed"
        return f"<SubscriptionToken {self.collection}/{self.doc_id} {state}>"


class ListenerRegistry:
    """
    Per-document listener bookkeeping shared by store implementations.

    Snapshots are scheduled on the running event loop with call_soon,
    so listeners always run on the loop thread and never inline
    inside the write that triggered them.
    """

    def __init__(self):
        self._tokens: dict[tuple[str, str], list[SubscriptionToken]] = {}

    def add(self, collection: str, doc_id: str, listener: Listener) -> SubscriptionToken:
        token = SubscriptionToken(collection, doc_id, listener, self._discard)
        self._tokens.setdefault((collection, doc_id), []).append(token)
        return token

    def _discard(self, token: SubscriptionToken) -> None:
        key = (token.collection, token.doc_id)
        tokens = self._tokens.get(key, [])
        if token in tokens:
            tokens.remove(token)
        if not tokens:
            self._tokens.pop(key, None)

    def schedule(self, token: SubscriptionToken, document: Document) -> None:
        """Queue one snapshot for a single token."""
        loop = asyncio.get_running_loop()
        loop.call_soon(token.deliver, document)

    def notify(self, document: Document) -> int:
        """
        Queue a snapshot for every active listener of the document.

        Returns:
            Number of listeners notified
        """
        tokens = list(self._tokens.get((document.collection, document.id), []))
        for token in tokens:
            self.schedule(token, document)
        return len(tokens)

    def active_count(self, collection: str, doc_id: str) -> int:
        return len(self._tokens.get((collection, doc_id), []))

    @property
    def total(self) -> int:
        return sum(len(tokens) for tokens in self._tokens.values())


class DocumentStore(ABC):
    """
    Remote document store contract.

    All I/O is async. `subscribe` is synchronous and must be called
    from within the running event loop; it delivers the current
    snapshot first and then one snapshot per change.
    """

    def __init__(self):
        self.listeners = ListenerRegistry()
        # Keep strong references to initial-snapshot tasks to prevent GC
        self._initial_tasks: set[asyncio.Task] = set()

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        """Return documents whose fields equal all `filters`."""

    @abstractmethod
    async def get_document(self, collection: str, doc_id: str) -> Document:
        """Return the document or raise NotFoundError."""

    @abstractmethod
    async def set_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document."""

    @abstractmethod
    async def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge fields into an existing document or raise NotFoundError."""

    @abstractmethod
    async def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is a no-op."""

    @abstractmethod
    async def _snapshot(self, collection: str, doc_id: str) -> Document:
        """Current snapshot, non-existing documents included."""

    def subscribe(self, collection: str, doc_id: str, on_change: Listener) -> SubscriptionToken:
        """Open a push listener on one document."""
        token = self.listeners.add(collection, doc_id, on_change)
        task = asyncio.get_running_loop().create_task(self._deliver_initial(token))
        self._initial_tasks.add(task)
        task.add_done_callback(self._initial_tasks.discard)
        logger.debug(f"Listener added for {collection}/{doc_id}")
        return token

    async def _deliver_initial(self, token: SubscriptionToken) -> None:
        try:
            document = await self._snapshot(token.collection, token.doc_id)
        except Exception as e:
            logger.warning(f"Initial snapshot for {token.collection}/{token.doc_id} failed: {e}")
            return
        token.deliver(document)

    async def flush(self) -> None:
        """Wait until pending initial snapshots and queued deliveries have run."""
        while self._initial_tasks:
            await asyncio.gather(*list(self._initial_tasks), return_exceptions=True)
        await asyncio.sleep(0)

    def _changed(self, collection: str, doc_id: str, data: Optional[dict[str, Any]]) -> None:
        self.listeners.notify(Document(collection, doc_id, copy.deepcopy(data)))


def _matches(data: dict[str, Any], filters: Optional[dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(data.get(key) == value for key, value in filters.items())


def apply_query(
    documents: list[Document],
    filters: Optional[dict[str, Any]] = None,
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> list[Document]:
    """Filter, order and limit documents in Python (shared by store backends)."""
    result = [doc for doc in documents if doc.exists and _matches(doc.data, filters)]
    if order_by:
        # Missing values sort last regardless of direction
        present = [doc for doc in result if doc.data.get(order_by) is not None]
        missing = [doc for doc in result if doc.data.get(order_by) is None]
        present.sort(key=lambda doc: doc.data[order_by], reverse=descending)
        result = present + missing
    if limit is not None:
        result = result[:limit]
    return result


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Data is deep-copied on the way in and out."""

    def __init__(self):
        super().__init__()
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        documents = [
            Document(collection, doc_id, copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
        ]
        return apply_query(documents, filters, order_by, descending, limit)

    async def get_document(self, collection: str, doc_id: str) -> Document:
        document = await self._snapshot(collection, doc_id)
        if not document.exists:
            raise NotFoundError(collection, doc_id)
        return document

    async def _snapshot(self, collection: str, doc_id: str) -> Document:
        data = self._collections.get(collection, {}).get(doc_id)
        return Document(collection, doc_id, copy.deepcopy(data))

    async def set_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
        self._changed(collection, doc_id, data)

    async def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        current = self._collections.get(collection, {}).get(doc_id)
        if current is None:
            raise NotFoundError(collection, doc_id)
        current.update(copy.deepcopy(fields))
        self._changed(collection, doc_id, current)

    async def delete_document(self, collection: str, doc_id: str) -> None:
        existed = self._collections.get(collection, {}).pop(doc_id, None)
        if existed is not None:
            self._changed(collection, doc_id, None)
