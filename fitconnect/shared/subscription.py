"""
Live document subscription bound to a screen's visible lifetime.

One instance tracks one entity for one screen instance and holds at
most one active listener. Showing the screen (re)subscribes after
releasing the previous handle, hiding it releases the handle.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, Optional, Type, TypeVar

from pydantic import BaseModel

from .document_store import Document, DocumentStore, SubscriptionToken
from .errors import DecodeError
from .repository import decode_document

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class SubscriptionState(Generic[T]):
    """
    Local view state of one subscribed document.

    `joined=True, record=None, data_unavailable=True` means the document
    exists but could not be decoded.
    """

    joined: bool = False
    record: Optional[T] = None
    data_unavailable: bool = False
    error: Optional[str] = None

    def clear(self) -> None:
        self.joined = False
        self.record = None
        self.data_unavailable = False


class LiveDocumentSubscription(ABC, Generic[T]):
    """
    Push listener on one per-user document.

    Subclasses provide the collection path for a user via
    `collection_for(user_id)`.
    """

    model: Type[T]

    def __init__(
        self,
        store: DocumentStore,
        entity_id: str,
        model: Optional[Type[T]] = None,
        on_update: Optional[Callable[[SubscriptionState[T]], None]] = None,
    ):
        self.store = store
        self.entity_id = entity_id
        if model is not None:
            self.model = model
        self.on_update = on_update
        self.state: SubscriptionState[T] = SubscriptionState()
        self._token: Optional[SubscriptionToken] = None
        self._user_id = ""

    @abstractmethod
    def collection_for(self, user_id: str) -> str:
        """Collection holding this user's copy of the entity."""

    @property
    def active(self) -> bool:
        return self._token is not None and self._token.active

    @property
    def user_id(self) -> str:
        return self._user_id

    def subscribe(self, user_id: str) -> Optional[SubscriptionToken]:
        """
        Open the listener, releasing any previous one first.

        An empty user id is treated as logged out: local state is
        cleared and no listener is opened.
        """
        self.unsubscribe()
        self._user_id = user_id or ""
        if not user_id:
            logger.debug(f"No user for {self.entity_id}, not subscribing")
            self.state.clear()
            self._emit()
            return None

        self._token = self.store.subscribe(
            self.collection_for(user_id), self.entity_id, self._on_snapshot
        )
        return self._token

    def unsubscribe(self) -> None:
        """Release the listener. Safe without an active handle and when repeated."""
        if self._token is not None:
            self._token.remove()
            self._token = None

    def on_show(self, user_id: str) -> Optional[SubscriptionToken]:
        return self.subscribe(user_id)

    def on_hide(self) -> None:
        self.unsubscribe()

    @contextmanager
    def watching(self, user_id: str) -> Iterator[SubscriptionState[T]]:
        """Scoped subscription, released on every exit path."""
        self.subscribe(user_id)
        try:
            yield self.state
        finally:
            self.unsubscribe()

    def _on_snapshot(self, document: Document) -> None:
        if not document.exists:
            self.state.clear()
        else:
            try:
                self.state.record = decode_document(document, self.model)
                self.state.data_unavailable = False
            except DecodeError as e:
                logger.warning(f"Joined but unreadable: {e}")
                self.state.record = None
                self.state.data_unavailable = True
            self.state.joined = True
        self._emit()

    def _emit(self) -> None:
        if self.on_update is not None:
            self.on_update(self.state)
