"""
Shared infrastructure (NOT business logic).

Usage:
    from fitconnect.shared import InMemoryDocumentStore, DocumentRepository
    from fitconnect.shared.errors import NotFoundError
"""
from .document_store import (
    Document,
    DocumentStore,
    InMemoryDocumentStore,
    ListenerRegistry,
    SubscriptionToken,
)
from .errors import (
    DecodeError,
    FitConnectError,
    InvalidCredentialsError,
    NetworkError,
    NotAuthenticatedError,
    NotFoundError,
    UserAlreadyExistsError,
    WriteConflictError,
    WriteError,
)
from .repository import DocumentRepository, decode_document
from .subscription import LiveDocumentSubscription, SubscriptionState

__all__ = [
    # Store
    "Document",
    "DocumentStore",
    "InMemoryDocumentStore",
    "ListenerRegistry",
    "SubscriptionToken",
    # Errors
    "DecodeError",
    "FitConnectError",
    "InvalidCredentialsError",
    "NetworkError",
    "NotAuthenticatedError",
    "NotFoundError",
    "UserAlreadyExistsError",
    "WriteConflictError",
    "WriteError",
    # Repository / subscription
    "DocumentRepository",
    "decode_document",
    "LiveDocumentSubscription",
    "SubscriptionState",
]
