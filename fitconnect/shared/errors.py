"""
Error taxonomy.

None of these are fatal. NotAuthenticated and NotFound clear local
state silently, DecodeError degrades to "data unavailable", write and
network errors are surfaced to the caller for retry.
"""

from typing import Optional


class FitConnectError(Exception):
    """Base error."""


class NotAuthenticatedError(FitConnectError):
    """Operation requires a signed-in user."""

    def __init__(self, detail: str = "No authenticated user"):
        self.detail = detail
        super().__init__(detail)


class NotFoundError(FitConnectError):
    """Document does not exist."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document not found: {collection}/{doc_id}")


class DecodeError(FitConnectError):
    """Remote document could not be decoded into its model."""

    def __init__(self, collection: str, doc_id: str, detail: str):
        self.collection = collection
        self.doc_id = doc_id
        self.detail = detail
        super().__init__(f"Cannot decode {collection}/{doc_id}: {detail}")


class WriteError(FitConnectError):
    """Remote write was rejected."""

    def __init__(self, detail: str, collection: Optional[str] = None, doc_id: Optional[str] = None):
        self.detail = detail
        self.collection = collection
        self.doc_id = doc_id
        where = f" ({collection}/{doc_id})" if collection else ""
        super().__init__(f"Write failed{where}: {detail}")


class WriteConflictError(WriteError):
    """Remote write lost against a concurrent writer."""


class NetworkError(FitConnectError):
    """Transient connectivity failure."""


class InvalidCredentialsError(FitConnectError):
    """Email/password pair was rejected."""


class UserAlreadyExistsError(FitConnectError):
    """Sign-up with an email that already has an account."""
