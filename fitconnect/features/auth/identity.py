"""
Identity provider.

Credential/session provider contract and an in-process implementation
used by the app in memory mode and by the tests.
"""

import asyncio
import hashlib
import hmac
import logging
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from fitconnect.shared.errors import (
    InvalidCredentialsError,
    NetworkError,
    NotAuthenticatedError,
    UserAlreadyExistsError,
)

from .session import SessionState, SessionStore, User, UserRole

logger = logging.getLogger(__name__)

PASSWORD_ITERATIONS = 100_000


class IdentityProvider(ABC):
    """
    External identity service.

    Every session change is published to `self.sessions`.
    """

    def __init__(self, sessions: Optional[SessionStore] = None):
        self.sessions = sessions or SessionStore()

    def current_session(self) -> SessionState:
        return self.sessions.state

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> SessionState:
        """Sign in; raises InvalidCredentialsError."""

    @abstractmethod
    async def sign_up(self, email: str, password: str, role: UserRole) -> SessionState:
        """Create account, send verification email, sign in unverified."""

    @abstractmethod
    async def sign_out(self) -> None:
        """End the session."""

    @abstractmethod
    async def send_email_verification(self) -> None:
        """Send verification email to the signed-in user."""

    @abstractmethod
    async def reload_session(self) -> SessionState:
        """Refresh the session from the server (picks up verification)."""

    @abstractmethod
    async def send_password_reset(self, email: str) -> None:
        """Send a password reset email."""


@dataclass
class _Account:
    user: User
    salt: str
    password_hash: str
    email_verified: bool = False


@dataclass
class _Outbox:
    verifications: list[str] = field(default_factory=list)
    password_resets: list[str] = field(default_factory=list)


def hash_password(password: str, salt: str, iterations: int = PASSWORD_ITERATIONS) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return digest.hex()


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class InMemoryIdentityProvider(IdentityProvider):
    """
    Identity provider kept in process memory.

    `confirm_email` stands in for the user following the link in the
    verification email; the client only notices after `reload_session`.
    """

    def __init__(
        self,
        sessions: Optional[SessionStore] = None,
        iterations: int = PASSWORD_ITERATIONS,
    ):
        super().__init__(sessions)
        self.iterations = iterations
        self.outbox = _Outbox()
        self.fail_sign_out = False
        self._accounts: dict[str, _Account] = {}
        self._current: Optional[str] = None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _session_for(self, account: Optional[_Account]) -> SessionState:
        if account is None:
            return SessionState()
        return SessionState(
            is_logged_in=True,
            current_user=account.user,
            is_email_verified=account.email_verified,
            role=account.user.role,
        )

    def _publish(self) -> SessionState:
        account = self._accounts.get(self._current) if self._current else None
        state = self._session_for(account)
        self.sessions.publish(state)
        return state

    def _send_verification(self, account: _Account) -> None:
        self.outbox.verifications.append(account.user.email)
        logger.info(f"Verification email sent to {account.user.email}")

    def confirm_email(self, email: str) -> None:
        """Mark the account's email as verified server-side."""
        account = self._accounts.get(_normalize_email(email))
        if account is None:
            raise KeyError(email)
        account.email_verified = True

    # =========================================================================
    # IdentityProvider
    # =========================================================================

    async def sign_in(self, email: str, password: str) -> SessionState:
        await asyncio.sleep(0)
        account = self._accounts.get(_normalize_email(email))
        if account is None:
            raise InvalidCredentialsError("Invalid email or password")
        candidate = hash_password(password, account.salt, self.iterations)
        if not hmac.compare_digest(candidate, account.password_hash):
            raise InvalidCredentialsError("Invalid email or password")
        self._current = _normalize_email(email)
        logger.info(f"User {account.user.id} signed in")
        state = self._publish()
        if not account.email_verified:
            self.sessions.notify_verification_required(account.user.email)
        return state

    async def sign_up(self, email: str, password: str, role: UserRole) -> SessionState:
        await asyncio.sleep(0)
        key = _normalize_email(email)
        if not key:
            raise InvalidCredentialsError("Email is required")
        if not password:
            raise InvalidCredentialsError("Password is required")
        if key in self._accounts:
            raise UserAlreadyExistsError(f"Account already exists for {email}")

        salt = secrets.token_hex(16)
        account = _Account(
            user=User(id=str(uuid.uuid4()), email=key, role=role),
            salt=salt,
            password_hash=hash_password(password, salt, self.iterations),
        )
        self._accounts[key] = account
        self._send_verification(account)
        self._current = key
        logger.info(f"User {account.user.id} signed up as {role.value}")
        return self._publish()

    async def sign_out(self) -> None:
        await asyncio.sleep(0)
        if self.fail_sign_out:
            raise NetworkError("Sign out failed")
        if self._current is None:
            return
        self._current = None
        self._publish()

    async def send_email_verification(self) -> None:
        await asyncio.sleep(0)
        account = self._accounts.get(self._current) if self._current else None
        if account is None:
            raise NotAuthenticatedError()
        self._send_verification(account)

    async def reload_session(self) -> SessionState:
        await asyncio.sleep(0)
        return self._publish()

    async def send_password_reset(self, email: str) -> None:
        await asyncio.sleep(0)
        account = self._accounts.get(_normalize_email(email))
        # Unknown emails are accepted silently (no account enumeration)
        if account is None:
            logger.debug("Password reset requested for unknown email")
            return
        self.outbox.password_resets.append(account.user.email)
        logger.info(f"Password reset sent to {account.user.email}")
