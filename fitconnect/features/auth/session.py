"""
Session state and observable session store.

The session is owned by the identity provider. Screens and the flow
controller observe it through a SessionStore passed to them
explicitly; there is no process-wide session object.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    """Account role; decides which home the user lands on."""
    CLIENT = "client"
    DIETITIAN = "dietitian"

    @classmethod
    def default(cls) -> "UserRole":
        return cls.CLIENT


class User(BaseModel):
    """Signed-in account."""

    id: str
    email: str
    full_name: Optional[str] = None
    role: Optional[UserRole] = None


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the authentication state."""

    is_logged_in: bool = False
    current_user: Optional[User] = None
    is_email_verified: bool = False
    role: Optional[UserRole] = None

    @property
    def user_id(self) -> str:
        return self.current_user.id if self.current_user else ""

    @property
    def key(self) -> tuple[bool, bool]:
        """The pair that decides where the flow belongs."""
        return (self.is_logged_in, self.is_logged_in and self.is_email_verified)


SessionListener = Callable[[SessionState], None]
VerificationListener = Callable[[str], None]


class SessionStore:
    """
    Observable session holder.

    Listeners are called on the publishing (event loop) thread.
    `subscribe` returns an unsubscribe callable which is safe to call
    more than once.
    """

    def __init__(self, initial: Optional[SessionState] = None):
        self._state = initial or SessionState()
        self._listeners: list[SessionListener] = []
        self._verification_listeners: list[VerificationListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._remove(self._listeners, listener)

    def subscribe_verification_required(self, listener: VerificationListener) -> Callable[[], None]:
        self._verification_listeners.append(listener)
        return lambda: self._remove(self._verification_listeners, listener)

    @staticmethod
    def _remove(listeners: list, listener) -> None:
        if listener in listeners:
            listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners) + len(self._verification_listeners)

    def publish(self, state: SessionState) -> None:
        """Replace the session and notify every listener."""
        self._state = state
        logger.debug(
            f"Session changed: logged_in={state.is_logged_in} "
            f"verified={state.is_email_verified} user={state.user_id or '-'}"
        )
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")

    def notify_verification_required(self, email: str) -> None:
        """Out-of-band notice that `email` must be verified before continuing."""
        logger.info(f"Verification required for {email}")
        for listener in list(self._verification_listeners):
            try:
                listener(email)
            except Exception as e:
                logger.error(f"Verification listener failed: {e}")
