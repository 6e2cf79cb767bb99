"""
Onboarding / Auth Flow States

Screen sequence for a new or returning user, and the pure
transition rules between screens.
"""

from enum import Enum
from typing import Optional

from .session import SessionState


class FlowState(str, Enum):
    """Screens of the onboarding/auth flow. Exactly one is active."""

    # Intro
    SPLASH = "splash"
    PRIVACY = "privacy"
    TERMS = "terms"
    ROLE_SELECTION = "role_selection"

    # Auth
    LOGIN = "login"
    SIGN_UP = "sign_up"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"

    # Signed in and verified
    HOME = "home"


class FlowEvent(str, Enum):
    """UI and auth-result events."""

    CONTINUE = "continue"
    SKIP = "skip"
    ACCEPT = "accept"
    BACK = "back"
    ROLE_CHOSEN = "role_chosen"
    LOGIN_TAP = "login_tap"
    SIGN_UP_TAP = "sign_up_tap"
    FORGOT_PASSWORD_TAP = "forgot_password_tap"
    LOGIN_SUCCEEDED_VERIFIED = "login_succeeded_verified"
    LOGIN_SUCCEEDED_UNVERIFIED = "login_succeeded_unverified"
    SIGN_UP_SUCCEEDED = "sign_up_succeeded"
    VERIFIED = "verified"


TRANSITIONS: dict[tuple[FlowState, FlowEvent], FlowState] = {
    (FlowState.SPLASH, FlowEvent.CONTINUE): FlowState.PRIVACY,

    (FlowState.PRIVACY, FlowEvent.CONTINUE): FlowState.TERMS,
    (FlowState.PRIVACY, FlowEvent.SKIP): FlowState.TERMS,
    (FlowState.PRIVACY, FlowEvent.BACK): FlowState.SPLASH,

    (FlowState.TERMS, FlowEvent.ACCEPT): FlowState.ROLE_SELECTION,
    (FlowState.TERMS, FlowEvent.BACK): FlowState.PRIVACY,

    (FlowState.ROLE_SELECTION, FlowEvent.ROLE_CHOSEN): FlowState.LOGIN,
    (FlowState.ROLE_SELECTION, FlowEvent.BACK): FlowState.TERMS,

    (FlowState.LOGIN, FlowEvent.SIGN_UP_TAP): FlowState.SIGN_UP,
    (FlowState.LOGIN, FlowEvent.FORGOT_PASSWORD_TAP): FlowState.PASSWORD_RESET,
    (FlowState.LOGIN, FlowEvent.BACK): FlowState.ROLE_SELECTION,
    (FlowState.LOGIN, FlowEvent.LOGIN_SUCCEEDED_VERIFIED): FlowState.HOME,
    (FlowState.LOGIN, FlowEvent.LOGIN_SUCCEEDED_UNVERIFIED): FlowState.EMAIL_VERIFICATION,

    (FlowState.SIGN_UP, FlowEvent.LOGIN_TAP): FlowState.LOGIN,
    (FlowState.SIGN_UP, FlowEvent.BACK): FlowState.LOGIN,
    (FlowState.SIGN_UP, FlowEvent.SIGN_UP_SUCCEEDED): FlowState.EMAIL_VERIFICATION,

    (FlowState.PASSWORD_RESET, FlowEvent.BACK): FlowState.LOGIN,

    (FlowState.EMAIL_VERIFICATION, FlowEvent.VERIFIED): FlowState.HOME,
    # Controller signs out before applying this one
    (FlowState.EMAIL_VERIFICATION, FlowEvent.BACK): FlowState.LOGIN,
}

# Screens a logged-out user may be on
PRE_AUTH_STATES: frozenset[FlowState] = frozenset({
    FlowState.SPLASH,
    FlowState.PRIVACY,
    FlowState.TERMS,
    FlowState.ROLE_SELECTION,
    FlowState.LOGIN,
    FlowState.SIGN_UP,
    FlowState.PASSWORD_RESET,
})


def next_state(state: FlowState, event: FlowEvent) -> Optional[FlowState]:
    """Transition lookup. None if the event does not apply to the state."""
    return TRANSITIONS.get((state, event))


def target_for_session(session: SessionState, current: FlowState) -> Optional[FlowState]:
    """
    Where the flow must be for this session, or None if `current` is consistent.

    Depends only on (is_logged_in, is_email_verified), so applying the
    same session twice never yields a second jump.
    """
    if not session.is_logged_in:
        return None if current in PRE_AUTH_STATES else FlowState.LOGIN
    if not session.is_email_verified:
        return None if current == FlowState.EMAIL_VERIFICATION else FlowState.EMAIL_VERIFICATION
    return None if current == FlowState.HOME else FlowState.HOME
