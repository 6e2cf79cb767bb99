"""
Onboarding and authentication flow.

Usage:
    from fitconnect.features.auth import FlowController, FlowEvent, FlowState

Components:
- FlowState / FlowEvent: screens and events of the flow
- FlowController: state machine reacting to UI events and session changes
- SessionStore / SessionState: observable authentication state
- IdentityProvider / InMemoryIdentityProvider: credential/session provider
- OnboardingPreferences: device-level "intro already seen" flag
"""
from .controller import FlowController
from .identity import IdentityProvider, InMemoryIdentityProvider
from .preferences import OnboardingPreferences
from .session import SessionState, SessionStore, User, UserRole
from .states import (
    PRE_AUTH_STATES,
    TRANSITIONS,
    FlowEvent,
    FlowState,
    next_state,
    target_for_session,
)

__all__ = [
    # States
    "FlowEvent",
    "FlowState",
    "PRE_AUTH_STATES",
    "TRANSITIONS",
    "next_state",
    "target_for_session",
    # Session
    "SessionState",
    "SessionStore",
    "User",
    "UserRole",
    # Services
    "FlowController",
    "IdentityProvider",
    "InMemoryIdentityProvider",
    "OnboardingPreferences",
]
