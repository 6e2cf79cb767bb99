"""
Tests for FlowController.

Drives the controller with UI events and with session notifications
published by the in-memory identity provider.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from fitconnect.config import Settings
from fitconnect.features.auth import (
    FlowController,
    FlowEvent,
    FlowState,
    InMemoryIdentityProvider,
    OnboardingPreferences,
    SessionState,
    UserRole,
)
from fitconnect.shared.errors import InvalidCredentialsError, NetworkError

PASSWORD = "s3cret-pass"
VERIFIED_EMAIL = "ann@example.com"
UNVERIFIED_EMAIL = "bob@example.com"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings():
    return Settings(password_hash_iterations=1000)


@pytest.fixture
def provider():
    """Provider with one verified and one unverified account, signed out."""
    provider = InMemoryIdentityProvider(iterations=1000)

    async def seed():
        await register(provider, VERIFIED_EMAIL)
        await register(provider, UNVERIFIED_EMAIL, verified=False)

    asyncio.run(seed())
    return provider


@pytest.fixture
def controller(provider, settings):
    controller = FlowController(provider.sessions, provider, settings=settings)
    controller.start()
    yield controller
    controller.stop()


async def register(provider, email, verified=True, role=UserRole.CLIENT):
    """Create an account and leave it signed out."""
    await provider.sign_up(email, PASSWORD, role)
    if verified:
        provider.confirm_email(email)
    await provider.sign_out()


def walk_to_login(controller, role=UserRole.CLIENT):
    controller.dispatch(FlowEvent.CONTINUE)
    controller.dispatch(FlowEvent.CONTINUE)
    controller.dispatch(FlowEvent.ACCEPT)
    controller.choose_role(role)
    assert controller.state == FlowState.LOGIN


# =============================================================================
# Test Intro
# =============================================================================

class TestIntro:
    """Splash → privacy → terms → role selection → login."""

    def test_starts_on_splash(self, controller):
        assert controller.state == FlowState.SPLASH

    def test_walk_and_back(self, controller):
        controller.dispatch(FlowEvent.CONTINUE)
        controller.dispatch(FlowEvent.SKIP)
        assert controller.state == FlowState.TERMS
        controller.dispatch(FlowEvent.BACK)
        assert controller.state == FlowState.PRIVACY
        controller.dispatch(FlowEvent.BACK)
        assert controller.state == FlowState.SPLASH

    def test_role_is_stored(self, controller):
        walk_to_login(controller, UserRole.DIETITIAN)
        assert controller.selected_role == UserRole.DIETITIAN
        assert controller.home_role == UserRole.DIETITIAN

    def test_role_choice_outside_role_selection_is_ignored(self, controller):
        assert controller.choose_role(UserRole.DIETITIAN) is False
        assert controller.selected_role is None
        assert controller.state == FlowState.SPLASH

    def test_invalid_event_is_ignored(self, controller):
        assert controller.dispatch(FlowEvent.VERIFIED) is False
        assert controller.state == FlowState.SPLASH
        assert controller.history == []

    def test_login_without_role_defaults_to_client(self, controller):
        """Entering login via the session path still gets a role."""
        controller.state = FlowState.HOME
        controller.on_session_changed(SessionState())
        assert controller.state == FlowState.LOGIN
        assert controller.selected_role == UserRole.CLIENT

    def test_logged_out_never_reaches_home(self, controller):
        events = list(FlowEvent) * 4
        for event in events:
            controller.dispatch(event)
            if controller.state == FlowState.ROLE_SELECTION:
                controller.choose_role(UserRole.CLIENT)
            assert controller.state != FlowState.HOME
            assert controller.state in {
                FlowState.SPLASH, FlowState.PRIVACY, FlowState.TERMS, FlowState.ROLE_SELECTION,
                FlowState.LOGIN, FlowState.SIGN_UP, FlowState.PASSWORD_RESET,
            }


# =============================================================================
# Test Onboarding Preference
# =============================================================================

class TestOnboardingSeen:
    """Skipping intro screens on later launches."""

    def test_accepting_terms_marks_seen(self, controller):
        controller.dispatch(FlowEvent.CONTINUE)
        controller.dispatch(FlowEvent.CONTINUE)
        controller.dispatch(FlowEvent.ACCEPT)
        assert controller.preferences.has_seen_onboarding

    def test_skip_when_enabled(self, provider):
        prefs = OnboardingPreferences()
        prefs.mark_seen()
        controller = FlowController(
            provider.sessions, provider, preferences=prefs,
            settings=Settings(skip_seen_onboarding=True),
        )
        controller.start()
        controller.dispatch(FlowEvent.CONTINUE)
        assert controller.state == FlowState.ROLE_SELECTION

    def test_no_skip_by_default(self, provider, settings):
        prefs = OnboardingPreferences()
        prefs.mark_seen()
        controller = FlowController(provider.sessions, provider, preferences=prefs, settings=settings)
        controller.start()
        controller.dispatch(FlowEvent.CONTINUE)
        assert controller.state == FlowState.PRIVACY


# =============================================================================
# Test Login / Sign Up
# =============================================================================

class TestAuthActions:
    """Async auth actions."""

    def test_login_verified_goes_home(self, provider, controller):
        async def scenario():
            walk_to_login(controller)
            await controller.login(VERIFIED_EMAIL, PASSWORD)

        asyncio.run(scenario())
        assert controller.state == FlowState.HOME
        assert controller.last_error is None

    def test_login_unverified_goes_to_verification(self, provider, controller):
        async def scenario():
            walk_to_login(controller)
            await controller.login(UNVERIFIED_EMAIL, PASSWORD)

        asyncio.run(scenario())
        assert controller.state == FlowState.EMAIL_VERIFICATION
        assert controller.pending_email == UNVERIFIED_EMAIL

    def test_login_failure_surfaces_error(self, provider, controller):
        async def scenario():
            walk_to_login(controller)
            await controller.login(VERIFIED_EMAIL, "wrong")

        with pytest.raises(InvalidCredentialsError):
            asyncio.run(scenario())
        assert controller.state == FlowState.LOGIN
        assert controller.last_error
        controller.clear_error()
        assert controller.last_error is None

    def test_sign_up_then_verify(self, provider, controller):
        async def scenario():
            walk_to_login(controller, UserRole.DIETITIAN)
            controller.dispatch(FlowEvent.SIGN_UP_TAP)
            await controller.sign_up("dee@example.com", PASSWORD)
            assert controller.state == FlowState.EMAIL_VERIFICATION
            assert await controller.check_verification() is False
            assert controller.state == FlowState.EMAIL_VERIFICATION

            await controller.resend_verification()
            provider.confirm_email("dee@example.com")
            return await controller.check_verification()

        assert asyncio.run(scenario()) is True
        assert controller.state == FlowState.HOME
        assert controller.home_role == UserRole.DIETITIAN
        assert provider.outbox.verifications.count("dee@example.com") == 2

    def test_password_reset(self, provider, controller):
        async def scenario():
            walk_to_login(controller)
            controller.dispatch(FlowEvent.FORGOT_PASSWORD_TAP)
            assert controller.state == FlowState.PASSWORD_RESET
            await controller.request_password_reset(VERIFIED_EMAIL)
            await controller.back()

        asyncio.run(scenario())
        assert controller.state == FlowState.LOGIN
        assert provider.outbox.password_resets == [VERIFIED_EMAIL]

    def test_network_failure_is_retryable(self, provider, controller):
        provider.sign_in = AsyncMock(side_effect=NetworkError("offline"))

        async def scenario():
            walk_to_login(controller)
            with pytest.raises(NetworkError):
                await controller.login("x@example.com", PASSWORD)

        asyncio.run(scenario())
        assert controller.state == FlowState.LOGIN
        assert controller.last_error == "offline"


# =============================================================================
# Test Back From Verification
# =============================================================================

class TestVerificationBack:
    """Back from email verification signs out first."""

    def test_back_signs_out(self, provider, controller):
        async def scenario():
            walk_to_login(controller)
            controller.dispatch(FlowEvent.SIGN_UP_TAP)
            await controller.sign_up("fay@example.com", PASSWORD)
            await controller.back()

        asyncio.run(scenario())
        assert controller.state == FlowState.LOGIN
        assert provider.current_session().is_logged_in is False
        assert controller.pending_email is None

    def test_back_when_sign_out_fails(self, provider, controller):
        async def scenario():
            walk_to_login(controller)
            controller.dispatch(FlowEvent.SIGN_UP_TAP)
            await controller.sign_up("gus@example.com", PASSWORD)
            provider.fail_sign_out = True
            await controller.back()

        asyncio.run(scenario())
        assert controller.state == FlowState.LOGIN
        # Sign-out failed, so the provider still holds the session
        assert provider.current_session().is_logged_in is True

    def test_sign_out_called_before_transition(self, provider, controller):
        order = []
        controller.on_change = lambda state: order.append(state)

        async def fake_sign_out():
            order.append("sign_out")
            raise NetworkError("offline")

        provider.sign_out = fake_sign_out
        controller.on_verification_required("hal@example.com")
        asyncio.run(controller.back())
        assert order == [FlowState.EMAIL_VERIFICATION, "sign_out", FlowState.LOGIN]


# =============================================================================
# Test Session Reconciliation
# =============================================================================

class TestReconciliation:
    """Session notifications override the event path."""

    def test_same_session_twice_is_noop(self, provider, controller):
        async def scenario():
            walk_to_login(controller)
            await provider.sign_in(VERIFIED_EMAIL, PASSWORD)

        asyncio.run(scenario())
        assert controller.state == FlowState.HOME
        moves = len(controller.history)
        controller.on_session_changed(provider.current_session())
        provider.sessions.publish(provider.current_session())
        assert len(controller.history) == moves

    def test_logout_from_home(self, provider, controller):
        async def scenario():
            walk_to_login(controller)
            await controller.login(VERIFIED_EMAIL, PASSWORD)
            await provider.sign_out()

        asyncio.run(scenario())
        assert controller.state == FlowState.LOGIN

    def test_verification_required_from_any_state(self, controller):
        controller.dispatch(FlowEvent.CONTINUE)
        controller.on_verification_required("kim@example.com")
        assert controller.state == FlowState.EMAIL_VERIFICATION
        assert controller.pending_email == "kim@example.com"
        controller.on_verification_required("kim@example.com")
        assert len(controller.history) == 2

    def test_start_reconciles_existing_session(self, provider, settings):
        async def scenario():
            await provider.sign_in(VERIFIED_EMAIL, PASSWORD)

        asyncio.run(scenario())
        controller = FlowController(provider.sessions, provider, settings=settings)
        controller.start()
        assert controller.state == FlowState.HOME

    def test_stop_detaches(self, provider, controller):
        controller.stop()
        controller.stop()
        assert provider.sessions.listener_count == 0
        provider.sessions.notify_verification_required("x@example.com")
        assert controller.state == FlowState.SPLASH
