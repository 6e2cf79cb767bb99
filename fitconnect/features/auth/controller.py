"""
Onboarding / Auth Flow Controller

Owns the active FlowState. UI events move it through the transition
table; session notifications from the identity provider override the
event path whenever the active screen no longer fits the session.
"""

import logging
from typing import Callable, Optional

from fitconnect.config import Settings, settings as default_settings
from fitconnect.shared.errors import FitConnectError

from .identity import IdentityProvider
from .preferences import OnboardingPreferences
from .session import SessionState, SessionStore, UserRole
from .states import FlowEvent, FlowState, next_state, target_for_session

logger = logging.getLogger(__name__)


class FlowController:
    """
    State machine for splash → intro → auth → home.

    All mutation happens on the event loop thread: UI events call
    `dispatch` or the async actions, the identity provider calls the
    session listeners.

    Usage:
        controller = FlowController(provider.sessions, provider)
        controller.start()
        controller.dispatch(FlowEvent.CONTINUE)
        await controller.login(email, password)
        ...
        controller.stop()
    """

    def __init__(
        self,
        session_store: SessionStore,
        identity: IdentityProvider,
        preferences: Optional[OnboardingPreferences] = None,
        settings: Optional[Settings] = None,
        on_change: Optional[Callable[[FlowState], None]] = None,
    ):
        self.sessions = session_store
        self.identity = identity
        self.preferences = preferences or OnboardingPreferences()
        self.settings = settings or default_settings
        self.on_change = on_change

        self.state = FlowState.SPLASH
        self.selected_role: Optional[UserRole] = None
        self.pending_email: Optional[str] = None
        self.last_error: Optional[str] = None
        self.history: list[tuple[FlowState, str, FlowState]] = []

        self._detach: list[Callable[[], None]] = []

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Attach to session notifications and reconcile with the current session."""
        if self._detach:
            return
        self._detach = [
            self.sessions.subscribe(self.on_session_changed),
            self.sessions.subscribe_verification_required(self.on_verification_required),
        ]
        self.on_session_changed(self.sessions.state)

    def stop(self) -> None:
        for detach in self._detach:
            detach()
        self._detach = []

    @property
    def home_role(self) -> UserRole:
        """Role whose home screen is shown: session, then chosen, then default."""
        session_role = self.sessions.state.role
        if session_role is not None:
            return session_role
        return self.selected_role or UserRole(self.settings.default_role)

    # =========================================================================
    # Transitions
    # =========================================================================

    def _move(self, target: FlowState, cause: str) -> None:
        previous = self.state
        if target == FlowState.LOGIN and self.selected_role is None:
            self.selected_role = UserRole(self.settings.default_role)
            logger.info(f"No role chosen, defaulting to {self.selected_role.value}")
        self.state = target
        self.history.append((previous, cause, target))
        logger.debug(f"Flow {previous.value} -> {target.value} ({cause})")
        if self.on_change is not None:
            self.on_change(target)

    def _session_allows(self, target: FlowState) -> bool:
        """Home needs a verified session, email verification a signed-in one."""
        session = self.sessions.state
        if target == FlowState.HOME:
            return session.is_logged_in and session.is_email_verified
        if target == FlowState.EMAIL_VERIFICATION:
            return session.is_logged_in
        return True

    def dispatch(self, event: FlowEvent) -> bool:
        """
        Apply a UI/auth event.

        Returns:
            True if the state changed, False if the event was ignored
        """
        target = next_state(self.state, event)
        if (
            self.state == FlowState.SPLASH
            and event == FlowEvent.CONTINUE
            and self.settings.skip_seen_onboarding
            and self.preferences.has_seen_onboarding
        ):
            target = FlowState.ROLE_SELECTION
        if target is None or not self._session_allows(target):
            logger.debug(f"Ignoring {event.value} in {self.state.value}")
            return False
        if self.state == FlowState.TERMS and event == FlowEvent.ACCEPT:
            self.preferences.mark_seen()
        self._move(target, event.value)
        return True

    def choose_role(self, role: UserRole) -> bool:
        if self.state != FlowState.ROLE_SELECTION:
            logger.debug(f"Ignoring role choice in {self.state.value}")
            return False
        self.selected_role = role
        return self.dispatch(FlowEvent.ROLE_CHOSEN)

    def on_session_changed(self, session: SessionState) -> None:
        """Jump to where the session says the flow belongs, if it is elsewhere."""
        target = target_for_session(session, self.state)
        if target is None:
            return
        logged_in, verified = session.key
        self._move(target, f"session(logged_in={logged_in}, verified={verified})")

    def on_verification_required(self, email: str) -> None:
        """Out-of-band: verification needed for `email`, from any screen."""
        self.pending_email = email
        if self.state != FlowState.EMAIL_VERIFICATION:
            self._move(FlowState.EMAIL_VERIFICATION, "verification_required")

    # =========================================================================
    # Actions
    # =========================================================================

    def clear_error(self) -> None:
        self.last_error = None

    def _fail(self, action: str, error: Exception) -> None:
        self.last_error = str(error)
        logger.warning(f"{action} failed: {error}")

    async def login(self, email: str, password: str) -> SessionState:
        """Sign in and move to home or email verification."""
        self.clear_error()
        try:
            session = await self.identity.sign_in(email, password)
        except FitConnectError as e:
            self._fail("Login", e)
            raise
        if session.is_email_verified:
            self.dispatch(FlowEvent.LOGIN_SUCCEEDED_VERIFIED)
        else:
            self.pending_email = email
            self.dispatch(FlowEvent.LOGIN_SUCCEEDED_UNVERIFIED)
        return session

    async def sign_up(self, email: str, password: str) -> SessionState:
        """Create an account with the chosen role and wait for verification."""
        self.clear_error()
        role = self.selected_role or UserRole(self.settings.default_role)
        try:
            session = await self.identity.sign_up(email, password, role)
        except FitConnectError as e:
            self._fail("Sign up", e)
            raise
        self.pending_email = email
        self.dispatch(FlowEvent.SIGN_UP_SUCCEEDED)
        return session

    async def request_password_reset(self, email: str) -> None:
        self.clear_error()
        try:
            await self.identity.send_password_reset(email)
        except FitConnectError as e:
            self._fail("Password reset", e)
            raise

    async def resend_verification(self) -> None:
        self.clear_error()
        try:
            await self.identity.send_email_verification()
        except FitConnectError as e:
            self._fail("Resend verification", e)
            raise

    async def check_verification(self) -> bool:
        """Reload the session; go home if the email is now verified."""
        self.clear_error()
        try:
            session = await self.identity.reload_session()
        except FitConnectError as e:
            self._fail("Verification check", e)
            raise
        if session.is_logged_in and session.is_email_verified:
            self.dispatch(FlowEvent.VERIFIED)
            return True
        return False

    async def back(self) -> bool:
        """
        Back navigation.

        From email verification the user is signed out first; a failed
        sign-out is logged and the flow still returns to login.
        """
        if self.state == FlowState.EMAIL_VERIFICATION:
            try:
                await self.identity.sign_out()
            except Exception as e:
                logger.warning(f"Sign out during back navigation failed: {e}")
            self.pending_email = None
            if self.state != FlowState.EMAIL_VERIFICATION:
                # Sign-out notification already moved the flow to login
                return True
        return self.dispatch(FlowEvent.BACK)
