"""
Live challenge progress.

One ChallengeProgressSubscription per displayed challenge: it mirrors
the user's progress record while the screen is visible and performs
the join/leave writes.
"""

import logging
from typing import Callable, Optional

from fitconnect.shared.document_store import DocumentStore
from fitconnect.shared.errors import NetworkError, NotAuthenticatedError, WriteError
from fitconnect.shared.subscription import LiveDocumentSubscription, SubscriptionState

from .models import Challenge, UserChallenge
from .repository import ChallengeRepository, UserChallengeRepository, user_challenges_collection

logger = logging.getLogger(__name__)


class ChallengeProgressSubscription(LiveDocumentSubscription[UserChallenge]):
    """
    Live view of one user's progress on one challenge.

    Usage:
        progress = ChallengeProgressSubscription(store, challenge.id)
        progress.on_show(session.user_id)
        if not progress.state.joined:
            await progress.join(session.user_id, challenge)
        ...
        progress.on_hide()
    """

    model = UserChallenge

    def __init__(
        self,
        store: DocumentStore,
        challenge_id: str,
        on_update: Optional[Callable[[SubscriptionState[UserChallenge]], None]] = None,
    ):
        super().__init__(store, challenge_id, on_update=on_update)
        self.challenges = ChallengeRepository(store)
        self.records = UserChallengeRepository(store)

    def collection_for(self, user_id: str) -> str:
        return user_challenges_collection(user_id)

    @property
    def progress(self) -> Optional[UserChallenge]:
        return self.state.record

    async def join(self, user_id: str, challenge: Challenge) -> Optional[UserChallenge]:
        """
        Join the challenge and resubscribe.

        Existing progress is never reset. An existing record that cannot
        be decoded is left in place and None is returned; the listener
        then reports it as data unavailable. On a write or network
        failure `joined` stays False, the error is kept in `state.error`
        and re-raised so the user can retry.

        Raises:
            NotAuthenticatedError: empty user id
            ValueError: challenge is not the one this subscription watches
        """
        if not user_id:
            raise NotAuthenticatedError("Cannot join without a signed-in user")
        if challenge.id != self.entity_id:
            raise ValueError(f"Challenge {challenge.id} does not match subscription for {self.entity_id}")
        self.state.error = None
        try:
            record, created = await self.records.join(user_id, challenge)
        except (WriteError, NetworkError) as e:
            logger.warning(f"Join of {challenge.id} failed: {e}")
            self.state.joined = False
            self.state.error = str(e)
            self._emit()
            raise

        if created:
            try:
                await self.challenges.increment_participants(challenge.id)
            except Exception as e:
                # Participant count is display-only
                logger.warning(f"Could not update participant count for {challenge.id}: {e}")

        self.subscribe(user_id)
        return record

    async def leave(self, user_id: str) -> None:
        """Delete the progress record; the listener then reports not joined."""
        if not user_id:
            raise NotAuthenticatedError("Cannot leave without a signed-in user")
        self.state.error = None
        try:
            left = await self.records.leave(user_id, self.entity_id)
        except (WriteError, NetworkError) as e:
            logger.warning(f"Leave of {self.entity_id} failed: {e}")
            self.state.error = str(e)
            self._emit()
            raise
        if not left:
            return
        try:
            await self.challenges.increment_participants(self.entity_id, -1)
        except Exception as e:
            logger.warning(f"Could not update participant count for {self.entity_id}: {e}")
