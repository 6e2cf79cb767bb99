"""
Challenge repositories.

Data access layer for challenge templates, per-user progress and
leaderboards.
"""

import logging
from datetime import datetime
from typing import Optional

from fitconnect.shared.document_store import DocumentStore
from fitconnect.shared.errors import DecodeError, NotAuthenticatedError, NotFoundError
from fitconnect.shared.repository import DocumentRepository

from .models import Challenge, LeaderboardEntry, UserChallenge, utcnow

logger = logging.getLogger(__name__)

CHALLENGES_COLLECTION = "challenges"
LEADERBOARD_LIMIT = 100


def user_challenges_collection(user_id: str) -> str:
    """Collection holding one user's progress records, keyed by challenge id."""
    return f"userChallenges/{user_id}/challenges"


def leaderboard_collection(challenge_id: str) -> str:
    """Collection holding one challenge's leaderboard, keyed by user id."""
    return f"leaderboards/{challenge_id}/entries"


def _require_user(user_id: str) -> None:
    if not user_id:
        raise NotAuthenticatedError("User id is empty")


class ChallengeRepository(DocumentRepository[Challenge]):
    """Repository for challenge templates."""

    def __init__(self, store: DocumentStore):
        super().__init__(store, CHALLENGES_COLLECTION, Challenge)

    async def list_active(self, limit: Optional[int] = None) -> list[Challenge]:
        """
        Get active challenges, newest first.

        Args:
            limit: Maximum challenges to return

        Returns:
            Decodable active challenges ordered by created_at descending
        """
        return await self.find(
            filters={"is_active": True},
            order_by="created_at",
            descending=True,
            limit=limit,
        )

    async def get(self, challenge_id: str) -> Challenge:
        return await self.get_by_id(challenge_id)

    async def increment_participants(self, challenge_id: str, delta: int = 1) -> int:
        """
        Adjust participant count (read-modify-write, not atomic).

        Returns:
            New participant count
        """
        document = await self.store.get_document(self.collection, challenge_id)
        current = document.data.get("participant_count") or 0
        new_count = max(0, int(current) + delta)
        await self.update(challenge_id, participant_count=new_count)
        return new_count


class LeaderboardRepository:
    """Repository for per-challenge leaderboards."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def for_challenge(self, challenge_id: str) -> DocumentRepository[LeaderboardEntry]:
        return DocumentRepository(self.store, leaderboard_collection(challenge_id), LeaderboardEntry)

    async def record(
        self,
        challenge_id: str,
        user_id: str,
        progress: float,
        user_name: Optional[str] = None,
        user_avatar: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaderboardEntry:
        """Replace the user's leaderboard entry with their latest progress."""
        _require_user(user_id)
        entry = LeaderboardEntry(
            user_id=user_id,
            user_name=user_name or "Anonymous",
            user_avatar=user_avatar,
            progress=progress,
            last_updated=now or utcnow(),
        )
        return await self.for_challenge(challenge_id).save(user_id, entry)

    async def fetch_leaderboard(self, challenge_id: str, limit: int = LEADERBOARD_LIMIT) -> list[LeaderboardEntry]:
        """
        Get leaderboard entries, highest progress first.

        Args:
            challenge_id: Challenge to rank
            limit: Maximum entries to return

        Returns:
            Decodable entries ordered by progress descending
        """
        return await self.for_challenge(challenge_id).find(
            order_by="progress",
            descending=True,
            limit=limit,
        )


class UserChallengeRepository:
    """Repository for per-user progress records."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.leaderboards = LeaderboardRepository(store)

    def for_user(self, user_id: str) -> DocumentRepository[UserChallenge]:
        _require_user(user_id)
        return DocumentRepository(self.store, user_challenges_collection(user_id), UserChallenge)

    async def get(self, user_id: str, challenge_id: str) -> Optional[UserChallenge]:
        return await self.for_user(user_id).get_optional(challenge_id)

    async def join(
        self,
        user_id: str,
        challenge: Challenge,
        now: Optional[datetime] = None,
    ) -> tuple[Optional[UserChallenge], bool]:
        """
        Create the user's progress record unless it already exists.

        Check-then-write: two racing joins may both write, but an existing
        record is never replaced.

        Args:
            user_id: Joining user
            challenge: Template to copy display fields from
            now: Timestamp override

        Returns:
            Tuple of (record, created). created is False if the user had
            already joined; record is None if that existing record cannot
            be decoded.
        """
        if not challenge.id:
            raise NotFoundError(CHALLENGES_COLLECTION, "")
        records = self.for_user(user_id)

        try:
            document = await self.store.get_document(records.collection, challenge.id)
        except NotFoundError:
            document = None
        if document is not None:
            logger.debug(f"User {user_id} already joined {challenge.id}")
            try:
                return records.decode(document), False
            except DecodeError as e:
                logger.warning(f"Keeping unreadable progress record on join: {e}")
                return None, False

        record = UserChallenge.from_template(challenge, user_id, now)
        await records.save(challenge.id, record)
        logger.info(f"User {user_id} joined challenge {challenge.id}")
        return record, True

    async def leave(self, user_id: str, challenge_id: str) -> bool:
        """
        Delete the user's progress record.

        Returns:
            True if a record existed
        """
        records = self.for_user(user_id)
        try:
            await self.store.get_document(records.collection, challenge_id)
        except NotFoundError:
            return False
        await records.delete(challenge_id)
        logger.info(f"User {user_id} left challenge {challenge_id}")
        return True

    async def update_progress(
        self,
        user_id: str,
        challenge_id: str,
        value: float,
        now: Optional[datetime] = None,
        user_name: Optional[str] = None,
    ) -> UserChallenge:
        """
        Set progress; completes the challenge once the target is reached.

        The user's leaderboard entry is rewritten with the new value.

        Raises:
            NotFoundError: if the user has not joined
        """
        records = self.for_user(user_id)
        record = await records.get_by_id(challenge_id)
        now = now or utcnow()

        updates = {"progress_value": value, "last_updated": now}
        target = record.challenge_target_value or 0
        if target > 0 and value >= target and not record.is_completed:
            updates.update(is_completed=True, completed_date=now)
            logger.info(f"User {user_id} completed challenge {challenge_id}")

        record = await records.save(challenge_id, record.model_copy(update=updates))
        await self.leaderboards.record(challenge_id, user_id, value, user_name=user_name, now=now)
        return record

    async def list_for_user(
        self,
        user_id: str,
        completed: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> list[UserChallenge]:
        """
        Get the user's progress records.

        Completed records come most recently completed first.
        """
        filters = {"is_completed": completed} if completed is not None else None
        order_by = "completed_date" if completed else None
        return await self.for_user(user_id).find(
            filters=filters,
            order_by=order_by,
            descending=bool(order_by),
            limit=limit,
        )
