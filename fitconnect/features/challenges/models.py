"""
Challenge models.

Models:
- Challenge: shared challenge template (read-only for users)
- UserChallenge: one user's progress on one challenge
- LeaderboardEntry: one user's row on a challenge leaderboard
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ChallengeUnit(str, Enum):
    """Units the app knows how to display. Templates may use others."""
    STEPS = "steps"
    WATER = "water"  # liters
    COUNT = "count"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Challenge(BaseModel):
    """Challenge template."""

    id: Optional[str] = None
    title: str
    description: str = ""
    unit: str = ChallengeUnit.COUNT.value
    target_value: float = Field(gt=0)
    duration_days: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    participant_count: int = 0


class UserChallenge(BaseModel):
    """
    Per-user progress record.

    Template fields are copied in on join so the record can be shown
    without loading the template.
    """

    challenge_id: str
    user_id: str
    progress_value: float = 0.0
    is_completed: bool = False
    completed_date: Optional[datetime] = None
    joined_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    challenge_title: Optional[str] = None
    challenge_description: Optional[str] = None
    challenge_target_value: Optional[float] = None
    challenge_unit: Optional[str] = None

    @classmethod
    def from_template(
        cls,
        challenge: Challenge,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> "UserChallenge":
        """Fresh record: zero progress, not completed, timestamps = now."""
        now = now or utcnow()
        return cls(
            challenge_id=challenge.id,
            user_id=user_id,
            progress_value=0.0,
            is_completed=False,
            joined_date=now,
            last_updated=now,
            challenge_title=challenge.title,
            challenge_description=challenge.description,
            challenge_target_value=challenge.target_value,
            challenge_unit=challenge.unit,
        )

    @property
    def progress_fraction(self) -> float:
        """Progress as 0..1; 0 when the target is unknown."""
        if not self.challenge_target_value or self.challenge_target_value <= 0:
            return 0.0
        return max(0.0, min(self.progress_value / self.challenge_target_value, 1.0))


class LeaderboardEntry(BaseModel):
    """Latest progress of one user, keyed by user id under the challenge."""

    user_id: str
    user_name: str = "Anonymous"
    user_avatar: Optional[str] = None
    progress: float = 0.0
    last_updated: Optional[datetime] = None
