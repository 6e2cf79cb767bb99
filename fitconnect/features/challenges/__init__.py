"""
Challenges module.

Usage:
    from fitconnect.features.challenges import Challenge, ChallengeProgressSubscription

Models:
- Challenge: shared challenge template
- UserChallenge: per-user progress record
- LeaderboardEntry: per-challenge ranking row

Repositories:
- ChallengeRepository: templates (active list, participant count)
- UserChallengeRepository: idempotent join, leave, progress updates
- LeaderboardRepository: leaderboard entries ranked by progress

Live sync:
- ChallengeProgressSubscription: progress listener bound to screen visibility
"""
from .models import Challenge, ChallengeUnit, LeaderboardEntry, UserChallenge
from .repository import (
    CHALLENGES_COLLECTION,
    LEADERBOARD_LIMIT,
    ChallengeRepository,
    LeaderboardRepository,
    UserChallengeRepository,
    leaderboard_collection,
    user_challenges_collection,
)
from .subscription import ChallengeProgressSubscription

__all__ = [
    # Models
    "Challenge",
    "ChallengeUnit",
    "LeaderboardEntry",
    "UserChallenge",
    # Repositories
    "CHALLENGES_COLLECTION",
    "LEADERBOARD_LIMIT",
    "ChallengeRepository",
    "LeaderboardRepository",
    "UserChallengeRepository",
    "leaderboard_collection",
    "user_challenges_collection",
    # Live sync
    "ChallengeProgressSubscription",
]
