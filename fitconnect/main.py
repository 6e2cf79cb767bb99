"""
FitConnect flow core

Composition root: wires the document store, identity provider,
session store and flow controller from settings.
"""

import logging
import sys
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from fitconnect.config import Settings, settings as default_settings
from fitconnect.db import SqlDocumentStore, create_engine_for, create_session_factory, init_models
from fitconnect.features.auth import FlowController, InMemoryIdentityProvider, OnboardingPreferences, SessionStore
from fitconnect.features.challenges import (
    ChallengeProgressSubscription,
    ChallengeRepository,
    LeaderboardRepository,
    UserChallengeRepository,
)
from fitconnect.shared.document_store import DocumentStore, InMemoryDocumentStore

logger = logging.getLogger(__name__)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging once at startup."""
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@dataclass
class FitConnectApp:
    """Wired application objects."""

    settings: Settings
    store: DocumentStore
    sessions: SessionStore
    identity: InMemoryIdentityProvider
    controller: FlowController
    challenges: ChallengeRepository
    user_challenges: UserChallengeRepository
    leaderboards: LeaderboardRepository
    engine: Optional[AsyncEngine] = None

    def challenge_progress(self, challenge_id: str, on_update=None) -> ChallengeProgressSubscription:
        """New progress subscription for one challenge screen."""
        return ChallengeProgressSubscription(self.store, challenge_id, on_update=on_update)

    async def close(self) -> None:
        self.controller.stop()
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database engine disposed")


async def create_app(settings: Optional[Settings] = None) -> FitConnectApp:
    """
    Build the application.

    Args:
        settings: Settings override (defaults to environment settings)

    Returns:
        FitConnectApp with the controller started
    """
    settings = settings or default_settings

    engine = None
    if settings.document_backend == "sql":
        engine = create_engine_for(settings.database_url)
        await init_models(engine)
        store: DocumentStore = SqlDocumentStore(create_session_factory(engine))
        logger.info("Using SQL document store")
    else:
        store = InMemoryDocumentStore()
        logger.info("Using in-memory document store")

    sessions = SessionStore()
    identity = InMemoryIdentityProvider(sessions, iterations=settings.password_hash_iterations)
    controller = FlowController(
        sessions,
        identity,
        preferences=OnboardingPreferences(settings.onboarding_state_path),
        settings=settings,
    )
    controller.start()

    return FitConnectApp(
        settings=settings,
        store=store,
        sessions=sessions,
        identity=identity,
        controller=controller,
        challenges=ChallengeRepository(store),
        user_challenges=UserChallengeRepository(store),
        leaderboards=LeaderboardRepository(store),
        engine=engine,
    )
