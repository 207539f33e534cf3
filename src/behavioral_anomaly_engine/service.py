"""Session ingestion service.

This module ties the ledger to storage: for each incoming session it loads
(or lazily creates) the player's profile, applies the session, and writes
the profile back in a single transaction, optionally under a per-player
Redis lock.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from behavioral_anomaly_engine.profiler.ledger import ProfileLedger
from behavioral_anomaly_engine.profiler.models import BehavioralSession
from behavioral_anomaly_engine.storage.locks import PlayerLock
from behavioral_anomaly_engine.storage.repos import (
    BehavioralProfileRepository,
    ProfileNotFoundError,
)

if TYPE_CHECKING:
    from behavioral_anomaly_engine.config import Settings
    from behavioral_anomaly_engine.detector.models import AnalysisResult
    from behavioral_anomaly_engine.profiler.models import AnomalyEntry, BehavioralProfile

logger = logging.getLogger(__name__)


def create_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory for a database URL.

    Plain ``postgresql://`` URLs are switched to the asyncpg driver.
    """
    if database_url.startswith("postgresql://"):
        database_url = "postgresql+asyncpg://" + database_url[len("postgresql://") :]
    engine = create_async_engine(database_url)
    return async_sessionmaker(engine, expire_on_commit=False)


class BehaviorMonitor:
    """Entry point for scoring sessions against persisted profiles.

    Conflicting writes to the same profile surface as
    ProfileConflictError (or LockAcquisitionError when locking is enabled);
    both are marked retryable and no retry is attempted here.

    Example:
        ```python
        monitor = BehaviorMonitor.from_settings(get_settings())
        result = await monitor.record_session("player-42", summary)
        if result.is_anomalous:
            ...
        ```
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        ledger: ProfileLedger | None = None,
        locks: PlayerLock | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            session_factory: Factory for database sessions.
            ledger: Profile ledger. Defaults to ProfileLedger().
            locks: Optional per-player lock. Without it, concurrent writes
                are caught by the repository's version check alone.
        """
        self._session_factory = session_factory
        self._ledger = ledger or ProfileLedger()
        self._locks = locks

    @classmethod
    def from_settings(cls, settings: Settings, *, redis: Redis | None = None) -> BehaviorMonitor:
        """Create a monitor from application settings.

        Args:
            settings: Application settings.
            redis: Redis client to use for locks. When omitted and
                REDIS_URL is set, a client is created from it.
        """
        logger.debug("Behavior monitor settings: %s", settings.redacted_summary())

        if redis is None and settings.redis.enabled:
            redis = Redis.from_url(settings.redis.url)

        locks = None
        if redis is not None:
            locks = PlayerLock(
                redis,
                timeout=settings.redis.lock_timeout_seconds,
                blocking_timeout=settings.redis.lock_blocking_timeout_seconds,
            )

        return cls(
            create_session_factory(settings.database.url),
            ledger=ProfileLedger.from_settings(settings.detection),
            locks=locks,
        )

    def _guard(self, player_id: str) -> contextlib.AbstractAsyncContextManager[None]:
        if self._locks is None:
            return contextlib.nullcontext()
        return self._locks.hold(player_id)

    async def record_session(
        self,
        player_id: str,
        session: BehavioralSession | dict[str, Any],
    ) -> AnalysisResult:
        """Score a session and persist the updated profile.

        Args:
            player_id: Player the session belongs to.
            session: Session summary, or a raw summarizer record.

        Returns:
            The session's AnalysisResult.

        Raises:
            ProfileConflictError: If another writer updated the profile first.
            LockAcquisitionError: If the player's lock stayed busy.
        """
        if isinstance(session, dict):
            session = BehavioralSession.from_dict(session)

        async with self._guard(player_id):
            async with self._session_factory() as db, db.begin():
                repo = BehavioralProfileRepository(db)
                profile = await repo.get_by_player(player_id)
                if profile is None:
                    logger.debug("Creating behavioral profile for player %s", player_id)
                    profile = self._ledger.create_profile(player_id)

                result = self._ledger.add_session(profile, session)
                await repo.save(profile)

        return result

    async def get_profile(self, player_id: str) -> BehavioralProfile | None:
        """Load a player's profile, if one exists."""
        async with self._session_factory() as db:
            return await BehavioralProfileRepository(db).get_by_player(player_id)

    async def review_anomaly(
        self,
        player_id: str,
        entry_index: int,
        reviewer_id: str,
        *,
        notes: str | None = None,
        false_positive: bool = False,
    ) -> AnomalyEntry:
        """Record a reviewer's decision on one of a player's anomaly entries.

        Raises:
            ProfileNotFoundError: If the player has no profile.
            IndexError: If the entry does not exist.
            ProfileConflictError: If another writer updated the profile first.
        """
        async with self._guard(player_id):
            async with self._session_factory() as db, db.begin():
                repo = BehavioralProfileRepository(db)
                profile = await repo.get_by_player(player_id)
                if profile is None:
                    raise ProfileNotFoundError(player_id)

                entry = self._ledger.review_anomaly(
                    profile,
                    entry_index,
                    reviewer_id,
                    notes=notes,
                    false_positive=false_positive,
                )
                await repo.save(profile)

        logger.info(
            "Anomaly %d for player %s reviewed by %s (false_positive=%s)",
            entry_index,
            player_id,
            reviewer_id,
            false_positive,
        )
        return entry
