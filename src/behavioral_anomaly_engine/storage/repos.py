"""Repository pattern implementation for behavioral profile access.

This module provides the data access abstraction used by the ingestion
service: load a profile, save it back with an optimistic version check,
and list profiles for reviewer dashboards.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from behavioral_anomaly_engine.profiler.models import (
    AnomalyEntry,
    Baseline,
    BehavioralProfile,
    BehavioralSession,
    TrustScore,
)
from behavioral_anomaly_engine.storage.models import BehavioralProfileModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class BehaviorStorageError(Exception):
    """Base exception for profile storage errors."""

    retryable = False


class ProfileConflictError(BehaviorStorageError):
    """Raised when a profile was changed by another writer since it was loaded.

    The caller should reload the profile and apply its session again.
    """

    retryable = True

    def __init__(self, player_id: str, expected_version: int | None = None) -> None:
        self.player_id = player_id
        self.expected_version = expected_version
        if expected_version is None:
            message = f"Profile for player {player_id} already exists"
        else:
            message = (
                f"Profile for player {player_id} was modified concurrently "
                f"(expected version {expected_version})"
            )
        super().__init__(message)


class ProfileNotFoundError(BehaviorStorageError):
    """Raised when an operation needs a profile that was never created."""

    def __init__(self, player_id: str) -> None:
        self.player_id = player_id
        super().__init__(f"No behavioral profile for player {player_id}")


def _aware(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes returned by SQLite."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def profile_from_model(model: BehavioralProfileModel) -> BehavioralProfile:
    """Create a BehavioralProfile from its SQLAlchemy row."""
    return BehavioralProfile(
        player_id=model.player_id,
        baseline=Baseline.from_dict(model.baseline or {}),
        sessions=[BehavioralSession.from_dict(s) for s in model.sessions or []],
        anomaly_history=[AnomalyEntry.from_dict(a) for a in model.anomaly_history or []],
        total_sessions_recorded=model.total_sessions_recorded,
        total_anomalies_detected=model.total_anomalies_detected,
        last_session_at=_aware(model.last_session_at),
        last_anomaly_at=_aware(model.last_anomaly_at),
        trust_score=TrustScore.from_dict(model.trust_score or {}),
        version=model.version,
    )


def _profile_values(profile: BehavioralProfile) -> dict[str, Any]:
    """Column values for a profile, excluding identity and version."""
    return {
        "baseline": profile.baseline.to_dict(),
        "baseline_established": profile.baseline.established,
        "sessions": [s.to_dict() for s in profile.sessions],
        "anomaly_history": [a.to_dict() for a in profile.anomaly_history],
        "trust_score": profile.trust_score.to_dict(),
        "trust_score_value": profile.trust_score.score,
        "total_sessions_recorded": profile.total_sessions_recorded,
        "total_anomalies_detected": profile.total_anomalies_detected,
        "last_session_at": profile.last_session_at,
        "last_anomaly_at": profile.last_anomaly_at,
    }


class BehavioralProfileRepository:
    """Repository for behavioral profile data access.

    Saves use optimistic concurrency: each row carries a version number,
    and an update only applies if the stored version still matches the one
    the profile was loaded with. A mismatch raises ProfileConflictError.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def get_by_player(self, player_id: str) -> BehavioralProfile | None:
        """Get a behavioral profile by player identifier.

        Args:
            player_id: Player identifier.

        Returns:
            BehavioralProfile if found, None otherwise.
        """
        result = await self.session.execute(
            select(BehavioralProfileModel)
            .where(BehavioralProfileModel.player_id == player_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return profile_from_model(model) if model else None

    async def create(self, profile: BehavioralProfile) -> BehavioralProfile:
        """Insert a new profile.

        Args:
            profile: Profile that has never been saved (version 0).

        Returns:
            The profile with its version set to 1.

        Raises:
            ProfileConflictError: If a profile already exists for the player.
        """
        now = datetime.now(UTC)
        model = BehavioralProfileModel(
            player_id=profile.player_id,
            version=1,
            created_at=now,
            updated_at=now,
            **_profile_values(profile),
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as e:
            logger.warning("Concurrent profile creation for player %s", profile.player_id)
            raise ProfileConflictError(profile.player_id) from e

        profile.version = 1
        return profile

    async def save(self, profile: BehavioralProfile) -> BehavioralProfile:
        """Persist a profile, creating it on first save.

        Args:
            profile: Profile loaded from (or new to) this repository.

        Returns:
            The profile with its version advanced.

        Raises:
            ProfileConflictError: If the stored version no longer matches.
        """
        if profile.version == 0:
            return await self.create(profile)

        expected = profile.version
        result = await self.session.execute(
            update(BehavioralProfileModel)
            .where(
                BehavioralProfileModel.player_id == profile.player_id,
                BehavioralProfileModel.version == expected,
            )
            .values(
                version=expected + 1,
                updated_at=datetime.now(UTC),
                **_profile_values(profile),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Stale profile write for player %s (version %d)", profile.player_id, expected
            )
            raise ProfileConflictError(profile.player_id, expected)

        profile.version = expected + 1
        return profile

    async def get_lowest_trust(self, limit: int = 50) -> list[BehavioralProfile]:
        """Get profiles with the lowest trust scores.

        Args:
            limit: Maximum number of results.

        Returns:
            List of BehavioralProfiles, least trusted first.
        """
        result = await self.session.execute(
            select(BehavioralProfileModel)
            .order_by(BehavioralProfileModel.trust_score_value.asc())
            .limit(limit)
        )
        return [profile_from_model(m) for m in result.scalars().all()]

    async def get_recent_anomalies(self, limit: int = 50) -> list[BehavioralProfile]:
        """Get profiles with the most recent anomalies.

        Args:
            limit: Maximum number of results.

        Returns:
            List of BehavioralProfiles that have anomalies, newest first.
        """
        result = await self.session.execute(
            select(BehavioralProfileModel)
            .where(BehavioralProfileModel.last_anomaly_at.is_not(None))
            .order_by(BehavioralProfileModel.last_anomaly_at.desc())
            .limit(limit)
        )
        return [profile_from_model(m) for m in result.scalars().all()]

    async def get_most_flagged(self, limit: int = 50) -> list[BehavioralProfile]:
        """Get profiles with the most anomalies detected.

        Args:
            limit: Maximum number of results.

        Returns:
            List of BehavioralProfiles, most anomalies first.
        """
        result = await self.session.execute(
            select(BehavioralProfileModel)
            .where(BehavioralProfileModel.total_anomalies_detected > 0)
            .order_by(BehavioralProfileModel.total_anomalies_detected.desc())
            .limit(limit)
        )
        return [profile_from_model(m) for m in result.scalars().all()]
