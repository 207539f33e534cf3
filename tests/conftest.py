"""Shared fixtures for sessions, baselines and the profile database."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from behavioral_anomaly_engine.profiler.models import Baseline, BehavioralSession
from behavioral_anomaly_engine.storage.models import Base

SESSION_START = datetime(2026, 3, 1, 20, 0, tzinfo=UTC)

# Metrics of an ordinary human session: no cold-start rule fires
CLEAN_METRICS: dict[str, Any] = {
    "avg_mouse_velocity": 5.0,
    "max_mouse_velocity": 14.0,
    "velocity_std_dev": 1.5,
    "avg_acceleration": 2.0,
    "max_acceleration": 6.0,
    "direction_changes": 320.0,
    "micro_corrections": 40.0,
    "straight_line_ratio": 20.0,
    "click_accuracy_zone": 35.0,
    "avg_reaction_time": 250.0,
    "min_reaction_time": 180.0,
    "reaction_time_std_dev": 30.0,
    "avg_key_hold_duration": 95.0,
    "keys_per_minute": 160.0,
    "key_pattern_consistency": 45.0,
    "overall_anomaly_score": 10.0,
    "sample_count": 200,
}


def build_session(**overrides: Any) -> BehavioralSession:
    """Create a clean session with selected metrics overridden."""
    values = {**CLEAN_METRICS, **overrides}
    return BehavioralSession(
        session_start=SESSION_START,
        session_end=SESSION_START + timedelta(minutes=20),
        session_duration_ms=20 * 60 * 1000,
        **values,
    )


@pytest.fixture
def make_session() -> Callable[..., BehavioralSession]:
    """Factory for sessions based on clean human metrics."""
    return build_session


@pytest.fixture
def clean_session() -> BehavioralSession:
    """A session that raises no flags in either analyzer."""
    return build_session()


@pytest.fixture
def established_baseline() -> Baseline:
    """Baseline matching the clean session metrics."""
    return Baseline(
        established=True,
        established_at=SESSION_START,
        session_count=10,
        confidence=100.0,
        avg_mouse_velocity=5.0,
        avg_mouse_velocity_std_dev=1.5,
        avg_acceleration=2.0,
        avg_reaction_time=250.0,
        avg_reaction_time_std_dev=30.0,
        avg_keys_per_minute=160.0,
        avg_micro_corrections=40.0,
        avg_straight_line_ratio=20.0,
    )


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """In-memory database with the profile schema applied."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()
