"""SQLAlchemy models for persistent storage.

This module defines the database schema for behavioral profiles: one row
per player, with the rolling windows and nested records stored as JSON
documents and the fields used by review queries kept as plain columns.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class BehavioralProfileModel(Base):
    """SQLAlchemy model for behavioral profiles.

    ``version`` is incremented on every save and checked on update so that
    two writers working from the same snapshot cannot both succeed.
    """

    __tablename__ = "behavioral_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    baseline: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    baseline_established: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sessions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    anomaly_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    trust_score: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    trust_score_value: Mapped[int] = mapped_column(Integer, nullable=False, default=50)

    total_sessions_recorded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_anomalies_detected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_session_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_anomaly_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_behavioral_profiles_trust", "trust_score_value"),
        Index("idx_behavioral_profiles_last_anomaly", "last_anomaly_at"),
        Index("idx_behavioral_profiles_anomalies", "total_anomalies_detected"),
    )
