"""Persistence layer - Profile documents, optimistic saves and player locks."""

from behavioral_anomaly_engine.storage.locks import LockAcquisitionError, PlayerLock
from behavioral_anomaly_engine.storage.models import Base, BehavioralProfileModel
from behavioral_anomaly_engine.storage.repos import (
    BehavioralProfileRepository,
    BehaviorStorageError,
    ProfileConflictError,
    ProfileNotFoundError,
)

__all__ = [
    "Base",
    "BehaviorStorageError",
    "BehavioralProfileModel",
    "BehavioralProfileRepository",
    "LockAcquisitionError",
    "PlayerLock",
    "ProfileConflictError",
    "ProfileNotFoundError",
]
