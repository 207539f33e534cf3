"""Player profiling layer - Baselines, trust scores and rolling history."""

from behavioral_anomaly_engine.profiler.baseline import BaselineEstimator
from behavioral_anomaly_engine.profiler.ledger import ProfileLedger
from behavioral_anomaly_engine.profiler.models import (
    AnomalyEntry,
    AnomalyReview,
    Baseline,
    BehavioralProfile,
    BehavioralSession,
    MatchType,
    TrustScore,
)

__all__ = [
    "AnomalyEntry",
    "AnomalyReview",
    "Baseline",
    "BaselineEstimator",
    "BehavioralProfile",
    "BehavioralSession",
    "MatchType",
    "ProfileLedger",
    "TrustScore",
]
