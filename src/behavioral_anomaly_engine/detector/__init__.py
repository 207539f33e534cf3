"""Session analysis layer - Rule-based anomaly flags and verdict tiering."""

from behavioral_anomaly_engine.detector.deviation import DeviationAnalyzer, DeviationReport
from behavioral_anomaly_engine.detector.dispatch import (
    SessionAnalyzer,
    analyze_session,
    select_analyzer,
)
from behavioral_anomaly_engine.detector.models import (
    AnalysisResult,
    AnomalyFlag,
    FlagType,
    RiskLevel,
    Severity,
)
from behavioral_anomaly_engine.detector.thresholds import ThresholdAnalyzer

__all__ = [
    "AnalysisResult",
    "AnomalyFlag",
    "DeviationAnalyzer",
    "DeviationReport",
    "FlagType",
    "RiskLevel",
    "SessionAnalyzer",
    "Severity",
    "ThresholdAnalyzer",
    "analyze_session",
    "select_analyzer",
]
