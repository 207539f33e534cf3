"""Verdict tiering shared by the threshold and deviation analyzers.

This module turns the flags raised for a session into a single verdict:
a risk tier plus an anomalous boolean. Both analyzers use the same policy;
only the deviation analyzer applies the composite-score override.

Tiering:
    any critical flag          -> critical, anomalous
    two or more flags          -> high, anomalous
    exactly one flag           -> medium, anomalous if composite >= 50
    no flags                   -> none

Composite override (deviation mode only):
    composite >= 70            -> anomalous, tier at least high
    composite >= 85            -> anomalous, tier critical
"""

from __future__ import annotations

from collections.abc import Sequence

from behavioral_anomaly_engine.detector.models import (
    AnalysisResult,
    AnomalyFlag,
    RiskLevel,
    Severity,
)

SINGLE_FLAG_ANOMALY_SCORE = 50.0
OVERRIDE_HIGH_SCORE = 70.0
OVERRIDE_CRITICAL_SCORE = 85.0


def max_severity(flags: Sequence[AnomalyFlag]) -> Severity | None:
    """Return the most severe flag severity, or None if there are no flags."""
    if not flags:
        return None
    return max((flag.severity for flag in flags), key=lambda s: s.rank)


def tier_flags(
    flags: Sequence[AnomalyFlag],
    overall_anomaly_score: float,
) -> tuple[RiskLevel, bool]:
    """Map a set of flags to a risk tier.

    Args:
        flags: Flags raised for the session.
        overall_anomaly_score: Composite score supplied with the session,
            used to decide whether a lone flag is anomalous.

    Returns:
        Tuple of (risk_level, is_anomalous).
    """
    if max_severity(flags) == Severity.CRITICAL:
        return RiskLevel.CRITICAL, True
    if len(flags) >= 2:
        return RiskLevel.HIGH, True
    if len(flags) == 1:
        return RiskLevel.MEDIUM, overall_anomaly_score >= SINGLE_FLAG_ANOMALY_SCORE
    return RiskLevel.NONE, False


def apply_composite_override(
    risk_level: RiskLevel,
    is_anomalous: bool,
    overall_anomaly_score: float,
) -> tuple[RiskLevel, bool]:
    """Escalate a verdict based on the composite anomaly score.

    The override never lowers a tier or clears the anomalous flag.

    Args:
        risk_level: Tier derived from the flags.
        is_anomalous: Anomalous decision derived from the flags.
        overall_anomaly_score: Composite score supplied with the session.

    Returns:
        Tuple of (risk_level, is_anomalous) after escalation.
    """
    if overall_anomaly_score >= OVERRIDE_CRITICAL_SCORE:
        return RiskLevel.CRITICAL, True
    if overall_anomaly_score >= OVERRIDE_HIGH_SCORE:
        return risk_level.at_least(RiskLevel.HIGH), True
    return risk_level, is_anomalous


def build_verdict(
    flags: Sequence[AnomalyFlag],
    overall_anomaly_score: float,
    *,
    baseline_deviation: float = 0.0,
    composite_override: bool = False,
) -> AnalysisResult:
    """Combine flags and the composite score into an AnalysisResult.

    Args:
        flags: Flags raised by an analyzer.
        overall_anomaly_score: Composite score supplied with the session.
        baseline_deviation: Mean deviation percentage to report.
        composite_override: Whether the composite score may escalate the tier.

    Returns:
        The session verdict.
    """
    risk_level, is_anomalous = tier_flags(flags, overall_anomaly_score)
    if composite_override:
        risk_level, is_anomalous = apply_composite_override(
            risk_level, is_anomalous, overall_anomaly_score
        )

    return AnalysisResult(
        is_anomalous=is_anomalous,
        risk_level=risk_level,
        baseline_deviation=baseline_deviation,
        flags=tuple(flags),
    )
