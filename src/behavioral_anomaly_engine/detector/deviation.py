"""Baseline deviation analyzer.

Once a player has an established baseline, each session is compared with
the player's own averages rather than with population-wide limits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from behavioral_anomaly_engine.detector.models import (
    AnalysisResult,
    AnomalyFlag,
    FlagType,
    Severity,
)
from behavioral_anomaly_engine.detector.scorer import build_verdict

if TYPE_CHECKING:
    from behavioral_anomaly_engine.profiler.models import Baseline, BehavioralSession

logger = logging.getLogger(__name__)

# Deviation percentages
VELOCITY_DEVIATION_LIMIT = 100.0
VELOCITY_DEVIATION_HIGH = 200.0
ACCELERATION_DEVIATION_LIMIT = 150.0
ACCELERATION_DEVIATION_CRITICAL = 300.0

# Reaction time speed-up in milliseconds
REACTION_SPEEDUP_LIMIT_MS = 50.0
REACTION_SPEEDUP_CRITICAL_MS = 100.0

# Straight-line movement percentages
STRAIGHT_LINE_RATIO_LIMIT = 50.0
STRAIGHT_LINE_RATIO_CRITICAL = 70.0
# Reported reference value for the straight_lines flag
STRAIGHT_LINE_REFERENCE = 30.0

# Micro-corrections below this fraction of the expected count are suspicious
MICRO_CORRECTION_FLOOR = 0.3
DEFAULT_EXPECTED_MICRO_CORRECTIONS = 50.0


def percent_deviation(value: float, reference: float) -> float:
    """Return |value - reference| as a percentage of reference."""
    return abs(value - reference) / reference * 100


@dataclass
class DeviationReport:
    """Per-signal deviations computed for one session.

    Signals whose baseline value is unavailable are absent from
    ``deviations`` and do not count toward the average.
    """

    deviations: dict[str, float] = field(default_factory=dict)
    reaction_speedup_ms: float | None = None

    @property
    def average(self) -> float:
        """Return the mean of the computed deviations (0.0 if none)."""
        if not self.deviations:
            return 0.0
        return sum(self.deviations.values()) / len(self.deviations)


class DeviationAnalyzer:
    """Analyzer for players with an established baseline.

    Rules:
    - velocity deviation over 100% -> velocity_deviation (medium, high over 200%)
    - acceleration deviation over 150% -> acceleration_spike (high, critical over 300%)
    - reaction time more than 50 ms faster than baseline -> reaction_time
      (high, critical over 100 ms); slower reactions never fire
    - straight-line ratio over 50% -> straight_lines (high, critical over 70%)
    - micro-corrections below 30% of the baseline average (50 if unset)
      -> lack_corrections (medium)

    The composite anomaly score supplied with the session can escalate the
    resulting tier but never suppress a flag.
    """

    def analyze(self, session: BehavioralSession, baseline: Baseline) -> AnalysisResult:
        """Analyze a session against the player's baseline.

        Args:
            session: Session summary to analyze.
            baseline: The player's established baseline.

        Returns:
            AnalysisResult with the average deviation across signals.
        """
        report = self.compute_deviations(session, baseline)
        flags = self.check_flags(session, baseline, report)
        result = build_verdict(
            flags,
            session.overall_anomaly_score,
            baseline_deviation=report.average,
            composite_override=True,
        )

        if result.is_anomalous:
            logger.debug(
                "Baseline analysis flagged session: deviation=%.1f%%, flags=%s, risk=%s",
                result.baseline_deviation,
                ", ".join(f.flag_type.value for f in flags) or "(none)",
                result.risk_level.value,
            )
        return result

    def compute_deviations(self, session: BehavioralSession, baseline: Baseline) -> DeviationReport:
        """Compute per-signal percentage deviations from the baseline.

        Args:
            session: Session summary.
            baseline: The player's established baseline.

        Returns:
            DeviationReport with the signals that could be computed.
        """
        report = DeviationReport()

        if baseline.avg_mouse_velocity > 0:
            report.deviations["velocity"] = percent_deviation(
                session.avg_mouse_velocity, baseline.avg_mouse_velocity
            )

        if baseline.avg_acceleration > 0:
            report.deviations["acceleration"] = percent_deviation(
                session.avg_acceleration, baseline.avg_acceleration
            )

        if baseline.avg_reaction_time > 0 and session.avg_reaction_time > 0:
            report.reaction_speedup_ms = baseline.avg_reaction_time - session.avg_reaction_time
            report.deviations["reaction_time"] = percent_deviation(
                session.avg_reaction_time, baseline.avg_reaction_time
            )

        return report

    def check_flags(
        self,
        session: BehavioralSession,
        baseline: Baseline,
        report: DeviationReport,
    ) -> list[AnomalyFlag]:
        """Evaluate every baseline rule against the session.

        Args:
            session: Session summary.
            baseline: The player's established baseline.
            report: Deviations computed by compute_deviations.

        Returns:
            List of flags raised, in rule order.
        """
        flags: list[AnomalyFlag] = []

        velocity_dev = report.deviations.get("velocity")
        if velocity_dev is not None and velocity_dev > VELOCITY_DEVIATION_LIMIT:
            flags.append(
                AnomalyFlag(
                    flag_type=FlagType.VELOCITY_DEVIATION,
                    description=f"Mouse velocity {velocity_dev:.0f}% away from baseline",
                    severity=(
                        Severity.HIGH if velocity_dev > VELOCITY_DEVIATION_HIGH else Severity.MEDIUM
                    ),
                    value=session.avg_mouse_velocity,
                    threshold=baseline.avg_mouse_velocity,
                )
            )

        accel_dev = report.deviations.get("acceleration")
        if accel_dev is not None and accel_dev > ACCELERATION_DEVIATION_LIMIT:
            flags.append(
                AnomalyFlag(
                    flag_type=FlagType.ACCELERATION_SPIKE,
                    description=(
                        f"Acceleration {accel_dev:.0f}% away from baseline (possible aim snaps)"
                    ),
                    severity=(
                        Severity.CRITICAL
                        if accel_dev > ACCELERATION_DEVIATION_CRITICAL
                        else Severity.HIGH
                    ),
                    value=session.avg_acceleration,
                    threshold=baseline.avg_acceleration,
                )
            )

        speedup = report.reaction_speedup_ms
        if speedup is not None and speedup > REACTION_SPEEDUP_LIMIT_MS:
            flags.append(
                AnomalyFlag(
                    flag_type=FlagType.REACTION_TIME,
                    description=f"Reaction time {speedup:.0f}ms faster than usual",
                    severity=(
                        Severity.CRITICAL
                        if speedup > REACTION_SPEEDUP_CRITICAL_MS
                        else Severity.HIGH
                    ),
                    value=session.avg_reaction_time,
                    threshold=baseline.avg_reaction_time,
                )
            )

        ratio = session.straight_line_ratio
        if ratio > STRAIGHT_LINE_RATIO_LIMIT:
            flags.append(
                AnomalyFlag(
                    flag_type=FlagType.STRAIGHT_LINES,
                    description=f"{ratio:.0f}% of movements in straight lines (possible bot)",
                    severity=(
                        Severity.CRITICAL if ratio > STRAIGHT_LINE_RATIO_CRITICAL else Severity.HIGH
                    ),
                    value=ratio,
                    threshold=STRAIGHT_LINE_REFERENCE,
                )
            )

        expected_micro = baseline.avg_micro_corrections or DEFAULT_EXPECTED_MICRO_CORRECTIONS
        if session.micro_corrections < expected_micro * MICRO_CORRECTION_FLOOR:
            flags.append(
                AnomalyFlag(
                    flag_type=FlagType.LACK_CORRECTIONS,
                    description="Missing micro-corrections (non-human movement)",
                    severity=Severity.MEDIUM,
                    value=session.micro_corrections,
                    threshold=expected_micro,
                )
            )

        return flags
