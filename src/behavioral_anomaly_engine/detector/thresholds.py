"""Cold-start analyzer using fixed absolute thresholds.

Until a player has a personalized baseline, sessions are judged against
limits no human player is expected to cross.
"""

from __future__ import annotations

import logging
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

# Reaction floor in milliseconds
MIN_HUMAN_REACTION_MS = 80.0

# Uniform motion: std-dev below this while moving faster than the velocity floor
MIN_VELOCITY_STD_DEV = 0.3
CONSISTENCY_VELOCITY_FLOOR = 2.0
# Reported reference value for the too_consistent flag
CONSISTENCY_REFERENCE_STD_DEV = 0.5

# Straight-line movement percentages
STRAIGHT_LINE_RATIO_LIMIT = 60.0
STRAIGHT_LINE_RATIO_CRITICAL = 75.0
# Reported reference value for the straight_lines flag
STRAIGHT_LINE_REFERENCE = 40.0


class ThresholdAnalyzer:
    """Analyzer for players without an established baseline.

    Rules (each evaluated independently):
    - minimum reaction time under 80 ms -> inhuman_reaction (critical)
    - velocity std-dev under 0.3 with mean velocity over 2 -> too_consistent (high)
    - straight-line ratio over 60% -> straight_lines (high, critical over 75%)

    A minimum reaction time of 0 means the summarizer did not measure one
    and never fires the reaction rule.

    Example:
        ```python
        analyzer = ThresholdAnalyzer()
        result = analyzer.analyze(session)
        if result.is_anomalous:
            ...
        ```
    """

    def analyze(
        self,
        session: BehavioralSession,
        baseline: Baseline | None = None,
    ) -> AnalysisResult:
        """Analyze a session against absolute thresholds.

        Args:
            session: Session summary to analyze.
            baseline: Ignored; accepted so both analyzers share a signature.

        Returns:
            AnalysisResult with a baseline deviation of 0.
        """
        flags = self.check_flags(session)
        result = build_verdict(flags, session.overall_anomaly_score)

        if flags:
            logger.debug(
                "Cold-start analysis raised %d flag(s): %s -> %s",
                len(flags),
                ", ".join(f.flag_type.value for f in flags),
                result.risk_level.value,
            )
        return result

    def check_flags(self, session: BehavioralSession) -> list[AnomalyFlag]:
        """Evaluate every absolute rule against the session.

        Args:
            session: Session summary to check.

        Returns:
            List of flags raised, in rule order.
        """
        flags: list[AnomalyFlag] = []

        min_reaction = session.min_reaction_time
        if 0 < min_reaction < MIN_HUMAN_REACTION_MS:
            flags.append(
                AnomalyFlag(
                    flag_type=FlagType.INHUMAN_REACTION,
                    description=(
                        f"Minimum reaction time {min_reaction:.0f}ms "
                        f"(below {MIN_HUMAN_REACTION_MS:.0f}ms is not humanly possible)"
                    ),
                    severity=Severity.CRITICAL,
                    value=min_reaction,
                    threshold=MIN_HUMAN_REACTION_MS,
                )
            )

        if (
            session.velocity_std_dev < MIN_VELOCITY_STD_DEV
            and session.avg_mouse_velocity > CONSISTENCY_VELOCITY_FLOOR
        ):
            flags.append(
                AnomalyFlag(
                    flag_type=FlagType.TOO_CONSISTENT,
                    description=(
                        f"Mouse movement too uniform (std-dev {session.velocity_std_dev:.2f})"
                    ),
                    severity=Severity.HIGH,
                    value=session.velocity_std_dev,
                    threshold=CONSISTENCY_REFERENCE_STD_DEV,
                )
            )

        ratio = session.straight_line_ratio
        if ratio > STRAIGHT_LINE_RATIO_LIMIT:
            flags.append(
                AnomalyFlag(
                    flag_type=FlagType.STRAIGHT_LINES,
                    description=f"{ratio:.0f}% of movements in straight lines",
                    severity=(
                        Severity.CRITICAL if ratio > STRAIGHT_LINE_RATIO_CRITICAL else Severity.HIGH
                    ),
                    value=ratio,
                    threshold=STRAIGHT_LINE_REFERENCE,
                )
            )

        return flags
