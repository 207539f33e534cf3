"""Personalized baseline estimation from clean session history.

The baseline is established once and never recalculated. Recomputing it
from recent sessions would let a player drift it toward assisted play one
small step at a time, so later sessions are only ever compared with the
behavior recorded before the baseline was frozen.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

import numpy as np

from behavioral_anomaly_engine.profiler.models import (
    BASELINE_METRICS,
    Baseline,
    BehavioralSession,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_MIN_SESSIONS = 10
DEFAULT_MIN_CLEAN_SESSIONS = 5
DEFAULT_CLEAN_SCORE_CEILING = 30.0
DEFAULT_CLEAN_MIN_SAMPLES = 100
CONFIDENCE_PER_SESSION = 10
MAX_CONFIDENCE = 100


class BaselineEstimator:
    """Builds a player's baseline from sessions that look clean.

    A session is a clean candidate when its composite anomaly score is
    below the ceiling and it carries enough samples. With fewer clean
    candidates than required the estimator defers without changing
    anything; it tries again on the next session.

    Example:
        ```python
        estimator = BaselineEstimator()
        baseline = estimator.estimate(profile.sessions, profile.baseline)
        if baseline is not None:
            profile.baseline = baseline
        ```
    """

    def __init__(
        self,
        *,
        min_sessions: int = DEFAULT_MIN_SESSIONS,
        min_clean_sessions: int = DEFAULT_MIN_CLEAN_SESSIONS,
        clean_score_ceiling: float = DEFAULT_CLEAN_SCORE_CEILING,
        clean_min_samples: int = DEFAULT_CLEAN_MIN_SAMPLES,
    ) -> None:
        """Initialize the baseline estimator.

        Args:
            min_sessions: Stored sessions required before estimating.
            min_clean_sessions: Clean candidates required to establish.
            clean_score_ceiling: Composite score a clean session stays below.
            clean_min_samples: Sample count a clean session must reach.
        """
        self._min_sessions = min_sessions
        self._min_clean_sessions = min_clean_sessions
        self._clean_score_ceiling = clean_score_ceiling
        self._clean_min_samples = clean_min_samples

    @property
    def min_sessions(self) -> int:
        """Return the number of stored sessions needed before estimating."""
        return self._min_sessions

    def is_clean(self, session: BehavioralSession) -> bool:
        """Return True if the session qualifies as a baseline candidate."""
        return (
            session.overall_anomaly_score < self._clean_score_ceiling
            and session.sample_count >= self._clean_min_samples
        )

    def select_candidates(self, sessions: Sequence[BehavioralSession]) -> list[BehavioralSession]:
        """Return the clean candidate sessions, in stored order."""
        return [s for s in sessions if self.is_clean(s)]

    def estimate(
        self,
        sessions: Sequence[BehavioralSession],
        current: Baseline,
        *,
        now: datetime | None = None,
    ) -> Baseline | None:
        """Compute an established baseline if possible.

        Args:
            sessions: The player's stored session window.
            current: The player's current baseline.
            now: Timestamp to record as establishment time.

        Returns:
            A new established Baseline, or None if the baseline is already
            established, too few sessions are stored, or too few are clean.
        """
        if current.established or len(sessions) < self._min_sessions:
            return None

        candidates = self.select_candidates(sessions)
        count = len(candidates)
        if count < self._min_clean_sessions:
            logger.debug(
                "Baseline deferred: %d clean session(s) of %d, need %d",
                count,
                len(sessions),
                self._min_clean_sessions,
            )
            return None

        # One row per candidate session, one column per tracked metric
        matrix = np.array(
            [[getattr(s, attr) for attr in BASELINE_METRICS.values()] for s in candidates],
            dtype=float,
        )
        means = matrix.mean(axis=0)

        baseline = Baseline(
            established=True,
            established_at=now or datetime.now(UTC),
            session_count=count,
            confidence=float(min(MAX_CONFIDENCE, count * CONFIDENCE_PER_SESSION)),
            **{name: float(mean) for name, mean in zip(BASELINE_METRICS, means, strict=True)},
        )

        logger.debug(
            "Baseline established from %d clean session(s), confidence=%.0f",
            count,
            baseline.confidence,
        )
        return baseline
