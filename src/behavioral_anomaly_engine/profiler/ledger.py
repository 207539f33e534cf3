"""Profile ledger: folds each analyzed session into a player's profile.

The ledger is the only writer of a profile's rolling windows, counters,
baseline and trust score. It works on an in-memory BehavioralProfile; the
storage layer is responsible for loading and saving it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from behavioral_anomaly_engine.detector.dispatch import analyze_session
from behavioral_anomaly_engine.profiler.baseline import BaselineEstimator
from behavioral_anomaly_engine.profiler.models import (
    DEFAULT_TRUST_SCORE,
    AnomalyEntry,
    BehavioralProfile,
    BehavioralSession,
    TrustScore,
)

if TYPE_CHECKING:
    from behavioral_anomaly_engine.config import DetectionSettings
    from behavioral_anomaly_engine.detector.models import AnalysisResult

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_SESSION_WINDOW = 50
DEFAULT_ANOMALY_WINDOW = 100
DEFAULT_TRUST_REWARD = 1
DEFAULT_TRUST_PENALTY = 5


class ProfileLedger:
    """Applies sessions and reviewer actions to behavioral profiles.

    For every session the ledger:
    1. Runs the threshold or deviation analyzer depending on the baseline
    2. Appends the session with its verdict, evicting the oldest past the window
    3. Updates the session counters
    4. Attempts to establish the baseline once enough sessions exist
    5. Records an anomaly entry and lowers the trust score, or raises it

    Example:
        ```python
        ledger = ProfileLedger()
        profile = ledger.create_profile("player-42")
        result = ledger.add_session(profile, BehavioralSession.from_dict(record))
        print(result.risk_level, profile.trust_score.score)
        ```
    """

    def __init__(
        self,
        *,
        estimator: BaselineEstimator | None = None,
        session_window: int = DEFAULT_SESSION_WINDOW,
        anomaly_window: int = DEFAULT_ANOMALY_WINDOW,
        trust_initial: int = DEFAULT_TRUST_SCORE,
        trust_reward: int = DEFAULT_TRUST_REWARD,
        trust_penalty: int = DEFAULT_TRUST_PENALTY,
    ) -> None:
        """Initialize the ledger.

        Args:
            estimator: Baseline estimator. Defaults to BaselineEstimator().
            session_window: Maximum sessions kept per profile.
            anomaly_window: Maximum anomaly entries kept per profile.
            trust_initial: Trust score given to new profiles.
            trust_reward: Trust points gained per clean session.
            trust_penalty: Trust points lost per flagged session.
        """
        self._estimator = estimator or BaselineEstimator()
        self._session_window = session_window
        self._anomaly_window = anomaly_window
        self._trust_initial = trust_initial
        self._trust_reward = trust_reward
        self._trust_penalty = trust_penalty

    @classmethod
    def from_settings(cls, settings: DetectionSettings) -> ProfileLedger:
        """Create a ledger configured from detection settings."""
        estimator = BaselineEstimator(
            min_sessions=settings.baseline_min_sessions,
            min_clean_sessions=settings.baseline_min_clean_sessions,
            clean_score_ceiling=settings.clean_score_ceiling,
            clean_min_samples=settings.clean_min_samples,
        )
        return cls(
            estimator=estimator,
            session_window=settings.session_window,
            anomaly_window=settings.anomaly_window,
            trust_initial=settings.trust_initial,
            trust_reward=settings.trust_reward,
            trust_penalty=settings.trust_penalty,
        )

    def create_profile(self, player_id: str) -> BehavioralProfile:
        """Create an empty profile for a player seen for the first time."""
        return BehavioralProfile(
            player_id=player_id,
            trust_score=TrustScore(score=self._trust_initial),
        )

    def add_session(
        self,
        profile: BehavioralProfile,
        session: BehavioralSession | dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> AnalysisResult:
        """Analyze a session and fold it into the profile.

        Args:
            profile: Profile to update in place.
            session: Session summary, or a raw summarizer record.
            now: Timestamp for counters and entries. Defaults to now (UTC).

        Returns:
            The session's AnalysisResult.
        """
        if isinstance(session, dict):
            session = BehavioralSession.from_dict(session)
        now = now or datetime.now(UTC)

        result = analyze_session(session, profile.baseline)

        profile.sessions.append(replace(session, analysis_result=result))
        if len(profile.sessions) > self._session_window:
            del profile.sessions[: len(profile.sessions) - self._session_window]

        profile.total_sessions_recorded += 1
        profile.last_session_at = now

        if (
            not profile.baseline.established
            and len(profile.sessions) >= self._estimator.min_sessions
        ):
            baseline = self._estimator.estimate(profile.sessions, profile.baseline, now=now)
            if baseline is not None:
                profile.baseline = baseline
                logger.info("Baseline established for player %s", profile.player_id)

        if result.is_anomalous:
            self._record_anomaly(profile, session, result, now)
            profile.trust_score.penalize(self._trust_penalty, now)
        else:
            profile.trust_score.reward(self._trust_reward, now)

        return result

    def _record_anomaly(
        self,
        profile: BehavioralProfile,
        session: BehavioralSession,
        result: AnalysisResult,
        now: datetime,
    ) -> None:
        """Push an anomaly entry for a flagged session."""
        profile.total_anomalies_detected += 1
        profile.last_anomaly_at = now
        profile.anomaly_history.append(
            AnomalyEntry(
                session_index=len(profile.sessions) - 1,
                detected_at=now,
                match_id=session.match_id,
                anomaly_score=session.overall_anomaly_score,
                risk_level=result.risk_level,
                flags=result.flags,
            )
        )
        if len(profile.anomaly_history) > self._anomaly_window:
            del profile.anomaly_history[: len(profile.anomaly_history) - self._anomaly_window]

        logger.info(
            "Anomalous session for player %s: risk=%s, flags=%s, score=%.0f",
            profile.player_id,
            result.risk_level.value,
            ", ".join(f.flag_type.value for f in result.flags) or "(composite score)",
            session.overall_anomaly_score,
        )

    def review_anomaly(
        self,
        profile: BehavioralProfile,
        entry_index: int,
        reviewer_id: str,
        *,
        notes: str | None = None,
        false_positive: bool = False,
        now: datetime | None = None,
    ) -> AnomalyEntry:
        """Record a reviewer's decision on an anomaly entry.

        The verdict itself is left untouched; only the review record changes.

        Args:
            profile: Profile holding the anomaly history.
            entry_index: Position of the entry in the anomaly history.
            reviewer_id: Identifier of the reviewer.
            notes: Optional review notes.
            false_positive: Whether the reviewer judged the verdict wrong.
            now: Review timestamp. Defaults to now (UTC).

        Returns:
            The updated AnomalyEntry.

        Raises:
            IndexError: If entry_index is negative or past the end of the
                history.
        """
        if not 0 <= entry_index < len(profile.anomaly_history):
            raise IndexError(
                f"No anomaly entry {entry_index} for player {profile.player_id} "
                f"({len(profile.anomaly_history)} recorded)"
            )
        entry = profile.anomaly_history[entry_index]
        entry.review.reviewed = True
        entry.review.reviewed_by = reviewer_id
        entry.review.reviewed_at = now or datetime.now(UTC)
        entry.review.review_notes = notes
        entry.review.false_positive = false_positive
        return entry
