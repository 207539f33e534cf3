"""Data models for the profiler module.

Session summaries arrive from the session summarizer using camelCase keys
(``avgMouseVelocity``, ``overallAnomalyScore`` ...). The models accept those
as well as snake_case keys and always serialize back to camelCase, which is
also the layout of the persisted profile documents.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from behavioral_anomaly_engine.detector.models import (
    AnalysisResult,
    AnomalyFlag,
    RiskLevel,
)

DEFAULT_TRUST_SCORE = 50
TRUST_SCORE_MIN = 0
TRUST_SCORE_MAX = 100


class MatchType(str, Enum):
    """Kind of match a session was recorded in."""

    RANKED = "ranked"
    STRICKER = "stricker"
    LADDER = "ladder"
    CASUAL = "casual"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _lookup(data: dict[str, Any], name: str) -> Any:
    """Return the value stored under a snake_case or camelCase key."""
    if name in data:
        return data[name]
    return data.get(_camel(name))


def _number(value: Any) -> float:
    return float(value) if value is not None else 0.0


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class BehavioralSession:
    """Aggregated input behavior for one gameplay session.

    All metrics are supplied by the session summarizer and trusted as-is;
    missing numeric fields default to 0. ``analysis_result`` is attached
    exactly once, when the session is appended to a profile.
    """

    session_start: datetime
    session_end: datetime
    session_duration_ms: int = 0
    match_id: str | None = None
    match_type: MatchType | None = None

    # Mouse metrics
    avg_mouse_velocity: float = 0.0
    max_mouse_velocity: float = 0.0
    velocity_std_dev: float = 0.0
    avg_acceleration: float = 0.0
    max_acceleration: float = 0.0
    direction_changes: float = 0.0
    micro_corrections: float = 0.0
    straight_line_ratio: float = 0.0
    click_accuracy_zone: float = 0.0

    # Reaction time metrics
    avg_reaction_time: float = 0.0
    min_reaction_time: float = 0.0
    reaction_time_std_dev: float = 0.0

    # Keyboard metrics
    avg_key_hold_duration: float = 0.0
    keys_per_minute: float = 0.0
    key_pattern_consistency: float = 0.0

    # Summarizer scores (0-100)
    aim_snap_score: float = 0.0
    consistency_score: float = 0.0
    reaction_score: float = 0.0
    overall_anomaly_score: float = 0.0

    sample_count: int = 0
    analysis_result: AnalysisResult | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BehavioralSession:
        """Create a session from a summarizer record.

        Raises:
            KeyError: If a session timestamp is missing.
            ValueError: If a timestamp or the match type is malformed.
        """
        start = _parse_datetime(_lookup(data, "session_start"))
        end = _parse_datetime(_lookup(data, "session_end"))
        if start is None or end is None:
            raise KeyError("session_start and session_end are required")

        duration = _lookup(data, "session_duration_ms")
        if duration is None:
            duration = (end - start).total_seconds() * 1000

        match_type = _lookup(data, "match_type")
        match_id = _lookup(data, "match_id")
        result = _lookup(data, "analysis_result")

        metrics = {
            f.name: _number(_lookup(data, f.name))
            for f in fields(cls)
            if f.name not in _NON_METRIC_FIELDS
        }
        return cls(
            session_start=start,
            session_end=end,
            session_duration_ms=int(duration),
            match_id=str(match_id) if match_id is not None else None,
            match_type=MatchType(match_type) if match_type is not None else None,
            sample_count=int(_number(_lookup(data, "sample_count"))),
            analysis_result=AnalysisResult.from_dict(result) if result else None,
            **metrics,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the summarizer's camelCase layout."""
        data: dict[str, Any] = {
            "matchId": self.match_id,
            "matchType": self.match_type.value if self.match_type else None,
            "sessionStart": _format_datetime(self.session_start),
            "sessionEnd": _format_datetime(self.session_end),
            "sessionDurationMs": self.session_duration_ms,
            "sampleCount": self.sample_count,
        }
        for f in fields(self):
            if f.name not in _NON_METRIC_FIELDS:
                data[_camel(f.name)] = getattr(self, f.name)
        data["analysisResult"] = self.analysis_result.to_dict() if self.analysis_result else None
        return data


_NON_METRIC_FIELDS = frozenset(
    {
        "session_start",
        "session_end",
        "session_duration_ms",
        "match_id",
        "match_type",
        "sample_count",
        "analysis_result",
    }
)


# Baseline attribute -> session attribute it averages
BASELINE_METRICS: dict[str, str] = {
    "avg_mouse_velocity": "avg_mouse_velocity",
    "avg_mouse_velocity_std_dev": "velocity_std_dev",
    "avg_acceleration": "avg_acceleration",
    "avg_reaction_time": "avg_reaction_time",
    "avg_reaction_time_std_dev": "reaction_time_std_dev",
    "avg_keys_per_minute": "keys_per_minute",
    "avg_micro_corrections": "micro_corrections",
    "avg_straight_line_ratio": "straight_line_ratio",
}


@dataclass(frozen=True)
class Baseline:
    """A player's averaged "normal" behavior.

    Attributes:
        established: Whether enough clean sessions were seen to build it.
        established_at: When it was established.
        session_count: Number of clean sessions it was averaged from.
        confidence: Reliability estimate (0-100), 10 points per session.
    """

    established: bool = False
    established_at: datetime | None = None
    session_count: int = 0
    confidence: float = 0.0

    avg_mouse_velocity: float = 0.0
    avg_mouse_velocity_std_dev: float = 0.0
    avg_acceleration: float = 0.0
    avg_reaction_time: float = 0.0
    avg_reaction_time_std_dev: float = 0.0
    avg_keys_per_minute: float = 0.0
    avg_micro_corrections: float = 0.0
    avg_straight_line_ratio: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a camelCase dictionary."""
        data: dict[str, Any] = {
            "established": self.established,
            "establishedAt": _format_datetime(self.established_at),
            "sessionCount": self.session_count,
            "confidence": self.confidence,
        }
        for name in BASELINE_METRICS:
            data[_camel(name)] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Baseline:
        """Deserialize from a stored dictionary."""
        return cls(
            established=bool(_lookup(data, "established")),
            established_at=_parse_datetime(_lookup(data, "established_at")),
            session_count=int(_number(_lookup(data, "session_count"))),
            confidence=_number(_lookup(data, "confidence")),
            **{name: _number(_lookup(data, name)) for name in BASELINE_METRICS},
        )


@dataclass
class TrustScore:
    """Slowly evolving 0-100 reputation value."""

    score: int = DEFAULT_TRUST_SCORE
    clean_sessions: int = 0
    flagged_sessions: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))

    def reward(self, amount: int, now: datetime) -> None:
        """Record a clean session and raise the score (capped at 100)."""
        self.clean_sessions += 1
        self.score = min(TRUST_SCORE_MAX, self.score + amount)
        self.last_updated = now

    def penalize(self, amount: int, now: datetime) -> None:
        """Record a flagged session and lower the score (floored at 0)."""
        self.flagged_sessions += 1
        self.score = max(TRUST_SCORE_MIN, self.score - amount)
        self.last_updated = now

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a camelCase dictionary."""
        return {
            "score": self.score,
            "cleanSessions": self.clean_sessions,
            "flaggedSessions": self.flagged_sessions,
            "lastUpdated": _format_datetime(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrustScore:
        """Deserialize from a stored dictionary."""
        score = _lookup(data, "score")
        return cls(
            score=int(score) if score is not None else DEFAULT_TRUST_SCORE,
            clean_sessions=int(_number(_lookup(data, "clean_sessions"))),
            flagged_sessions=int(_number(_lookup(data, "flagged_sessions"))),
            last_updated=_parse_datetime(_lookup(data, "last_updated")) or datetime.now(UTC),
        )


@dataclass
class AnomalyReview:
    """Human review state of an anomaly entry. Written by reviewers only."""

    reviewed: bool = False
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    false_positive: bool = False


@dataclass
class AnomalyEntry:
    """A flagged session kept in the profile's anomaly history.

    Attributes:
        session_index: Position of the session in the session window at the
            time it was flagged.
        detected_at: When the anomaly was recorded.
        match_id: Match the session belonged to, if any.
        anomaly_score: Composite anomaly score supplied with the session.
        risk_level: Verdict tier of the session.
        flags: Rule violations raised for the session.
        review: Reviewer sub-record.
    """

    session_index: int
    detected_at: datetime
    match_id: str | None
    anomaly_score: float
    risk_level: RiskLevel
    flags: tuple[AnomalyFlag, ...] = ()
    review: AnomalyReview = field(default_factory=AnomalyReview)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a camelCase dictionary."""
        return {
            "sessionIndex": self.session_index,
            "detectedAt": _format_datetime(self.detected_at),
            "matchId": self.match_id,
            "anomalyScore": self.anomaly_score,
            "riskLevel": self.risk_level.value,
            "flags": [flag.to_dict() for flag in self.flags],
            "reviewed": self.review.reviewed,
            "reviewedBy": self.review.reviewed_by,
            "reviewedAt": _format_datetime(self.review.reviewed_at),
            "reviewNotes": self.review.review_notes,
            "falsePositive": self.review.false_positive,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnomalyEntry:
        """Deserialize from a stored dictionary."""
        match_id = _lookup(data, "match_id")
        return cls(
            session_index=int(_number(_lookup(data, "session_index"))),
            detected_at=_parse_datetime(_lookup(data, "detected_at")) or datetime.now(UTC),
            match_id=str(match_id) if match_id is not None else None,
            anomaly_score=_number(_lookup(data, "anomaly_score")),
            risk_level=RiskLevel(_lookup(data, "risk_level") or RiskLevel.NONE.value),
            flags=tuple(AnomalyFlag.from_dict(f) for f in data.get("flags", [])),
            review=AnomalyReview(
                reviewed=bool(_lookup(data, "reviewed")),
                reviewed_by=_lookup(data, "reviewed_by"),
                reviewed_at=_parse_datetime(_lookup(data, "reviewed_at")),
                review_notes=_lookup(data, "review_notes"),
                false_positive=bool(_lookup(data, "false_positive")),
            ),
        )


@dataclass
class BehavioralProfile:
    """Per-player behavioral state.

    ``sessions`` and ``anomaly_history`` are bounded rolling windows,
    trimmed from the front by the ledger. ``version`` is the optimistic
    concurrency token maintained by the storage layer.
    """

    player_id: str
    baseline: Baseline = field(default_factory=Baseline)
    sessions: list[BehavioralSession] = field(default_factory=list)
    anomaly_history: list[AnomalyEntry] = field(default_factory=list)
    total_sessions_recorded: int = 0
    total_anomalies_detected: int = 0
    last_session_at: datetime | None = None
    last_anomaly_at: datetime | None = None
    trust_score: TrustScore = field(default_factory=TrustScore)
    version: int = 0

    @property
    def pending_reviews(self) -> list[AnomalyEntry]:
        """Return anomaly entries no reviewer has looked at yet."""
        return [entry for entry in self.anomaly_history if not entry.review.reviewed]

    def to_dict(self) -> dict[str, Any]:
        """Serialize the full profile document."""
        return {
            "playerId": self.player_id,
            "baseline": self.baseline.to_dict(),
            "sessions": [s.to_dict() for s in self.sessions],
            "anomalyHistory": [a.to_dict() for a in self.anomaly_history],
            "totalSessionsRecorded": self.total_sessions_recorded,
            "totalAnomaliesDetected": self.total_anomalies_detected,
            "lastSessionAt": _format_datetime(self.last_session_at),
            "lastAnomalyAt": _format_datetime(self.last_anomaly_at),
            "trustScore": self.trust_score.to_dict(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BehavioralProfile:
        """Deserialize a full profile document."""
        return cls(
            player_id=str(_lookup(data, "player_id")),
            baseline=Baseline.from_dict(data.get("baseline") or {}),
            sessions=[BehavioralSession.from_dict(s) for s in data.get("sessions", [])],
            anomaly_history=[
                AnomalyEntry.from_dict(a) for a in (_lookup(data, "anomaly_history") or [])
            ],
            total_sessions_recorded=int(_number(_lookup(data, "total_sessions_recorded"))),
            total_anomalies_detected=int(_number(_lookup(data, "total_anomalies_detected"))),
            last_session_at=_parse_datetime(_lookup(data, "last_session_at")),
            last_anomaly_at=_parse_datetime(_lookup(data, "last_anomaly_at")),
            trust_score=TrustScore.from_dict(_lookup(data, "trust_score") or {}),
            version=int(_number(data.get("version"))),
        )
