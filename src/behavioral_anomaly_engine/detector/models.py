"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Severity attached to a single rule violation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Return the ordinal position of this severity (low = 1)."""
        return _SEVERITY_ORDER.index(self) + 1


class RiskLevel(str, Enum):
    """Aggregated verdict tier for a session."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Return the ordinal position of this tier (none = 0)."""
        return _RISK_ORDER.index(self)

    def at_least(self, other: RiskLevel) -> RiskLevel:
        """Return whichever of the two tiers is more severe."""
        return self if self.rank >= other.rank else other


_SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)
_RISK_ORDER = (
    RiskLevel.NONE,
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.CRITICAL,
)


class FlagType(str, Enum):
    """Rule identifiers emitted by the analyzers."""

    INHUMAN_REACTION = "inhuman_reaction"
    TOO_CONSISTENT = "too_consistent"
    STRAIGHT_LINES = "straight_lines"
    VELOCITY_DEVIATION = "velocity_deviation"
    ACCELERATION_SPIKE = "acceleration_spike"
    REACTION_TIME = "reaction_time"
    LACK_CORRECTIONS = "lack_corrections"


@dataclass(frozen=True)
class AnomalyFlag:
    """A single rule violation raised while analyzing a session.

    Attributes:
        flag_type: Which rule fired.
        description: Human-readable explanation for reviewers.
        severity: Severity tier of this violation.
        value: The observed session value that tripped the rule.
        threshold: The reference value it was compared against.
    """

    flag_type: FlagType
    description: str
    severity: Severity
    value: float
    threshold: float

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the output contract shape."""
        return {
            "flagType": self.flag_type.value,
            "description": self.description,
            "severity": self.severity.value,
            "value": self.value,
            "threshold": self.threshold,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnomalyFlag:
        """Deserialize from a stored dictionary."""
        return cls(
            flag_type=FlagType(data["flagType"]),
            description=str(data.get("description", "")),
            severity=Severity(data["severity"]),
            value=float(data.get("value") or 0.0),
            threshold=float(data.get("threshold") or 0.0),
        )


@dataclass(frozen=True)
class AnalysisResult:
    """Verdict produced for one session.

    Attributes:
        is_anomalous: Whether the session should be treated as flagged.
        risk_level: Aggregated risk tier.
        baseline_deviation: Mean percentage deviation from the player's
            baseline (0.0 in cold-start mode).
        flags: Rule violations raised for this session.
    """

    is_anomalous: bool = False
    risk_level: RiskLevel = RiskLevel.NONE
    baseline_deviation: float = 0.0
    flags: tuple[AnomalyFlag, ...] = field(default_factory=tuple)

    @property
    def flag_types(self) -> list[FlagType]:
        """Return the rule identifiers in the order they were raised."""
        return [flag.flag_type for flag in self.flags]

    def get_flag(self, flag_type: FlagType) -> AnomalyFlag | None:
        """Return the flag of the given type, if it was raised."""
        for flag in self.flags:
            if flag.flag_type == flag_type:
                return flag
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the output contract shape."""
        return {
            "isAnomalous": self.is_anomalous,
            "riskLevel": self.risk_level.value,
            "baselineDeviation": self.baseline_deviation,
            "flags": [flag.to_dict() for flag in self.flags],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisResult:
        """Deserialize from a stored dictionary."""
        return cls(
            is_anomalous=bool(data.get("isAnomalous", False)),
            risk_level=RiskLevel(data.get("riskLevel", RiskLevel.NONE.value)),
            baseline_deviation=float(data.get("baselineDeviation") or 0.0),
            flags=tuple(AnomalyFlag.from_dict(f) for f in data.get("flags", [])),
        )
