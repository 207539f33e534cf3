"""Selects the analyzer that applies to a player's current baseline state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from behavioral_anomaly_engine.detector.deviation import DeviationAnalyzer
from behavioral_anomaly_engine.detector.thresholds import ThresholdAnalyzer

if TYPE_CHECKING:
    from behavioral_anomaly_engine.detector.models import AnalysisResult
    from behavioral_anomaly_engine.profiler.models import Baseline, BehavioralSession


class SessionAnalyzer(Protocol):
    """Anything that can turn a session into a verdict."""

    def analyze(self, session: BehavioralSession, baseline: Baseline) -> AnalysisResult: ...


_THRESHOLD_ANALYZER = ThresholdAnalyzer()
_DEVIATION_ANALYZER = DeviationAnalyzer()


def select_analyzer(baseline: Baseline) -> SessionAnalyzer:
    """Return the deviation analyzer once a baseline exists, else the threshold one."""
    if baseline.established:
        return _DEVIATION_ANALYZER
    return _THRESHOLD_ANALYZER


def analyze_session(session: BehavioralSession, baseline: Baseline) -> AnalysisResult:
    """Analyze a session with whichever analyzer applies to the baseline."""
    return select_analyzer(baseline).analyze(session, baseline)
