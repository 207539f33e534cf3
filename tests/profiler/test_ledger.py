"""Tests for the profile ledger."""

from datetime import UTC, datetime, timedelta

import pytest

from behavioral_anomaly_engine.config import DetectionSettings
from behavioral_anomaly_engine.detector.models import FlagType, RiskLevel
from behavioral_anomaly_engine.profiler.ledger import ProfileLedger
from behavioral_anomaly_engine.profiler.models import BehavioralProfile

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)

# Cold-start critical: inhuman minimum reaction time, never a baseline candidate
FLAGGED = {"min_reaction_time": 40.0, "overall_anomaly_score": 40.0}


@pytest.fixture
def ledger() -> ProfileLedger:
    """Create a ledger with default limits."""
    return ProfileLedger()


@pytest.fixture
def profile(ledger: ProfileLedger) -> BehavioralProfile:
    """Create an empty profile."""
    return ledger.create_profile("player-1")


class TestAddSession:
    """Tests for single-session ingestion."""

    def test_clean_session(
        self, ledger: ProfileLedger, profile: BehavioralProfile, clean_session
    ) -> None:
        """Test a clean session updates counters and rewards trust."""
        result = ledger.add_session(profile, clean_session, now=NOW)

        assert result.is_anomalous is False
        assert len(profile.sessions) == 1
        assert profile.sessions[0].analysis_result == result
        assert profile.total_sessions_recorded == 1
        assert profile.last_session_at == NOW
        assert profile.total_anomalies_detected == 0
        assert profile.anomaly_history == []
        assert profile.trust_score.score == 51
        assert profile.trust_score.clean_sessions == 1
        assert profile.trust_score.last_updated == NOW

    def test_flagged_session(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test an anomalous session records history and penalizes trust."""
        session = make_session(match_id="match-9", **FLAGGED)

        result = ledger.add_session(profile, session, now=NOW)

        assert result.is_anomalous is True
        assert result.risk_level == RiskLevel.CRITICAL
        assert profile.total_anomalies_detected == 1
        assert profile.last_anomaly_at == NOW
        assert profile.trust_score.score == 45
        assert profile.trust_score.flagged_sessions == 1

        entry = profile.anomaly_history[0]
        assert entry.session_index == 0
        assert entry.detected_at == NOW
        assert entry.match_id == "match-9"
        assert entry.anomaly_score == 40.0
        assert entry.risk_level == RiskLevel.CRITICAL
        assert [f.flag_type for f in entry.flags] == [FlagType.INHUMAN_REACTION]
        assert entry.review.reviewed is False
        assert entry.review.false_positive is False

    def test_accepts_raw_record(self, ledger: ProfileLedger, profile: BehavioralProfile) -> None:
        """Test a raw summarizer record is parsed before analysis."""
        result = ledger.add_session(
            profile,
            {
                "sessionStart": "2026-03-02T11:00:00Z",
                "sessionEnd": "2026-03-02T11:30:00Z",
                "minReactionTime": 50,
            },
            now=NOW,
        )

        assert result.risk_level == RiskLevel.CRITICAL
        assert profile.sessions[0].session_duration_ms == 30 * 60 * 1000

    def test_missing_metrics_do_not_fail(
        self, ledger: ProfileLedger, profile: BehavioralProfile
    ) -> None:
        """Test a record with only timestamps is ingested as a clean session."""
        result = ledger.add_session(
            profile,
            {"sessionStart": "2026-03-02T11:00:00Z", "sessionEnd": "2026-03-02T11:30:00Z"},
        )

        assert result.is_anomalous is False
        assert profile.total_sessions_recorded == 1


class TestBoundedHistory:
    """Tests for rolling window eviction."""

    def test_sessions_capped_at_50(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test 60 appends keep only the 50 most recent sessions."""
        for i in range(60):
            ledger.add_session(profile, make_session(match_id=f"m{i}"), now=NOW)

        assert len(profile.sessions) == 50
        assert [s.match_id for s in profile.sessions] == [f"m{i}" for i in range(10, 60)]
        assert profile.total_sessions_recorded == 60

    def test_anomaly_history_capped_at_100(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test 110 flagged sessions keep only the 100 most recent entries."""
        for i in range(110):
            ledger.add_session(profile, make_session(match_id=f"m{i}", **FLAGGED), now=NOW)

        assert len(profile.anomaly_history) == 100
        assert profile.anomaly_history[0].match_id == "m10"
        assert profile.anomaly_history[-1].match_id == "m109"
        assert profile.anomaly_history[-1].session_index == 49
        assert profile.total_anomalies_detected == 110
        assert len(profile.sessions) == 50

    def test_custom_windows(self, make_session) -> None:
        """Test configured window sizes are honored."""
        ledger = ProfileLedger(session_window=3, anomaly_window=2)
        profile = ledger.create_profile("player-2")

        for _ in range(5):
            ledger.add_session(profile, make_session(**FLAGGED), now=NOW)

        assert len(profile.sessions) == 3
        assert len(profile.anomaly_history) == 2


class TestBaselineTransition:
    """Tests for the one-shot baseline transition."""

    def test_nine_sessions_no_baseline(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test 9 clean sessions leave the baseline unestablished."""
        for _ in range(9):
            ledger.add_session(profile, make_session(), now=NOW)

        assert profile.baseline.established is False

    def test_tenth_session_establishes(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test the 10th session establishes a baseline from the clean ones."""
        for _ in range(3):
            ledger.add_session(profile, make_session(overall_anomaly_score=40.0), now=NOW)
        for _ in range(6):
            ledger.add_session(profile, make_session(), now=NOW)
        assert profile.baseline.established is False

        ledger.add_session(profile, make_session(), now=NOW)

        assert profile.baseline.established is True
        assert profile.baseline.established_at == NOW
        assert profile.baseline.session_count == 7
        assert profile.baseline.confidence == 70.0

    def test_baseline_frozen_after_establishment(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test later sessions never change the baseline."""
        for _ in range(10):
            ledger.add_session(profile, make_session(), now=NOW)
        baseline = profile.baseline

        ledger.add_session(
            profile, make_session(avg_mouse_velocity=9.0), now=NOW + timedelta(hours=1)
        )

        assert profile.baseline == baseline
        assert profile.baseline.avg_mouse_velocity == pytest.approx(5.0)

    def test_deferred_until_enough_clean(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test the baseline waits for 5 clean sessions past the 10th."""
        for _ in range(10):
            ledger.add_session(profile, make_session(sample_count=10), now=NOW)
        for _ in range(4):
            ledger.add_session(profile, make_session(), now=NOW)
        assert profile.baseline.established is False

        ledger.add_session(profile, make_session(), now=NOW)

        assert profile.baseline.established is True
        assert profile.baseline.session_count == 5

    def test_established_baseline_switches_analyzer(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test sessions after establishment are scored against the baseline."""
        for _ in range(10):
            ledger.add_session(profile, make_session(), now=NOW)

        result = ledger.add_session(profile, make_session(avg_mouse_velocity=16.0), now=NOW)

        assert result.get_flag(FlagType.VELOCITY_DEVIATION) is not None
        assert result.baseline_deviation > 0


class TestTrustScore:
    """Tests for trust score evolution."""

    def test_saturates_at_100(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test 60 clean sessions from 50 stop at 100."""
        for _ in range(60):
            ledger.add_session(profile, make_session(), now=NOW)

        assert profile.trust_score.score == 100
        assert profile.trust_score.clean_sessions == 60

    def test_saturates_at_zero(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test 30 flagged sessions from 50 stop at 0."""
        for _ in range(30):
            ledger.add_session(profile, make_session(**FLAGGED), now=NOW)

        assert profile.trust_score.score == 0
        assert profile.trust_score.flagged_sessions == 30

    def test_from_settings(self, make_session) -> None:
        """Test trust parameters come from detection settings."""
        settings = DetectionSettings(
            DETECTION_TRUST_INITIAL=80,
            DETECTION_TRUST_PENALTY=10,
        )
        ledger = ProfileLedger.from_settings(settings)
        profile = ledger.create_profile("player-3")

        ledger.add_session(profile, make_session(**FLAGGED), now=NOW)

        assert profile.trust_score.score == 70


class TestReviewAnomaly:
    """Tests for reviewer actions on anomaly entries."""

    def test_marks_review(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session
    ) -> None:
        """Test a review updates only the review record."""
        ledger.add_session(profile, make_session(**FLAGGED), now=NOW)

        entry = ledger.review_anomaly(
            profile,
            0,
            "moderator-7",
            notes="Known hardware issue",
            false_positive=True,
            now=NOW,
        )

        assert entry.review.reviewed is True
        assert entry.review.reviewed_by == "moderator-7"
        assert entry.review.reviewed_at == NOW
        assert entry.review.review_notes == "Known hardware issue"
        assert entry.review.false_positive is True
        assert entry.risk_level == RiskLevel.CRITICAL
        assert profile.pending_reviews == []
        assert profile.trust_score.score == 45

    def test_missing_entry_raises(self, ledger: ProfileLedger, profile: BehavioralProfile) -> None:
        """Test reviewing a nonexistent entry raises IndexError."""
        with pytest.raises(IndexError):
            ledger.review_anomaly(profile, 0, "moderator-7")

    @pytest.mark.parametrize("entry_index", [-1, -2, 1])
    def test_out_of_range_index_raises(
        self, ledger: ProfileLedger, profile: BehavioralProfile, make_session, entry_index: int
    ) -> None:
        """Test negative and past-the-end indexes never mark an entry reviewed."""
        ledger.add_session(profile, make_session(**FLAGGED), now=NOW)

        with pytest.raises(IndexError):
            ledger.review_anomaly(profile, entry_index, "moderator-7")

        assert profile.anomaly_history[0].review.reviewed is False
        assert len(profile.pending_reviews) == 1
