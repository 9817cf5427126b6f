"""
Tests for the detector rules.
"""

import threading
from unittest.mock import MagicMock

import pytest

from src.alerting.baselines import Baselines
from src.alerting.detectors import (
    BruteForceAttemptDetector,
    DetectionContext,
    DormantUserActivationDetector,
    HighMemoryUsageDetector,
    RapidLoginAttemptsDetector,
    SlowDatabaseResponseDetector,
    SuspiciousUserAgentsDetector,
    TrafficDropDetector,
    TrafficSpikeDetector,
    UnusualLoginTimesDetector,
    build_detectors,
    list_detectors,
)
from src.alerting.metrics import EventFilter
from src.alerting.models import Category, DetectorType, Severity
from src.alerting.thresholds import ThresholdRegistry
from tests.helpers import NOW, StubMetricsSource


def make_context(metrics, thresholds=None, daily=0.0, hourly=0.0):
    registry = thresholds or ThresholdRegistry()
    return DetectionContext(
        metrics=metrics,
        thresholds=registry.snapshot(),
        now=NOW,
        baselines=lambda: Baselines(daily, hourly, NOW.isoformat()),
    )


class TestRegistry:
    """Tests for the closed detector set."""

    def test_all_nine_detectors_registered(self):
        assert len(build_detectors()) == 9
        assert set(list_detectors()) == {t.value for t in DetectorType}

    def test_quiet_metrics_produce_nothing(self):
        """Test a healthy system yields no findings from any detector."""
        context = make_context(StubMetricsSource())

        for detector in build_detectors():
            assert detector.detect(context) == [], detector.name


class TestUserBehaviorDetectors:
    """Tests for login behaviour rules."""

    def test_unusual_login_times_fires_above_count(self):
        metrics = MagicMock(wraps=StubMetricsSource())
        metrics.count_events.return_value = 8
        metrics.sample_events.return_value = [{"user_id": 1}]

        findings = UnusualLoginTimesDetector().detect(make_context(metrics))

        assert len(findings) == 1
        assert findings[0].severity == Severity.MEDIUM
        assert findings[0].evidence["count"] == 8
        event_filter = metrics.count_events.call_args.kwargs["event_filter"]
        assert event_filter == EventFilter(hours=(22, 6))

    def test_unusual_login_times_at_limit_is_quiet(self):
        metrics = StubMetricsSource()
        metrics.counts["login"] = 5

        assert UnusualLoginTimesDetector().detect(make_context(metrics)) == []

    def test_rapid_logins_one_high_alert_per_user(self):
        """Test 12 logins in 5 minutes against a limit of 10 gives one high alert."""
        metrics = StubMetricsSource()
        metrics.grouped["login"] = {"user-7": 12, "user-8": 3}
        metrics.samples = [{"timestamp": NOW.isoformat()}] * 12

        findings = RapidLoginAttemptsDetector().detect(make_context(metrics))

        assert len(findings) == 1
        assert findings[0].severity == Severity.HIGH
        assert findings[0].category == Category.SECURITY
        assert findings[0].evidence["user_id"] == "user-7"
        assert findings[0].evidence["attempts"] == 12
        assert len(findings[0].evidence["times"]) == 12

    def test_rapid_logins_respects_updated_limit(self):
        metrics = StubMetricsSource()
        metrics.grouped["login"] = {"user-7": 12}
        registry = ThresholdRegistry({"login_frequency": {"max_logins_per_minute": 20}})

        assert RapidLoginAttemptsDetector().detect(make_context(metrics, registry)) == []

    def test_dormant_users(self):
        metrics = MagicMock(wraps=StubMetricsSource())
        metrics.dormant_user_ids.return_value = [3, 9]
        metrics.sample_events.return_value = []

        findings = DormantUserActivationDetector().detect(make_context(metrics))

        assert len(findings) == 1
        assert findings[0].evidence["user_ids"] == [3, 9]
        inactive_since, active_since = metrics.dormant_user_ids.call_args.args
        assert (active_since - inactive_since).days == 30


class TestTrafficDetectors:
    """Tests for baseline-relative traffic rules."""

    def test_zero_average_never_fires(self):
        """Test an empty history produces no traffic findings at all."""
        metrics = StubMetricsSource()
        metrics.counts[None] = 10_000
        context = make_context(metrics, daily=0.0, hourly=0.0)

        assert TrafficDropDetector().detect(context) == []
        assert TrafficSpikeDetector().detect(context) == []

    def test_traffic_drop(self):
        metrics = StubMetricsSource()
        metrics.counts[None] = 40

        findings = TrafficDropDetector().detect(make_context(metrics, daily=100.0))

        assert len(findings) == 1
        assert findings[0].severity == Severity.HIGH
        assert findings[0].evidence["drop_percent"] == 60

    def test_traffic_drop_within_tolerance(self):
        metrics = StubMetricsSource()
        metrics.counts[None] = 80

        assert TrafficDropDetector().detect(make_context(metrics, daily=100.0)) == []

    def test_traffic_spike(self):
        metrics = StubMetricsSource()
        metrics.counts[None] = 600

        findings = TrafficSpikeDetector().detect(make_context(metrics, hourly=100.0))

        assert len(findings) == 1
        assert findings[0].evidence["multiplier"] == 6.0

    def test_traffic_spike_at_multiplier_is_quiet(self):
        metrics = StubMetricsSource()
        metrics.counts[None] = 500

        assert TrafficSpikeDetector().detect(make_context(metrics, hourly=100.0)) == []


class TestSecurityDetectors:
    """Tests for brute force and user agent rules."""

    def test_brute_force_critical_with_evidence(self):
        metrics = StubMetricsSource()
        metrics.grouped["login_failed"] = {"user-1": 6, "user-2": 2}
        metrics.samples = [
            {"ip_address": "10.0.0.2", "user_agent": "curl/8"},
            {"ip_address": "10.0.0.1", "user_agent": "curl/8"},
            {"ip_address": None, "user_agent": None},
        ]

        findings = BruteForceAttemptDetector().detect(make_context(metrics))

        assert len(findings) == 1
        finding = findings[0]
        assert finding.severity == Severity.CRITICAL
        assert finding.evidence["user_id"] == "user-1"
        assert finding.evidence["ips"] == ["10.0.0.1", "10.0.0.2"]
        assert finding.evidence["user_agents"] == ["curl/8"]

    def test_brute_force_at_limit_fires(self):
        metrics = StubMetricsSource()
        metrics.grouped["login_failed"] = {"user-1": 5}

        assert len(BruteForceAttemptDetector().detect(make_context(metrics))) == 1

    def test_suspicious_user_agents(self):
        metrics = MagicMock(wraps=StubMetricsSource())
        metrics.count_events.return_value = 3
        metrics.sample_events.return_value = [{"user_agent": "Googlebot"}]

        findings = SuspiciousUserAgentsDetector().detect(make_context(metrics))

        assert len(findings) == 1
        assert findings[0].evidence["count"] == 3
        event_filter = metrics.count_events.call_args.kwargs["event_filter"]
        assert event_filter.user_agent_patterns == ("bot", "crawler", "spider")

    def test_suspicious_user_agents_no_patterns(self):
        metrics = MagicMock(wraps=StubMetricsSource())
        registry = ThresholdRegistry({"security": {"suspicious_user_agent_patterns": []}})

        assert SuspiciousUserAgentsDetector().detect(make_context(metrics, registry)) == []
        metrics.count_events.assert_not_called()


class TestPerformanceDetectors:
    """Tests for memory and latency rules."""

    @pytest.mark.parametrize("ratio, expected", [(0.90, 1), (0.50, 0), (0.80, 0)])
    def test_high_memory(self, ratio, expected):
        metrics = StubMetricsSource()
        metrics.heap_used_ratio = ratio

        findings = HighMemoryUsageDetector().detect(make_context(metrics))

        assert len(findings) == expected

    def test_high_memory_evidence(self):
        metrics = StubMetricsSource()
        metrics.heap_used_ratio = 0.9

        finding = HighMemoryUsageDetector().detect(make_context(metrics))[0]

        assert finding.evidence["memory_percent"] == 90
        assert finding.description == "Memory usage at 90%"

    def test_slow_database(self):
        metrics = StubMetricsSource()
        metrics.latency_ms = 2500.0

        findings = SlowDatabaseResponseDetector().detect(make_context(metrics))

        assert len(findings) == 1
        assert findings[0].evidence["response_time_ms"] == 2500.0

    def test_fast_database(self):
        assert SlowDatabaseResponseDetector().detect(make_context(StubMetricsSource())) == []


class TestDetectionContext:
    def test_cancelled_follows_event(self):
        event = threading.Event()
        context = DetectionContext(
            metrics=StubMetricsSource(),
            thresholds={},
            now=NOW,
            baselines=lambda: None,
            cancel_event=event,
        )

        assert context.cancelled is False
        event.set()
        assert context.cancelled is True
