"""
Test doubles shared by the test modules.
"""

from datetime import datetime, timedelta, timezone

import pandas as pd

from src.alerting.metrics import MetricsSource, ProcessStats
from src.alerting.models import Category, DetectorType, Finding, Severity

NOW = datetime(2025, 10, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Virtual clock; advance() moves time forward"""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class StubMetricsSource(MetricsSource):
    """Quiet metrics source: no events, healthy process, fast database"""

    def __init__(self):
        self.counts: dict = {}
        self.grouped: dict = {}
        self.samples: list = []
        self.dormant: list = []
        self.heap_used_ratio = 0.5
        self.latency_ms = 5.0
        self.daily = pd.DataFrame(columns=["bucket", "count"])
        self.hourly = pd.DataFrame(columns=["bucket", "count"])

    def count_events(self, event_type, since, until=None, group_by=None, event_filter=None):
        if group_by is not None:
            return dict(self.grouped.get(event_type, {}))
        return self.counts.get(event_type, 0)

    def sample_events(self, event_type, since, event_filter=None, limit=10):
        return self.samples[:limit]

    def bucket_counts(self, since, bucket, until=None):
        return self.daily if bucket == "day" else self.hourly

    def dormant_user_ids(self, inactive_since, active_since):
        return list(self.dormant)

    def current_process_stats(self):
        return ProcessStats(heap_used_ratio=self.heap_used_ratio)

    def probe_latency(self):
        return self.latency_ms


def make_finding(
    severity: Severity = Severity.MEDIUM,
    detector_type: DetectorType = DetectorType.HIGH_MEMORY_USAGE,
    category: Category = Category.PERFORMANCE,
    description: str = "Memory usage at 90%",
) -> Finding:
    """Build a finding with sensible defaults."""
    return Finding(
        detector_type=detector_type,
        category=category,
        severity=severity,
        description=description,
        evidence={"memory_percent": 90},
    )
