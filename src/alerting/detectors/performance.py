"""
Performance detectors: memory pressure and slow database round-trips.
"""

from dataclasses import asdict

from ..models import Category, DetectorType, Finding, Severity
from .base import DetectionContext, Detector


class HighMemoryUsageDetector(Detector):
    detector_type = DetectorType.HIGH_MEMORY_USAGE
    category = Category.PERFORMANCE
    severity = Severity.MEDIUM

    def detect(self, context: DetectionContext) -> list[Finding]:
        stats = context.metrics.current_process_stats()
        percent = stats.heap_used_ratio * 100
        if percent <= context.thresholds["performance"]["high_memory_usage"]:
            return []

        return [
            self.finding(
                f"Memory usage at {round(percent)}%",
                {"memory_usage": asdict(stats), "memory_percent": round(percent)},
            )
        ]


class SlowDatabaseResponseDetector(Detector):
    detector_type = DetectorType.SLOW_DATABASE_RESPONSE
    category = Category.PERFORMANCE
    severity = Severity.MEDIUM

    def detect(self, context: DetectionContext) -> list[Finding]:
        latency_ms = context.metrics.probe_latency()
        if latency_ms <= context.thresholds["performance"]["slow_query_threshold"]:
            return []

        return [
            self.finding(
                f"Database response time: {round(latency_ms)}ms",
                {"response_time_ms": round(latency_ms, 1)},
            )
        ]
