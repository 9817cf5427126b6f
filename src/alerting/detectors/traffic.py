"""
Traffic detectors comparing current activity to the rolling baselines.
"""

from ..models import Category, DetectorType, Finding, Severity
from .base import DetectionContext, Detector


class TrafficDropDetector(Detector):
    """Today's activity fell too far below the trailing daily average"""

    detector_type = DetectorType.TRAFFIC_DROP
    category = Category.TRAFFIC
    severity = Severity.HIGH

    def detect(self, context: DetectionContext) -> list[Finding]:
        average = context.baselines().daily_average
        if average <= 0:
            return []

        today_start = context.now.replace(hour=0, minute=0, second=0, microsecond=0)
        today = context.metrics.count_events(None, today_start)

        drop_percent = (average - today) / average * 100
        if drop_percent <= context.thresholds["traffic"]["daily_active_users_drop_percent"]:
            return []

        return [
            self.finding(
                f"Daily activity dropped by {round(drop_percent)}% compared to average",
                {
                    "today_activity": today,
                    "historical_average": round(average, 2),
                    "drop_percent": round(drop_percent),
                },
            )
        ]


class TrafficSpikeDetector(Detector):
    """Last hour's activity is a large multiple of the trailing hourly average"""

    detector_type = DetectorType.TRAFFIC_SPIKE
    category = Category.TRAFFIC
    severity = Severity.MEDIUM

    def detect(self, context: DetectionContext) -> list[Finding]:
        average = context.baselines().hourly_average
        if average <= 0:
            return []

        last_hour = context.metrics.count_events(None, context.ago(hours=1))

        multiplier = last_hour / average
        if multiplier <= context.thresholds["traffic"]["page_view_spike_multiplier"]:
            return []

        return [
            self.finding(
                f"Traffic spike detected: {round(multiplier)}x normal activity",
                {
                    "current_activity": last_hour,
                    "normal_activity": round(average, 2),
                    "multiplier": round(multiplier, 1),
                },
            )
        ]
