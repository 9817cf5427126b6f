"""
Login behaviour detectors: unusual hours, rapid logins, dormant accounts.
"""

from datetime import timedelta

from ..metrics import EventFilter
from ..models import Category, DetectorType, Finding, Severity
from .base import DetectionContext, Detector

LOGIN = "login"
SAMPLE_SIZE = 5


class UnusualLoginTimesDetector(Detector):
    """Too many logins during the configured off-hours window in the last 24h"""

    detector_type = DetectorType.UNUSUAL_LOGIN_TIMES
    category = Category.USER_BEHAVIOR
    severity = Severity.MEDIUM

    def detect(self, context: DetectionContext) -> list[Finding]:
        config = context.thresholds["login_frequency"]
        hours = (config["unusual_hours"]["start"], config["unusual_hours"]["end"])
        event_filter = EventFilter(hours=hours)
        since = context.ago(hours=24)

        count = context.metrics.count_events(LOGIN, since, event_filter=event_filter)
        if count <= config["unusual_login_count"]:
            return []

        sample = context.metrics.sample_events(LOGIN, since, event_filter, limit=SAMPLE_SIZE)
        return [
            self.finding(
                f"{count} logins detected during unusual hours "
                f"({hours[0]:02d}:00-{hours[1]:02d}:00)",
                {"count": count, "events": sample},
            )
        ]


class RapidLoginAttemptsDetector(Detector):
    """One finding per user logging in too often over the last 5 minutes"""

    detector_type = DetectorType.RAPID_LOGIN_ATTEMPTS
    category = Category.SECURITY
    severity = Severity.HIGH

    def detect(self, context: DetectionContext) -> list[Finding]:
        limit = context.thresholds["login_frequency"]["max_logins_per_minute"]
        since = context.ago(minutes=5)

        per_user = context.metrics.count_events(LOGIN, since, group_by="user_id")
        findings = []
        for user_id, attempts in per_user.items():
            if attempts < limit:
                continue
            if context.cancelled:
                break
            events = context.metrics.sample_events(
                LOGIN, since, EventFilter(user_ids=(user_id,)), limit=attempts
            )
            findings.append(
                self.finding(
                    f"User {user_id} attempted {attempts} logins in 5 minutes",
                    {
                        "user_id": user_id,
                        "attempts": attempts,
                        "times": [e.get("timestamp") for e in events],
                    },
                )
            )
        return findings


class DormantUserActivationDetector(Detector):
    """Accounts idle for the dormant period that logged in during the last 24h"""

    detector_type = DetectorType.DORMANT_USER_ACTIVATION
    category = Category.USER_BEHAVIOR
    severity = Severity.MEDIUM

    def detect(self, context: DetectionContext) -> list[Finding]:
        dormant_days = context.thresholds["login_frequency"]["dormant_days"]
        active_since = context.ago(hours=24)
        inactive_since = active_since - timedelta(days=dormant_days)

        user_ids = context.metrics.dormant_user_ids(inactive_since, active_since)
        if not user_ids:
            return []

        sample = context.metrics.sample_events(
            LOGIN, active_since, EventFilter(user_ids=tuple(user_ids)), limit=SAMPLE_SIZE
        )
        return [
            self.finding(
                f"{len(user_ids)} previously dormant users became active",
                {"count": len(user_ids), "user_ids": list(user_ids), "events": sample},
            )
        ]
