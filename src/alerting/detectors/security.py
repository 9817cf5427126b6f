"""
Security detectors: brute-force login failures and crawler-like user agents.
"""

from ..metrics import EventFilter
from ..models import Category, DetectorType, Finding, Severity
from .base import DetectionContext, Detector

LOGIN_FAILED = "login_failed"
USER_AGENT_SAMPLE_SIZE = 10
FAILURE_SAMPLE_SIZE = 100


class BruteForceAttemptDetector(Detector):
    """One finding per user with too many failed logins in the last hour"""

    detector_type = DetectorType.BRUTE_FORCE_ATTEMPT
    category = Category.SECURITY
    severity = Severity.CRITICAL

    def detect(self, context: DetectionContext) -> list[Finding]:
        limit = context.thresholds["security"]["max_failed_logins_per_user"]
        since = context.ago(hours=1)

        failures = context.metrics.count_events(LOGIN_FAILED, since, group_by="user_id")
        findings = []
        for user_id, attempts in failures.items():
            if attempts < limit:
                continue
            if context.cancelled:
                break

            events = context.metrics.sample_events(
                LOGIN_FAILED,
                since,
                EventFilter(user_ids=(user_id,)),
                limit=FAILURE_SAMPLE_SIZE,
            )
            ips = sorted({e["ip_address"] for e in events if e.get("ip_address")})
            user_agents = sorted({e["user_agent"] for e in events if e.get("user_agent")})
            findings.append(
                self.finding(
                    f"{attempts} failed login attempts for user {user_id}",
                    {
                        "user_id": user_id,
                        "attempts": attempts,
                        "ips": ips,
                        "user_agents": user_agents,
                    },
                )
            )
        return findings


class SuspiciousUserAgentsDetector(Detector):
    """Requests in the last hour whose user agent matches a suspicious pattern"""

    detector_type = DetectorType.SUSPICIOUS_USER_AGENTS
    category = Category.SECURITY
    severity = Severity.MEDIUM

    def detect(self, context: DetectionContext) -> list[Finding]:
        patterns = tuple(context.thresholds["security"]["suspicious_user_agent_patterns"])
        if not patterns:
            return []

        since = context.ago(hours=1)
        event_filter = EventFilter(user_agent_patterns=patterns)
        count = context.metrics.count_events(None, since, event_filter=event_filter)
        if count <= 0:
            return []

        sample = context.metrics.sample_events(
            None, since, event_filter, limit=USER_AGENT_SAMPLE_SIZE
        )
        return [
            self.finding(
                f"{count} requests from suspicious user agents",
                {"count": count, "patterns": list(patterns), "activities": sample},
            )
        ]
