"""
In-memory alert store.

Holds every alert in insertion order. All mutations go through one lock;
reads return copies so callers never see a half-applied transition.
"""

import copy
import threading
import uuid
from collections import Counter
from datetime import datetime, timedelta

import structlog

from .models import Alert, AlertStatus, Finding

logger = structlog.get_logger(__name__)

TREND_PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


class AlertStore:
    """Ordered in-memory collection of alerts with lifecycle transitions"""

    def __init__(self):
        self._lock = threading.RLock()
        self._alerts: dict[str, Alert] = {}

    def _new_id(self, finding: Finding, now: datetime) -> str:
        while True:
            alert_id = (
                f"{finding.detector_type.value}_{int(now.timestamp() * 1000)}_"
                f"{uuid.uuid4().hex[:9]}"
            )
            # Evicted ids carry an older timestamp, so only live ids can collide
            if alert_id not in self._alerts:
                return alert_id

    # ========================================
    # Mutations
    # ========================================

    def append(self, finding: Finding, now: datetime) -> Alert:
        """Store a finding as a new active alert and return a copy of it"""
        return self.append_many([finding], now)[0]

    def append_many(self, findings: list[Finding], now: datetime) -> list[Alert]:
        """Commit a batch of findings under a single lock acquisition"""
        created = []
        with self._lock:
            for finding in findings:
                alert = Alert.from_finding(self._new_id(finding, now), finding, now)
                self._alerts[alert.id] = alert
                created.append(copy.deepcopy(alert))

        for alert in created:
            logger.info(
                "Alert created",
                alert_id=alert.id,
                detector=alert.detector_type.value,
                severity=alert.severity.value,
                description=alert.description,
            )
        return created

    def acknowledge(self, alert_id: str, actor_id: str, now: datetime) -> bool:
        """Move an active alert to acknowledged

        Re-acknowledging is a successful no-op. Unknown or resolved alerts
        return False.
        """
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                logger.warning("Acknowledge failed: alert not found", alert_id=alert_id)
                return False
            if alert.status == AlertStatus.ACKNOWLEDGED:
                return True
            if alert.status == AlertStatus.RESOLVED:
                logger.warning("Acknowledge refused: alert already resolved", alert_id=alert_id)
                return False

            alert.status = AlertStatus.ACKNOWLEDGED
            alert.acknowledged_by = actor_id
            alert.acknowledged_at = now

        logger.info("Alert acknowledged", alert_id=alert_id, actor=actor_id)
        return True

    def resolve(self, alert_id: str, resolution: str, now: datetime) -> bool:
        """Resolve an active or acknowledged alert; resolved is terminal"""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                logger.warning("Resolve failed: alert not found", alert_id=alert_id)
                return False
            if alert.status == AlertStatus.RESOLVED:
                logger.debug("Resolve ignored: alert already resolved", alert_id=alert_id)
                return False

            alert.status = AlertStatus.RESOLVED
            alert.resolved_at = now
            alert.resolution = resolution

        logger.info("Alert resolved", alert_id=alert_id, resolution=resolution)
        return True

    def resolve_if_active(self, alert_id: str, resolution: str, now: datetime) -> bool:
        """Resolve only when the alert is still active (check and act under the lock)"""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.status != AlertStatus.ACTIVE:
                return False
            return self.resolve(alert_id, resolution, now)

    def evict_older_than(self, duration: timedelta, now: datetime) -> list[str]:
        """Drop every alert detected before now - duration, whatever its status"""
        cutoff = now - duration
        with self._lock:
            evicted = [a.id for a in self._alerts.values() if a.detected_at < cutoff]
            for alert_id in evicted:
                del self._alerts[alert_id]
            remaining = len(self._alerts)

        logger.info("Old alerts evicted", evicted=len(evicted), remaining=remaining)
        return evicted

    # ========================================
    # Reads
    # ========================================

    def get(self, alert_id: str) -> Alert | None:
        with self._lock:
            alert = self._alerts.get(alert_id)
            return copy.deepcopy(alert) if alert else None

    def list_all(self) -> list[Alert]:
        with self._lock:
            return [copy.deepcopy(a) for a in self._alerts.values()]

    def list_active(self) -> list[Alert]:
        with self._lock:
            return [
                copy.deepcopy(a) for a in self._alerts.values() if a.status == AlertStatus.ACTIVE
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    def stats(self) -> dict:
        """Counts by status, category and severity, computed fresh"""
        with self._lock:
            alerts = list(self._alerts.values())
            statuses = Counter(a.status for a in alerts)
            return {
                "total": len(alerts),
                "active": statuses[AlertStatus.ACTIVE],
                "acknowledged": statuses[AlertStatus.ACKNOWLEDGED],
                "resolved": statuses[AlertStatus.RESOLVED],
                "by_category": dict(Counter(a.category.value for a in alerts)),
                "by_severity": dict(Counter(a.severity.value for a in alerts)),
            }

    def trends(self, period: str, now: datetime) -> dict:
        """Per-day alert counts over *period* ("24h", "7d" or "30d"; default 7d)"""
        if period not in TREND_PERIODS:
            period = "7d"
        start = now - TREND_PERIODS[period]

        days: dict[str, dict] = {}
        with self._lock:
            relevant = [a for a in self._alerts.values() if a.detected_at >= start]
            for alert in relevant:
                day = alert.detected_at.date().isoformat()
                bucket = days.setdefault(
                    day, {"date": day, "total": 0, "by_type": {}, "by_severity": {}}
                )
                bucket["total"] += 1
                by_type = bucket["by_type"]
                by_type[alert.detector_type.value] = by_type.get(alert.detector_type.value, 0) + 1
                by_severity = bucket["by_severity"]
                by_severity[alert.severity.value] = by_severity.get(alert.severity.value, 0) + 1

        return {
            "trends": [days[d] for d in sorted(days)],
            "summary": {
                "total_alerts": len(relevant),
                "period": period,
                "start_date": start.isoformat(),
                "end_date": now.isoformat(),
            },
        }
