"""
Facade exposing the alerting engine to its callers (API layer, CLI).
"""

import time
from typing import Any, Optional

import structlog

from .baselines import BaselineTracker, RedisBaselineCache
from .detectors import list_detectors
from .metrics import MetricsSource, PostgresMetricsSource
from .models import Alert, EngineConfig, ScanTrigger
from .notifier import Notifier, get_notifier
from .scheduler import ScanScheduler
from .store import AlertStore
from .thresholds import ThresholdRegistry

logger = structlog.get_logger(__name__)

VERSION = "2.0.0"


class AlertingService:
    """Owns the store, registry and scheduler, and exposes the engine operations"""

    def __init__(self, scheduler: ScanScheduler):
        self.scheduler = scheduler
        self.store = scheduler.store
        self.thresholds = scheduler.thresholds
        self.config = scheduler.config
        self._started_monotonic = time.monotonic()

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        metrics: Optional[MetricsSource] = None,
        notifier: Optional[Notifier] = None,
        **scheduler_kwargs,
    ) -> "AlertingService":
        """Wire the engine from configuration, building PostgreSQL/Redis/Kafka clients as needed"""
        if metrics is None:
            metrics = PostgresMetricsSource(config)
            if not metrics.check_health():
                raise RuntimeError("Database health check failed")

        cache = RedisBaselineCache(config) if config.use_baseline_cache else None
        scheduler = ScanScheduler(
            store=AlertStore(),
            thresholds=ThresholdRegistry(),
            metrics=metrics,
            baselines=BaselineTracker(metrics, config, cache=cache),
            notifier=notifier if notifier is not None else get_notifier(config.notifier, config),
            config=config,
            **scheduler_kwargs,
        )
        return cls(scheduler)

    def start(self):
        self.scheduler.start()

    def shutdown(self):
        self.scheduler.shutdown()

    # ========================================
    # Alerts
    # ========================================

    def list_active_alerts(self) -> list[Alert]:
        return self.store.list_active()

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self.store.get(alert_id)

    def acknowledge(self, alert_id: str, actor_id: Optional[str] = "system") -> bool:
        """Acknowledge an alert; a missing actor is recorded as "system"

        Acknowledged alerts are no longer auto-resolved.
        """
        acknowledged = self.store.acknowledge(alert_id, actor_id or "system", self.scheduler.clock())
        if acknowledged:
            self.scheduler.auto_resolve.cancel(alert_id)
        return acknowledged

    def resolve(self, alert_id: str, resolution: str) -> bool:
        """Resolve an alert manually

        Raises:
            ValueError: If resolution is empty
        """
        if not resolution or not resolution.strip():
            raise ValueError("Resolution description is required")

        resolved = self.store.resolve(alert_id, resolution, self.scheduler.clock())
        if resolved:
            self.scheduler.auto_resolve.cancel(alert_id)
        return resolved

    def get_stats(self) -> dict[str, Any]:
        stats = self.store.stats()
        last_scan = self.scheduler.last_scan_at
        stats.update(
            {
                "uptime_seconds": round(time.monotonic() - self._started_monotonic, 1),
                "last_scan_at": last_scan.isoformat() if last_scan else None,
                "scanning": self.scheduler.is_scanning,
                "abandoned_workers": self.scheduler.abandoned_workers,
                "engine": dict(self.scheduler.stats),
            }
        )
        return stats

    def get_trends(self, period: str = "7d") -> dict[str, Any]:
        return self.store.trends(period, self.scheduler.clock())

    # ========================================
    # Scans & configuration
    # ========================================

    def trigger_scan(self, wait: bool = False) -> ScanTrigger:
        return self.scheduler.trigger_scan(wait=wait)

    def get_thresholds(self) -> dict[str, dict[str, Any]]:
        return self.thresholds.snapshot()

    def update_thresholds(self, partial: dict[str, dict[str, Any]]) -> None:
        self.thresholds.update(partial)

    def get_configuration(self) -> dict[str, Any]:
        config = self.config
        return {
            "thresholds": self.thresholds.snapshot(),
            "detectors": list_detectors(),
            "features": {
                "user_behavior_detection": True,
                "traffic_anomaly_detection": True,
                "security_anomaly_detection": True,
                "performance_monitoring": True,
                "real_time_alerts": True,
                "auto_resolution": True,
            },
            "scan_interval_seconds": config.scan_interval_seconds,
            "baseline_update_interval_seconds": config.baseline_refresh_seconds,
            "alert_retention_days": config.retention_days,
            "auto_resolve_delay_seconds": config.auto_resolve_delay_seconds,
            "notifier": config.notifier,
            "version": VERSION,
        }
