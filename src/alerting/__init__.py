"""
Alerting Engine

Scheduled anomaly scanning for the admin dashboard.

Architecture:
- Detectors: threshold rules evaluated against a queryable metrics source
- Alert store: in-memory alerts with an active -> acknowledged -> resolved lifecycle
- Scheduler: periodic scans, baseline refresh, retention sweep, auto-resolution

Usage:
    python -m src.alerting.run
"""

from .models import Alert, AlertStatus, Category, DetectorType, EngineConfig, Finding, Severity
from .scheduler import ScanScheduler
from .service import AlertingService
from .store import AlertStore
from .thresholds import ThresholdRegistry

__all__ = [
    "Alert",
    "AlertStatus",
    "AlertStore",
    "AlertingService",
    "Category",
    "DetectorType",
    "EngineConfig",
    "Finding",
    "ScanScheduler",
    "Severity",
    "ThresholdRegistry",
]
