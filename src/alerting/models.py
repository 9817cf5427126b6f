"""
Data models and configuration for the alerting engine.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    """Ordered urgency classification of an alert"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class Category(str, Enum):
    USER_BEHAVIOR = "user_behavior"
    TRAFFIC = "traffic"
    SECURITY = "security"
    PERFORMANCE = "performance"


class DetectorType(str, Enum):
    UNUSUAL_LOGIN_TIMES = "unusual_login_times"
    RAPID_LOGIN_ATTEMPTS = "rapid_login_attempts"
    DORMANT_USER_ACTIVATION = "dormant_user_activation"
    TRAFFIC_DROP = "traffic_drop"
    TRAFFIC_SPIKE = "traffic_spike"
    BRUTE_FORCE_ATTEMPT = "brute_force_attempt"
    SUSPICIOUS_USER_AGENTS = "suspicious_user_agents"
    HIGH_MEMORY_USAGE = "high_memory_usage"
    SLOW_DATABASE_RESPONSE = "slow_database_response"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class ScanOutcome(str, Enum):
    """Result of one scan attempt"""

    COMPLETED = "completed"
    ALREADY_RUNNING = "already_running"
    CANCELLED = "cancelled"


class ScanTrigger(str, Enum):
    """Answer to a manual scan request"""

    ACCEPTED = "accepted"
    ALREADY_RUNNING = "already_running"


@dataclass(frozen=True)
class Finding:
    """A candidate alert produced by a detector, before it gets an id"""

    detector_type: DetectorType
    category: Category
    severity: Severity
    description: str
    evidence: dict[str, Any] = field(default_factory=dict)


@dataclass
class Alert:
    """An alert owned by the AlertStore"""

    id: str
    detector_type: DetectorType
    category: Category
    severity: Severity
    description: str
    evidence: dict[str, Any]
    detected_at: datetime
    status: AlertStatus = AlertStatus.ACTIVE
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None

    @classmethod
    def from_finding(cls, alert_id: str, finding: Finding, detected_at: datetime) -> "Alert":
        return cls(
            id=alert_id,
            detector_type=finding.detector_type,
            category=finding.category,
            severity=finding.severity,
            description=finding.description,
            evidence=finding.evidence,
            detected_at=detected_at,
        )

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary"""
        data = asdict(self)
        for key in ("detector_type", "category", "severity", "status"):
            data[key] = data[key].value
        for key in ("detected_at", "acknowledged_at", "resolved_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


@dataclass
class ScanReport:
    """Summary of one scan cycle"""

    outcome: ScanOutcome
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    alerts: list[Alert] = field(default_factory=list)
    failed_detectors: list[str] = field(default_factory=list)


@dataclass
class EngineConfig:
    """Configuration for the alerting engine"""

    # Scheduling (seconds)
    scan_interval_seconds: float = 30.0
    baseline_refresh_seconds: float = 600.0
    eviction_interval_seconds: float = 3600.0
    auto_resolve_check_seconds: float = 60.0

    # Alert lifecycle
    retention_days: int = 7
    auto_resolve_delay_seconds: float = 3600.0
    auto_resolve_note: str = "auto-resolved"

    # Bounded waits
    detector_timeout_seconds: float = 20.0
    notifier_timeout_seconds: float = 5.0
    max_detector_workers: int = 9

    # Baselines
    daily_baseline_days: int = 30
    hourly_baseline_days: int = 7
    baseline_cache_ttl_seconds: int = 900
    use_baseline_cache: bool = False

    # Notifier: "log" or "kafka"
    notifier: str = "log"

    # PostgreSQL settings (metrics source)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "admin_dashboard"
    postgres_user: str = "dashboard"
    postgres_password: str = "dashboard_password"

    # Redis settings (baseline cache)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    # Kafka settings (notifier)
    kafka_bootstrap_servers: str = "localhost:9092"
    kafka_topic: str = "alerts"
