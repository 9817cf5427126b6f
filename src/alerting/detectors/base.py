"""
Base interface for detectors.

A detector inspects the metrics source under the current thresholds and
returns zero or more findings. Detectors never mutate shared state and make
no assumption about the order in which the other detectors run.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ..baselines import Baselines
from ..metrics import MetricsSource
from ..models import Category, DetectorType, Finding, Severity


@dataclass
class DetectionContext:
    """Everything a detector may read during one scan"""

    metrics: MetricsSource
    thresholds: dict[str, dict[str, Any]]
    now: datetime
    baselines: Callable[[], Baselines]
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def ago(self, **kwargs) -> datetime:
        """now minus a timedelta built from *kwargs*"""
        return self.now - timedelta(**kwargs)


class Detector(ABC):
    """Abstract base class for all detectors"""

    detector_type: DetectorType
    category: Category
    severity: Severity

    @abstractmethod
    def detect(self, context: DetectionContext) -> list[Finding]:
        """Inspect metrics and return findings (empty list when nothing fires)"""

    @property
    def name(self) -> str:
        return self.detector_type.value

    def finding(self, description: str, evidence: dict[str, Any]) -> Finding:
        return Finding(
            detector_type=self.detector_type,
            category=self.category,
            severity=self.severity,
            description=description,
            evidence=evidence,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.name})"
