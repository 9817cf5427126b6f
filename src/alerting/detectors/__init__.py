"""
Detector registry.

The detector set is closed: adding a detector means adding its class here.
"""

from .base import DetectionContext, Detector
from .performance import HighMemoryUsageDetector, SlowDatabaseResponseDetector
from .security import BruteForceAttemptDetector, SuspiciousUserAgentsDetector
from .traffic import TrafficDropDetector, TrafficSpikeDetector
from .user_behavior import (
    DormantUserActivationDetector,
    RapidLoginAttemptsDetector,
    UnusualLoginTimesDetector,
)

DETECTORS: tuple[type[Detector], ...] = (
    UnusualLoginTimesDetector,
    RapidLoginAttemptsDetector,
    DormantUserActivationDetector,
    TrafficDropDetector,
    TrafficSpikeDetector,
    BruteForceAttemptDetector,
    SuspiciousUserAgentsDetector,
    HighMemoryUsageDetector,
    SlowDatabaseResponseDetector,
)


def build_detectors() -> list[Detector]:
    """Instantiate every registered detector"""
    return [detector_class() for detector_class in DETECTORS]


def list_detectors() -> list[str]:
    """Names of all registered detectors"""
    return [detector_class.detector_type.value for detector_class in DETECTORS]


__all__ = [
    "DETECTORS",
    "BruteForceAttemptDetector",
    "DetectionContext",
    "Detector",
    "DormantUserActivationDetector",
    "HighMemoryUsageDetector",
    "RapidLoginAttemptsDetector",
    "SlowDatabaseResponseDetector",
    "SuspiciousUserAgentsDetector",
    "TrafficDropDetector",
    "TrafficSpikeDetector",
    "UnusualLoginTimesDetector",
    "build_detectors",
    "list_detectors",
]
