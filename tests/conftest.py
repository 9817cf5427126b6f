"""
Pytest configuration and shared fixtures.
"""

from unittest.mock import MagicMock

import pytest

from src.alerting.baselines import BaselineTracker
from src.alerting.models import EngineConfig
from src.alerting.scheduler import ScanScheduler
from src.alerting.store import AlertStore
from src.alerting.thresholds import ThresholdRegistry
from tests.helpers import FakeClock, StubMetricsSource


@pytest.fixture
def clock():
    """Virtual clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def metrics():
    """Metrics source reporting nothing unusual."""
    return StubMetricsSource()


@pytest.fixture
def engine_config():
    """Engine configuration with short waits for fast tests."""
    return EngineConfig(
        scan_interval_seconds=0.05,
        detector_timeout_seconds=2.0,
        notifier_timeout_seconds=0.5,
    )


@pytest.fixture
def store():
    return AlertStore()


@pytest.fixture
def thresholds():
    return ThresholdRegistry()


@pytest.fixture
def notifier():
    """Notifier mock that always reports successful delivery."""
    mock = MagicMock()
    mock.deliver.return_value = True
    return mock


@pytest.fixture
def make_scheduler(store, thresholds, metrics, notifier, engine_config, clock):
    """Factory building a scheduler around the shared fixtures."""
    created = []

    def _make(detectors=None, **overrides):
        scheduler = ScanScheduler(
            store=overrides.get("store", store),
            thresholds=overrides.get("thresholds", thresholds),
            metrics=overrides.get("metrics", metrics),
            baselines=BaselineTracker(overrides.get("metrics", metrics), engine_config),
            notifier=overrides.get("notifier", notifier),
            config=overrides.get("config", engine_config),
            detectors=detectors,
            clock=clock,
        )
        created.append(scheduler)
        return scheduler

    yield _make

    for scheduler in created:
        scheduler.shutdown(timeout=1.0)
