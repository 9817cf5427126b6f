"""
Threshold registry shared by the detectors.

Thresholds are grouped by concern; updates merge key-by-key and are published
with copy-on-write so a scan always reads one consistent mapping.
"""

import copy
import threading
from collections.abc import Mapping
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_THRESHOLDS: dict[str, dict[str, Any]] = {
    "login_frequency": {
        "unusual_hours": {"start": 22, "end": 6},  # 10PM - 6AM
        "max_logins_per_minute": 10,
        "unusual_login_count": 5,
        "dormant_days": 30,
    },
    "traffic": {
        "daily_active_users_drop_percent": 30,
        "page_view_spike_multiplier": 5,
        "error_rate_threshold": 15,  # percent
    },
    "security": {
        "max_failed_logins_per_user": 5,
        "suspicious_user_agent_patterns": ["bot", "crawler", "spider"],
    },
    "performance": {
        "slow_query_threshold": 2000,  # ms
        "high_memory_usage": 85,  # percent
    },
}


class ThresholdError(ValueError):
    """Raised when a threshold update names unknown groups or keys"""


class ThresholdRegistry:
    """Mutable named thresholds, grouped by detector concern"""

    def __init__(self, initial: Mapping[str, Mapping[str, Any]] | None = None):
        self._lock = threading.Lock()
        self._thresholds = copy.deepcopy(DEFAULT_THRESHOLDS)
        if initial:
            self.update(initial)

    def get(self, group: str) -> dict[str, Any]:
        """Current values for *group*; falls back to built-in defaults"""
        current = self._thresholds
        if group in current:
            return copy.deepcopy(current[group])
        return copy.deepcopy(DEFAULT_THRESHOLDS.get(group, {}))

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Point-in-time copy of every group"""
        return copy.deepcopy(self._thresholds)

    def update(self, partial: Mapping[str, Mapping[str, Any]]) -> None:
        """Merge *partial* into the current thresholds, group by group, key by key

        Raises:
            ThresholdError: If a group or key is unknown or a group is not a mapping.
                The registry is left untouched in that case.
        """
        if not isinstance(partial, Mapping):
            raise ThresholdError("Threshold update must be a mapping of groups")

        with self._lock:
            merged = copy.deepcopy(self._thresholds)
            for group, values in partial.items():
                if group not in DEFAULT_THRESHOLDS:
                    raise ThresholdError(f"Unknown threshold group '{group}'")
                if not isinstance(values, Mapping):
                    raise ThresholdError(f"Threshold group '{group}' must be a mapping")

                unknown = set(values) - set(DEFAULT_THRESHOLDS[group])
                if unknown:
                    raise ThresholdError(
                        f"Unknown thresholds for '{group}': {', '.join(sorted(unknown))}"
                    )
                for key, value in values.items():
                    merged[group][key] = copy.deepcopy(value)

            # Single reference swap; readers hold either the old or the new dict
            self._thresholds = merged

        logger.info("Thresholds updated", groups=sorted(partial))

    def reset(self) -> None:
        """Restore built-in defaults"""
        with self._lock:
            self._thresholds = copy.deepcopy(DEFAULT_THRESHOLDS)
        logger.info("Thresholds reset to defaults")
