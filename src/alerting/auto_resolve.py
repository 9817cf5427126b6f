"""
Deferred auto-resolution of low-severity alerts.

Pending resolutions are keyed by alert id so a manual transition or an
eviction can revoke them before they fire.
"""

import threading
from datetime import datetime, timedelta

import structlog

from .store import AlertStore

logger = structlog.get_logger(__name__)


class AutoResolveQueue:
    """Alert id -> due time, drained by the scheduler's sweep"""

    def __init__(self, store: AlertStore, delay: timedelta, note: str = "auto-resolved"):
        self.store = store
        self.delay = delay
        self.note = note
        self._lock = threading.Lock()
        self._due: dict[str, datetime] = {}

    def schedule(self, alert_id: str, detected_at: datetime) -> datetime:
        due_at = detected_at + self.delay
        with self._lock:
            self._due[alert_id] = due_at
        logger.debug("Auto-resolve scheduled", alert_id=alert_id, due_at=due_at.isoformat())
        return due_at

    def cancel(self, alert_id: str) -> bool:
        with self._lock:
            return self._due.pop(alert_id, None) is not None

    def cancel_many(self, alert_ids: list[str]) -> None:
        with self._lock:
            for alert_id in alert_ids:
                self._due.pop(alert_id, None)

    def pending(self) -> dict[str, datetime]:
        with self._lock:
            return dict(self._due)

    def process_due(self, now: datetime) -> list[str]:
        """Resolve every alert whose due time has passed and is still active

        Returns:
            Ids that were actually resolved by this sweep
        """
        with self._lock:
            due = [alert_id for alert_id, due_at in self._due.items() if due_at <= now]
            for alert_id in due:
                del self._due[alert_id]

        resolved = []
        for alert_id in due:
            # A manual transition in the meantime makes this a no-op
            if self.store.resolve_if_active(alert_id, self.note, now):
                resolved.append(alert_id)

        if due:
            logger.info("Auto-resolve sweep", due=len(due), resolved=len(resolved))
        return resolved
