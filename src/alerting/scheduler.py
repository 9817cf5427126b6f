"""
Scan scheduler.

Drives the periodic jobs of the engine, each on its own daemon thread:

- scan: run every detector concurrently, commit the findings as one batch,
  notify once per new alert
- baseline refresh: recompute rolling averages
- eviction: drop alerts older than the retention window
- auto-resolve sweep: resolve low-severity alerts left active too long

Scans never overlap: a tick or manual trigger that finds a scan in progress
is skipped, not queued.
"""

import threading
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from .auto_resolve import AutoResolveQueue
from .baselines import BaselineTracker
from .detectors import DetectionContext, Detector, build_detectors
from .metrics import MetricsSource
from .models import (
    Alert,
    EngineConfig,
    Finding,
    ScanOutcome,
    ScanReport,
    ScanTrigger,
    Severity,
)
from .notifier import Notifier
from .store import AlertStore
from .thresholds import ThresholdRegistry

logger = structlog.get_logger(__name__)

POLL_SECONDS = 0.25


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PeriodicTask(threading.Thread):
    """Calls *func* every *interval* seconds until *stop_event* is set

    Exceptions are logged and never end the loop.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], object],
        stop_event: threading.Event,
    ):
        super().__init__(name=f"alerting-{name}", daemon=True)
        self.task_name = name
        self.interval = interval
        self.func = func
        self.stop_event = stop_event

    def run(self):
        logger.info("Periodic task started", task=self.task_name, interval_sec=self.interval)
        while not self.stop_event.wait(self.interval):
            try:
                self.func()
            except Exception as e:
                logger.error("Periodic task failed", task=self.task_name, error=str(e), exc_info=True)
        logger.info("Periodic task stopped", task=self.task_name)


class ScanScheduler:
    """Runs detectors on a schedule and feeds the alert store"""

    def __init__(
        self,
        store: AlertStore,
        thresholds: ThresholdRegistry,
        metrics: MetricsSource,
        baselines: BaselineTracker,
        notifier: Notifier,
        config: EngineConfig,
        detectors: Optional[list[Detector]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.thresholds = thresholds
        self.metrics = metrics
        self.baselines = baselines
        self.notifier = notifier
        self.config = config
        self.detectors = detectors if detectors is not None else build_detectors()
        self.clock = clock

        self.auto_resolve = AutoResolveQueue(
            store,
            delay=timedelta(seconds=config.auto_resolve_delay_seconds),
            note=config.auto_resolve_note,
        )

        self._scan_lock = threading.Lock()
        self._scan_cancel: Optional[threading.Event] = None
        self._stop_event = threading.Event()
        self._tasks: list[PeriodicTask] = []
        self._detector_pool = ThreadPoolExecutor(
            max_workers=max(1, config.max_detector_workers), thread_name_prefix="detector"
        )
        self._notify_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="notifier")
        # Detector workers still running after their scan gave up on them
        self._abandoned_lock = threading.Lock()
        self._abandoned_workers = 0

        self.last_scan_at: Optional[datetime] = None
        self.stats = {
            "scans_completed": 0,
            "scans_skipped": 0,
            "scans_cancelled": 0,
            "detector_failures": 0,
            "detectors_abandoned": 0,
            "alerts_created": 0,
            "notify_failures": 0,
        }

        logger.info(
            "Scan scheduler initialized",
            detectors=[d.name for d in self.detectors],
            scan_interval_sec=config.scan_interval_seconds,
        )

    # ========================================
    # Lifecycle
    # ========================================

    def start(self):
        """Start the periodic jobs"""
        if self._tasks:
            logger.warning("Scan scheduler already started")
            return

        self._stop_event.clear()
        jobs = [
            ("scan", self.config.scan_interval_seconds, self.run_scan),
            ("baselines", self.config.baseline_refresh_seconds, self.refresh_baselines),
            ("eviction", self.config.eviction_interval_seconds, self.evict_expired),
            ("auto-resolve", self.config.auto_resolve_check_seconds, self.process_auto_resolves),
        ]
        for name, interval, func in jobs:
            task = PeriodicTask(name, interval, func, self._stop_event)
            task.start()
            self._tasks.append(task)

        logger.info("Alerting engine online", jobs=[name for name, _, _ in jobs])

    def shutdown(self, timeout: float = 5.0):
        """Stop periodic jobs and abandon any in-flight scan"""
        self._stop_event.set()
        self.cancel_scan()

        for task in self._tasks:
            task.join(timeout=timeout)
        self._tasks.clear()

        self._detector_pool.shutdown(wait=False, cancel_futures=True)
        self._notify_pool.shutdown(wait=False, cancel_futures=True)
        self.notifier.close()
        logger.info("Scan scheduler stopped", stats=self.stats)

    @property
    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    @property
    def abandoned_workers(self) -> int:
        with self._abandoned_lock:
            return self._abandoned_workers

    def cancel_scan(self) -> bool:
        """Ask the in-flight scan, if any, to abandon its batch"""
        cancel = self._scan_cancel
        if cancel is None:
            return False
        cancel.set()
        logger.info("Scan cancellation requested")
        return True

    # ========================================
    # Scans
    # ========================================

    def run_scan(self) -> ScanReport:
        """Run one scan now unless another scan is in progress"""
        if not self._scan_lock.acquire(blocking=False):
            self.stats["scans_skipped"] += 1
            logger.info("Scan already running, tick skipped")
            return ScanReport(outcome=ScanOutcome.ALREADY_RUNNING)
        try:
            return self._scan()
        finally:
            self._scan_lock.release()

    def trigger_scan(self, wait: bool = False) -> ScanTrigger:
        """Manual out-of-band scan

        Runs on a background thread unless *wait* is set.
        """
        if not self._scan_lock.acquire(blocking=False):
            logger.info("Manual scan requested while a scan is running")
            return ScanTrigger.ALREADY_RUNNING

        logger.info("Manual scan triggered", wait=wait)
        if wait:
            self._scan_and_release()
        else:
            threading.Thread(
                target=self._scan_and_release, name="alerting-manual-scan", daemon=True
            ).start()
        return ScanTrigger.ACCEPTED

    def _scan_and_release(self):
        try:
            self._scan()
        except Exception as e:
            logger.error("Manual scan failed", error=str(e), exc_info=True)
        finally:
            self._scan_lock.release()

    def _scan(self) -> ScanReport:
        """One scan cycle; the caller holds the scan lock"""
        now = self.clock()
        cancel = threading.Event()
        self._scan_cancel = cancel
        if self._stop_event.is_set():
            cancel.set()

        logger.info("Running anomaly detection scan", detectors=len(self.detectors))
        started = time.monotonic()

        context = DetectionContext(
            metrics=self.metrics,
            thresholds=self.thresholds.snapshot(),
            now=now,
            baselines=lambda: self.baselines.current(now),
            cancel_event=cancel,
        )

        try:
            findings, failed = self._run_detectors(context)

            if cancel.is_set():
                self.stats["scans_cancelled"] += 1
                logger.warning("Scan cancelled, discarding batch", findings=len(findings))
                return ScanReport(
                    outcome=ScanOutcome.CANCELLED,
                    started_at=now,
                    failed_detectors=failed,
                )

            alerts = self.store.append_many(findings, now)
        finally:
            self._scan_cancel = None

        for alert in alerts:
            if alert.severity == Severity.LOW:
                self.auto_resolve.schedule(alert.id, alert.detected_at)
        self._notify(alerts)

        self.last_scan_at = now
        self.stats["scans_completed"] += 1
        self.stats["alerts_created"] += len(alerts)

        logger.info(
            "Scan completed",
            alerts=len(alerts),
            failed_detectors=failed,
            elapsed_sec=round(time.monotonic() - started, 3),
        )
        return ScanReport(
            outcome=ScanOutcome.COMPLETED,
            started_at=now,
            finished_at=self.clock(),
            alerts=alerts,
            failed_detectors=failed,
        )

    def _run_detectors(self, context: DetectionContext) -> tuple[list[Finding], list[str]]:
        """Run all detectors concurrently and collect the successful findings"""
        futures = {
            self._detector_pool.submit(self._run_detector, detector, context): detector
            for detector in self.detectors
        }

        deadline = time.monotonic() + self.config.detector_timeout_seconds
        pending = set(futures)
        while pending and not context.cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            _, pending = wait(pending, timeout=min(remaining, POLL_SECONDS), return_when=FIRST_COMPLETED)

        findings: list[Finding] = []
        failed: list[str] = []
        # Keep registry order so batches are deterministic
        for future, detector in futures.items():
            if future in pending:
                if not future.cancel():
                    self._abandon(future, detector)
                if not context.cancelled:
                    logger.error("Detector timed out", detector=detector.name)
                    self.stats["detector_failures"] += 1
                failed.append(detector.name)
                continue

            result = future.result()
            if result is None:
                self.stats["detector_failures"] += 1
                failed.append(detector.name)
            else:
                findings.extend(result)

        return findings, failed

    def _abandon(self, future, detector: Detector):
        """Track a detector thread the pool can no longer reuse until it returns"""
        with self._abandoned_lock:
            self._abandoned_workers += 1
            abandoned = self._abandoned_workers
        self.stats["detectors_abandoned"] += 1
        logger.warning(
            "Detector still running past deadline, worker abandoned",
            detector=detector.name,
            abandoned_workers=abandoned,
            pool_size=self.config.max_detector_workers,
        )
        future.add_done_callback(self._release_abandoned)

    def _release_abandoned(self, _future):
        with self._abandoned_lock:
            self._abandoned_workers -= 1

    @staticmethod
    def _run_detector(detector: Detector, context: DetectionContext) -> Optional[list[Finding]]:
        """Per-detector failure boundary: None means the detector failed"""
        try:
            return [f for f in detector.detect(context) if f is not None]
        except Exception as e:
            logger.error("Detector failed", detector=detector.name, error=str(e), exc_info=True)
            return None

    def _notify(self, alerts: list[Alert]):
        """Hand every new alert to the notifier once, with a bounded wait"""
        submitted = [(alert, self._notify_pool.submit(self.notifier.deliver, alert)) for alert in alerts]
        for alert, future in submitted:
            try:
                delivered = future.result(timeout=self.config.notifier_timeout_seconds)
            except FuturesTimeoutError:
                self.stats["notify_failures"] += 1
                logger.error("Notifier timed out", alert_id=alert.id)
                continue
            except Exception as e:
                self.stats["notify_failures"] += 1
                logger.error("Notifier failed", alert_id=alert.id, error=str(e))
                continue

            if not delivered:
                self.stats["notify_failures"] += 1
                logger.warning("Notifier reported delivery failure", alert_id=alert.id)

    # ========================================
    # Housekeeping jobs
    # ========================================

    def refresh_baselines(self):
        try:
            self.baselines.refresh(self.clock())
        except Exception as e:
            logger.error("Baseline refresh failed", error=str(e))

    def evict_expired(self) -> list[str]:
        evicted = self.store.evict_older_than(
            timedelta(days=self.config.retention_days), self.clock()
        )
        self.auto_resolve.cancel_many(evicted)
        return evicted

    def process_auto_resolves(self) -> list[str]:
        return self.auto_resolve.process_due(self.clock())
