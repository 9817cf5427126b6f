"""
Dynamic traffic baselines.

Rolling averages are recomputed on their own schedule and published as one
immutable snapshot; detectors only ever read the latest snapshot.
"""

import json
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Optional

import pandas as pd
import redis
import structlog

from .metrics import MetricsSource
from .models import EngineConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Baselines:
    """Trailing activity averages"""

    daily_average: float
    hourly_average: float
    computed_at: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Baselines":
        return cls(**data)


class RedisBaselineCache:
    """Redis cache backend for the last computed baselines"""

    KEY = "alerting:baselines"

    def __init__(self, config: EngineConfig):
        try:
            self.redis = redis.Redis(
                host=config.redis_host,
                port=config.redis_port,
                db=config.redis_db,
                password=config.redis_password,
                decode_responses=True,
            )
            self.ttl = config.baseline_cache_ttl_seconds
            self.redis.ping()
            logger.info("Redis baseline cache initialized", host=config.redis_host)
        except Exception as e:
            logger.error("Failed to initialize Redis", error=str(e))
            raise

    def save(self, baselines: Baselines) -> bool:
        try:
            self.redis.setex(self.KEY, self.ttl, json.dumps(baselines.to_dict()))
            return True
        except Exception as e:
            logger.error("Failed to save baselines to Redis", error=str(e))
            return False

    def load(self) -> Optional[Baselines]:
        try:
            data = self.redis.get(self.KEY)
            if data is None:
                return None
            return Baselines.from_dict(json.loads(data))
        except Exception as e:
            logger.error("Failed to load baselines from Redis", error=str(e))
            return None


def average_count(counts: pd.DataFrame) -> float:
    """Mean of the 'count' column; 0.0 when there is no data"""
    if counts.empty or "count" not in counts.columns:
        return 0.0
    value = pd.to_numeric(counts["count"], errors="coerce").mean()
    return 0.0 if pd.isna(value) else float(value)


class BaselineTracker:
    """Computes and publishes the traffic baselines"""

    def __init__(
        self,
        metrics: MetricsSource,
        config: EngineConfig,
        cache: Optional[RedisBaselineCache] = None,
    ):
        self.metrics = metrics
        self.config = config
        self.cache = cache
        self._lock = threading.Lock()
        self._current: Optional[Baselines] = None

    def compute(self, now: datetime) -> Baselines:
        daily = self.metrics.bucket_counts(
            since=now - timedelta(days=self.config.daily_baseline_days), bucket="day"
        )
        hourly = self.metrics.bucket_counts(
            since=now - timedelta(days=self.config.hourly_baseline_days), bucket="hour"
        )
        return Baselines(
            daily_average=average_count(daily),
            hourly_average=average_count(hourly),
            computed_at=now.isoformat(),
        )

    def refresh(self, now: datetime) -> Baselines:
        """Recompute from the metrics source and publish the result"""
        baselines = self.compute(now)
        with self._lock:
            self._current = baselines
        if self.cache is not None:
            self.cache.save(baselines)

        logger.info(
            "Baselines refreshed",
            daily_average=round(baselines.daily_average, 2),
            hourly_average=round(baselines.hourly_average, 2),
        )
        return baselines

    def current(self, now: datetime) -> Baselines:
        """Latest published baselines, falling back to the cache, then to a refresh"""
        with self._lock:
            if self._current is not None:
                return self._current

        if self.cache is not None:
            cached = self.cache.load()
            if cached is not None:
                with self._lock:
                    self._current = cached
                logger.debug("Baselines loaded from cache", computed_at=cached.computed_at)
                return cached

        return self.refresh(now)
