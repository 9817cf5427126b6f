"""
Metrics source consumed by the detectors.

The engine only depends on the abstract MetricsSource; PostgresMetricsSource
answers the queries from the dashboard's activity log tables:

- activity_logs(user_id, action, ip_address, user_agent, success, timestamp)
- users(id, username, created_at, last_login)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import pandas as pd
import psutil
import structlog

from src.core.database import PostgresConnection

from .models import EngineConfig

logger = structlog.get_logger(__name__)

GROUPABLE_COLUMNS = {"user_id", "ip_address", "user_agent", "action"}
BUCKETS = {"day", "hour"}


class MetricsSourceError(RuntimeError):
    """Transient failure while querying the metrics source"""


@dataclass(frozen=True)
class EventFilter:
    """Optional restrictions applied to event queries"""

    hours: Optional[tuple[int, int]] = None  # (start, end); wraps midnight when start > end
    user_agent_patterns: Optional[tuple[str, ...]] = None  # case-insensitive substrings
    user_ids: Optional[tuple[Any, ...]] = None


@dataclass(frozen=True)
class ProcessStats:
    """Memory usage snapshot of the engine process"""

    heap_used_ratio: float
    rss_bytes: int = 0


def hour_in_window(hour: int, start: int, end: int) -> bool:
    """True if *hour* is inside [start, end), wrapping midnight when start > end"""
    if start > end:
        return hour >= start or hour < end
    return start <= hour < end


class MetricsSource(ABC):
    """Time-windowed queries the detectors rely on

    Every method may raise MetricsSourceError; the engine treats that as
    "no finding this cycle" for the calling detector.
    """

    @abstractmethod
    def count_events(
        self,
        event_type: str | None,
        since: datetime,
        until: datetime | None = None,
        group_by: str | None = None,
        event_filter: EventFilter | None = None,
    ) -> int | dict[Any, int]:
        """Count events of *event_type* (None = all) in [since, until)

        Returns a plain count, or a {group value: count} mapping with *group_by*.
        """

    @abstractmethod
    def sample_events(
        self,
        event_type: str | None,
        since: datetime,
        event_filter: EventFilter | None = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Most recent matching event records, at most *limit*"""

    @abstractmethod
    def bucket_counts(
        self, since: datetime, bucket: str, until: datetime | None = None
    ) -> pd.DataFrame:
        """Event counts per time bucket ("day" or "hour"), columns ['bucket', 'count']"""

    @abstractmethod
    def dormant_user_ids(self, inactive_since: datetime, active_since: datetime) -> list[Any]:
        """Users who logged in after *active_since* without any login
        between *inactive_since* and *active_since*"""

    @abstractmethod
    def current_process_stats(self) -> ProcessStats:
        """Current memory usage of this process"""

    @abstractmethod
    def probe_latency(self) -> float:
        """Round-trip latency of a trivial read, in milliseconds"""


class PostgresMetricsSource(PostgresConnection, MetricsSource):
    """MetricsSource backed by the dashboard's PostgreSQL tables"""

    def __init__(self, config: EngineConfig):
        super().__init__(
            host=config.postgres_host,
            port=config.postgres_port,
            database=config.postgres_database,
            user=config.postgres_user,
            password=config.postgres_password,
        )
        self.config = config

    @staticmethod
    def _where(
        event_type: str | None,
        since: datetime,
        until: datetime | None,
        event_filter: EventFilter | None,
    ) -> tuple[str, list[Any]]:
        clauses = ["timestamp >= %s"]
        params: list[Any] = [since]

        if until is not None:
            clauses.append("timestamp < %s")
            params.append(until)
        if event_type is not None:
            clauses.append("action = %s")
            params.append(event_type)

        if event_filter is not None:
            if event_filter.hours is not None:
                start, end = event_filter.hours
                joiner = "OR" if start > end else "AND"
                clauses.append(
                    f"(EXTRACT(HOUR FROM timestamp) >= %s {joiner} EXTRACT(HOUR FROM timestamp) < %s)"
                )
                params.extend([start, end])
            if event_filter.user_agent_patterns:
                clauses.append("user_agent ILIKE ANY(%s)")
                params.append([f"%{p}%" for p in event_filter.user_agent_patterns])
            if event_filter.user_ids is not None:
                clauses.append("user_id = ANY(%s)")
                params.append(list(event_filter.user_ids))

        return " AND ".join(clauses), params

    def _fetch(self, query: str, params: list[Any], what: str) -> tuple[list[str], list[tuple]]:
        try:
            return self.fetch_all(query, params)
        except Exception as e:
            logger.error("Metrics query failed", query_name=what, error=str(e))
            raise MetricsSourceError(f"{what} failed: {e}") from e

    def count_events(self, event_type, since, until=None, group_by=None, event_filter=None):
        where, params = self._where(event_type, since, until, event_filter)

        if group_by is None:
            _, rows = self._fetch(
                f"SELECT COUNT(*) FROM activity_logs WHERE {where}", params, "count_events"
            )
            return int(rows[0][0]) if rows else 0

        if group_by not in GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group events by '{group_by}'")

        _, rows = self._fetch(
            f"SELECT {group_by}, COUNT(*) FROM activity_logs WHERE {where} GROUP BY {group_by}",
            params,
            "count_events",
        )
        return {row[0]: int(row[1]) for row in rows}

    def sample_events(self, event_type, since, event_filter=None, limit=10):
        where, params = self._where(event_type, since, None, event_filter)
        columns, rows = self._fetch(
            f"""
            SELECT user_id, action, ip_address, user_agent, success, timestamp
            FROM activity_logs
            WHERE {where}
            ORDER BY timestamp DESC
            LIMIT %s
            """,
            params + [limit],
            "sample_events",
        )
        return [dict(zip(columns, row, strict=False)) for row in rows]

    def bucket_counts(self, since, bucket, until=None):
        if bucket not in BUCKETS:
            raise ValueError(f"Unknown bucket '{bucket}'. Available buckets: day, hour")

        where, params = self._where(None, since, until, None)
        columns, rows = self._fetch(
            f"""
            SELECT date_trunc('{bucket}', timestamp) AS bucket, COUNT(*) AS count
            FROM activity_logs
            WHERE {where}
            GROUP BY date_trunc('{bucket}', timestamp)
            ORDER BY bucket
            """,
            params,
            "bucket_counts",
        )
        df = pd.DataFrame(rows, columns=columns)
        logger.debug("Queried bucket counts", bucket=bucket, rows=len(df))
        return df

    def dormant_user_ids(self, inactive_since, active_since):
        _, rows = self._fetch(
            """
            SELECT DISTINCT recent.user_id
            FROM activity_logs recent
            JOIN users u ON u.id = recent.user_id
            WHERE recent.action = 'login'
              AND recent.timestamp >= %s
              AND u.created_at < %s
              AND NOT EXISTS (
                  SELECT 1 FROM activity_logs prior
                  WHERE prior.user_id = recent.user_id
                    AND prior.action = 'login'
                    AND prior.timestamp >= %s
                    AND prior.timestamp < %s
              )
            """,
            [active_since, inactive_since, inactive_since, active_since],
            "dormant_user_ids",
        )
        return [row[0] for row in rows]

    def current_process_stats(self):
        process = psutil.Process()
        return ProcessStats(
            heap_used_ratio=process.memory_percent() / 100.0,
            rss_bytes=process.memory_info().rss,
        )

    def probe_latency(self):
        try:
            return self.timed_round_trip("SELECT id FROM users LIMIT 1")
        except Exception as e:
            logger.error("Metrics query failed", query_name="probe_latency", error=str(e))
            raise MetricsSourceError(f"probe_latency failed: {e}") from e
