"""
CLI for the alerting engine.

Usage:
    python -m src.alerting.run [options]
"""

import argparse
import logging
import os
import sys
import time

import structlog

from src.core.logger import setup_logging

from .models import EngineConfig
from .service import AlertingService

logger = structlog.get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Scheduled anomaly scanning and alert lifecycle engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Run the engine with default intervals
        python -m src.alerting.run

        # Publish alerts to Kafka and scan every 10 seconds
        python -m src.alerting.run --notifier kafka --scan-interval 10

        # Single scan, then print stats
        python -m src.alerting.run --once
        """,
    )

    # Scheduling
    parser.add_argument(
        "--scan-interval",
        type=float,
        default=float(os.getenv("SCAN_INTERVAL_SECONDS", "30")),
        help="Seconds between scans (default: 30)",
    )
    parser.add_argument(
        "--baseline-interval",
        type=float,
        default=float(os.getenv("BASELINE_REFRESH_SECONDS", "600")),
        help="Seconds between baseline refreshes (default: 600)",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=int(os.getenv("ALERT_RETENTION_DAYS", "7")),
        help="Days an alert is kept regardless of status (default: 7)",
    )
    parser.add_argument(
        "--notifier-timeout",
        type=float,
        default=5.0,
        help="Seconds to wait for each notifier call (default: 5)",
    )

    # Notifier
    parser.add_argument(
        "--notifier",
        choices=["log", "kafka"],
        default=os.getenv("ALERT_NOTIFIER", "log"),
        help="Where new alerts are delivered (default: log)",
    )
    parser.add_argument(
        "--kafka-servers",
        default=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
        help="Kafka bootstrap servers (default: localhost:9092)",
    )
    parser.add_argument(
        "--topic",
        default=os.getenv("KAFKA_ALERT_TOPIC", "alerts"),
        help="Kafka topic for alerts (default: alerts)",
    )

    # PostgreSQL settings
    parser.add_argument(
        "--postgres-host",
        default=os.getenv("POSTGRES_HOST", "localhost"),
        help="PostgreSQL host",
    )
    parser.add_argument(
        "--postgres-port",
        type=int,
        default=int(os.getenv("POSTGRES_PORT", "5432")),
        help="PostgreSQL port",
    )
    parser.add_argument(
        "--postgres-db",
        default=os.getenv("POSTGRES_DB", "admin_dashboard"),
        help="PostgreSQL database",
    )
    parser.add_argument(
        "--postgres-user",
        default=os.getenv("POSTGRES_USER", "dashboard"),
        help="PostgreSQL user",
    )
    parser.add_argument(
        "--postgres-password",
        default=os.getenv("POSTGRES_PASSWORD", "dashboard_password"),
        help="PostgreSQL password",
    )

    # Redis configuration
    parser.add_argument(
        "--redis-host",
        default=os.getenv("REDIS_HOST", "localhost"),
        help="Redis host (default: localhost or REDIS_HOST env var)",
    )
    parser.add_argument(
        "--baseline-cache",
        action="store_true",
        help="Cache baselines in Redis across restarts",
    )

    # Runtime settings
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan and exit",
    )
    parser.add_argument(
        "--duration",
        type=int,
        help="Run for N seconds then stop (default: infinite)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config(args) -> EngineConfig:
    """Build configuration from arguments"""
    return EngineConfig(
        scan_interval_seconds=args.scan_interval,
        baseline_refresh_seconds=args.baseline_interval,
        retention_days=args.retention_days,
        notifier_timeout_seconds=args.notifier_timeout,
        notifier=args.notifier,
        kafka_bootstrap_servers=args.kafka_servers,
        kafka_topic=args.topic,
        postgres_host=args.postgres_host,
        postgres_port=args.postgres_port,
        postgres_database=args.postgres_db,
        postgres_user=args.postgres_user,
        postgres_password=args.postgres_password,
        redis_host=args.redis_host,
        use_baseline_cache=args.baseline_cache,
    )


def run_forever(service: AlertingService, duration_seconds: int | None = None):
    """Start the engine and block until interrupted or the duration elapses"""
    service.start()
    start_time = time.time()
    try:
        while True:
            time.sleep(1)
            if duration_seconds and time.time() - start_time >= duration_seconds:
                logger.info("Duration limit reached", duration_seconds=duration_seconds)
                break
    finally:
        service.shutdown()


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    setup_logging(level=getattr(logging, args.log_level))

    logger.info("Starting alerting engine")

    try:
        config = build_config(args)
        service = AlertingService.from_config(config)

        if args.once:
            service.trigger_scan(wait=True)
            logger.info("Scan finished", stats=service.get_stats())
            service.shutdown()
        else:
            run_forever(service, duration_seconds=args.duration)

        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Alerting engine failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
