"""
Tests for the alerting CLI.
"""

from unittest.mock import patch

from src.alerting.run import build_config, main, parse_arguments


class TestArguments:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ALERT_NOTIFIER", raising=False)
        monkeypatch.delenv("SCAN_INTERVAL_SECONDS", raising=False)

        config = build_config(parse_arguments([]))

        assert config.scan_interval_seconds == 30.0
        assert config.notifier == "log"
        assert config.retention_days == 7
        assert config.use_baseline_cache is False

    def test_overrides(self):
        args = parse_arguments(
            ["--notifier", "kafka", "--scan-interval", "10", "--topic", "ops", "--baseline-cache"]
        )

        config = build_config(args)

        assert config.notifier == "kafka"
        assert config.scan_interval_seconds == 10.0
        assert config.kafka_topic == "ops"
        assert config.use_baseline_cache is True

    def test_env_defaults(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_HOST", "db.internal")
        monkeypatch.setenv("ALERT_RETENTION_DAYS", "3")

        config = build_config(parse_arguments([]))

        assert config.postgres_host == "db.internal"
        assert config.retention_days == 3


class TestMain:
    @patch("src.alerting.run.AlertingService")
    def test_once(self, mock_service_class):
        service = mock_service_class.from_config.return_value

        assert main(["--once"]) == 0

        service.trigger_scan.assert_called_once_with(wait=True)
        service.shutdown.assert_called_once()

    @patch("src.alerting.run.AlertingService")
    def test_startup_failure(self, mock_service_class):
        mock_service_class.from_config.side_effect = RuntimeError("Database health check failed")

        assert main(["--once"]) == 1
