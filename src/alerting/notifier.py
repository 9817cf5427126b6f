"""
Downstream sinks for newly created alerts.

The engine calls deliver() once per new alert and never retries; retries
and channel fan-out (email, Slack, webhooks) belong to the sink.
"""

import json
from abc import ABC, abstractmethod

import structlog
from kafka import KafkaProducer

from .models import Alert, EngineConfig, Severity

logger = structlog.get_logger(__name__)


def alert_payload(alert: Alert) -> dict:
    """Webhook-style payload for an alert"""
    return {
        "event_type": "anomaly_detected",
        "alert_id": alert.id,
        "severity": alert.severity.value,
        "anomaly_type": alert.detector_type.value,
        "category": alert.category.value,
        "description": alert.description,
        "timestamp": alert.detected_at.isoformat(),
        "urgent": alert.severity >= Severity.HIGH,
        "evidence": alert.evidence,
    }


class Notifier(ABC):
    """Receives new alerts for delivery"""

    @abstractmethod
    def deliver(self, alert: Alert) -> bool:
        """Deliver one alert; True on success"""

    def close(self) -> None:
        """Release resources"""


class LoggingNotifier(Notifier):
    """Writes alerts to the structured log"""

    def deliver(self, alert: Alert) -> bool:
        log = logger.warning if alert.severity >= Severity.HIGH else logger.info
        log(
            "Broadcasting alert",
            alert_id=alert.id,
            anomaly_type=alert.detector_type.value,
            severity=alert.severity.value,
            description=alert.description,
        )
        return True


class KafkaNotifier(Notifier):
    """Publishes alert payloads to a Kafka topic"""

    def __init__(self, config: EngineConfig):
        self.topic = config.kafka_topic
        self.timeout_seconds = config.notifier_timeout_seconds
        try:
            self.producer = KafkaProducer(
                bootstrap_servers=config.kafka_bootstrap_servers,
                value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
                key_serializer=lambda k: k.encode("utf-8"),
            )
            logger.info(
                "Kafka producer initialized",
                bootstrap_servers=config.kafka_bootstrap_servers,
                topic=self.topic,
            )
        except Exception as e:
            logger.error("Failed to initialize Kafka producer", error=str(e))
            raise

    def deliver(self, alert: Alert) -> bool:
        try:
            future = self.producer.send(self.topic, key=alert.id, value=alert_payload(alert))
            future.get(timeout=self.timeout_seconds)
            logger.debug("Alert published", alert_id=alert.id, topic=self.topic)
            return True
        except Exception as e:
            logger.error("Failed to publish alert", alert_id=alert.id, error=str(e))
            return False

    def close(self) -> None:
        self.producer.close()
        logger.info("Kafka producer closed")


NOTIFIER_REGISTRY = {
    "log": LoggingNotifier,
    "kafka": KafkaNotifier,
}


def get_notifier(name: str, config: EngineConfig) -> Notifier:
    """Factory to create a notifier

    Raises:
        ValueError: If name is not registered
    """
    if name not in NOTIFIER_REGISTRY:
        available = ", ".join(NOTIFIER_REGISTRY.keys())
        raise ValueError(f"Unknown notifier '{name}'. Available notifiers: {available}")

    notifier_class = NOTIFIER_REGISTRY[name]
    if notifier_class is LoggingNotifier:
        return notifier_class()
    return notifier_class(config)
