"""Kafka sink for publishing fraud alerts."""

import logging
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from fraud_scoring.config import KafkaConfig
from fraud_scoring.exceptions import SinkError
from fraud_scoring.models import Verdict
from fraud_scoring.sinks.serialization import to_json

logger = logging.getLogger(__name__)


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0


class KafkaAlertSink:
    """Publish review/blocked verdicts to a Kafka topic keyed by user id.

    Keying by user keeps one user's alerts ordered within a partition.
    """

    def __init__(self, config: KafkaConfig | str, topic: str | None = None) -> None:
        """Initialize Kafka alert sink.

        Parameters
        ----------
        config : KafkaConfig | str
            Producer configuration or bootstrap servers string.
        topic : str | None
            Override for ``config.alert_topic``.
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.topic = topic or config.alert_topic
        self.producer = Producer(config.to_dict())
        self.stats = ProducerStats()

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Alert delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered alert to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def notify(self, verdict: Verdict) -> None:
        """Produce one alert message."""
        value = to_json(verdict).encode("utf-8")
        try:
            self.producer.produce(
                topic=self.topic,
                key=verdict.user_id.encode("utf-8"),
                value=value,
                callback=self._delivery_callback,
            )
        except (BufferError, KafkaException) as exc:
            raise SinkError(f"Cannot enqueue alert for {verdict.transaction_id}: {exc}") from exc
        self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        logger.info(
            "Kafka alert sink closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
