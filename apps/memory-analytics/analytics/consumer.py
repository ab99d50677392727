import json
import threading
import time
from datetime import datetime, timezone
from typing import Optional, Tuple

import structlog
from confluent_kafka import Consumer, KafkaError, Message
from pydantic import BaseModel, ValidationError

from analytics.config import Config
from analytics.metrics import SAMPLES_REJECTED, record_derived_metrics
from analytics.models import MemorySample
from analytics.service import AggregationService

logger = structlog.get_logger(__name__)


class SampleEnvelope(BaseModel):
    """Message metadata published alongside the raw counters."""

    host: str = "unknown"
    timestamp: Optional[datetime] = None

    model_config = {"extra": "ignore"}


def decode_sample(raw: bytes) -> Tuple[str, MemorySample, float]:
    """Decode a samples-topic message into (host, sample, observed_at).

    Messages without a timestamp are stamped with the local receive time;
    naive timestamps are read as UTC.
    Raises ValueError for undecodable or invalid payloads.
    """
    payload = json.loads(raw.decode("utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("sample payload must be a JSON object")
    envelope = SampleEnvelope.model_validate(payload)
    sample = MemorySample.model_validate(payload)
    timestamp = envelope.timestamp
    if timestamp is None:
        return envelope.host, sample, time.time()
    if timestamp.tzinfo is None:
        # The collector always sends UTC
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return envelope.host, sample, timestamp.timestamp()


class SampleConsumer:
    """Background Kafka consumer that feeds samples into the aggregation service."""

    def __init__(self, config: Config, service: AggregationService) -> None:
        self._config = config
        self._service = service
        self._consumer = Consumer({
            "bootstrap.servers": config.kafka_brokers,
            "group.id": config.consumer_group,
            "auto.offset.reset": "latest",
            "enable.auto.commit": False,  # Manual offset commit after ingestion
            "session.timeout.ms": 30000,
        })
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._processed_count = 0

    def start(self) -> None:
        self._consumer.subscribe([self._config.samples_topic])
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True, name="samples-consumer")
        self._thread.start()
        logger.info(
            "Sample consumer started",
            topic=self._config.samples_topic,
            consumer_group=self._config.consumer_group,
        )

    def _run(self) -> None:
        while self._running:
            msg = self._consumer.poll(timeout=self._config.consumer_timeout_ms / 1000)
            if msg is None:
                continue
            err = msg.error()
            if err:
                if err.code() == KafkaError._PARTITION_EOF:  # type: ignore[attr-defined]
                    continue
                logger.error("Consumer error", error=str(err))
                continue
            try:
                self._process_message(msg)
                self._consumer.commit(asynchronous=False)
            except Exception as e:
                logger.exception("Failed to process sample message", error=str(e))

    def _process_message(self, msg: Message) -> bool:
        raw = msg.value()
        if raw is None:
            return False
        try:
            host, sample, observed_at = decode_sample(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, ValueError) as e:
            SAMPLES_REJECTED.inc()
            logger.warning("Failed to decode sample", error=str(e))
            return False

        if self._config.source_host and host != self._config.source_host:
            logger.debug("Ignoring sample from other host", host=host)
            return False

        metrics, recommendations = self._service.ingest(sample, observed_at)
        record_derived_metrics(metrics, recommendations)
        self._processed_count += 1

        if recommendations:
            logger.warning(
                "Recommendations raised",
                host=host,
                kinds=[r.kind.value for r in recommendations],
                fragmentation=round(metrics.fragmentation, 4),
                pressure_score=round(metrics.pressure_score, 4),
                swap_usage_percent=round(metrics.swap_usage_percent, 2),
            )
        if self._processed_count % 100 == 0:
            logger.info("Processed samples", count=self._processed_count)
        return True

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=5)
        self._consumer.close()
        logger.info("Sample consumer stopped", total_processed=self._processed_count)
