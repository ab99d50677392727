import time
from collections import deque
from typing import Any, Deque, Optional

import structlog
from confluent_kafka import KafkaException, Message, Producer

from collector.config import Config
from collector.models import MemorySampleEvent

logger = structlog.get_logger(__name__)

BACKLOG_SIZE = 1000
RETRY_BACKOFF_SECONDS = 0.5


class SampleProducer:
    """Publishes memory samples keyed by host.

    Samples the client cannot accept after the configured retries are parked
    in a bounded backlog. The backlog is re-sent oldest first before the next
    sample, so the topic stays in collection order once the broker is back.
    A full backlog drops its oldest sample.
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._backlog: Deque[MemorySampleEvent] = deque(maxlen=BACKLOG_SIZE)
        self._delivery_failures = 0
        self._producer = Producer({
            "bootstrap.servers": config.kafka_brokers,
            "acks": "all",
            "enable.idempotence": True,
            "delivery.timeout.ms": 30000,
            "client.id": f"memory-collector-{config.host_id}",
        })

    @property
    def backlog_size(self) -> int:
        return len(self._backlog)

    @property
    def delivery_failures(self) -> int:
        return self._delivery_failures

    def _on_delivery(self, err: Any, msg: Message) -> None:
        if err is None:
            return
        # Broker-side loss after produce() accepted the sample
        self._delivery_failures += 1
        logger.error("Sample delivery failed", topic=msg.topic(), error=str(err))

    def _produce(self, event: MemorySampleEvent) -> None:
        self._producer.produce(
            topic=self._config.samples_topic,
            key=event.host.encode("utf-8"),
            value=event.model_dump_json().encode("utf-8"),
            on_delivery=self._on_delivery,
        )

    def _send(self, event: MemorySampleEvent) -> bool:
        attempts = self._config.producer_retry_max + 1
        for attempt in range(1, attempts + 1):
            try:
                self._produce(event)
                self._producer.poll(0)
                return True
            except BufferError:
                # Local queue is full; serving delivery reports frees room
                logger.warning("Producer queue full", attempt=attempt)
                self._producer.poll(RETRY_BACKOFF_SECONDS * attempt)
            except KafkaException as e:
                logger.warning("Sample publish failed", attempt=attempt, error=str(e))
                if attempt < attempts:
                    time.sleep(RETRY_BACKOFF_SECONDS * attempt)
        return False

    def _park(self, event: MemorySampleEvent) -> None:
        if len(self._backlog) == BACKLOG_SIZE:
            logger.warning(
                "Backlog full, dropping oldest sample",
                dropped_timestamp=self._backlog[0].timestamp.isoformat(),
            )
        self._backlog.append(event)
        logger.error("Sample parked", timestamp=event.timestamp.isoformat(), backlog=len(self._backlog))

    def _drain_backlog(self) -> bool:
        """Re-send parked samples oldest first; True once the backlog is empty."""
        resent = 0
        while self._backlog:
            try:
                self._produce(self._backlog[0])
            except (BufferError, KafkaException) as e:
                logger.warning("Backlog re-send interrupted", remaining=len(self._backlog), error=str(e))
                break
            self._backlog.popleft()
            resent += 1
        self._producer.poll(0)
        if resent:
            logger.info("Re-sent parked samples", count=resent, remaining=len(self._backlog))
        return not self._backlog

    def publish(self, event: MemorySampleEvent) -> bool:
        """Publish a sample; False means it was parked rather than handed to Kafka."""
        if self._backlog and not self._drain_backlog():
            self._park(event)
            return False
        if not self._send(event):
            self._park(event)
            return False
        logger.debug("Published sample", host=event.host, available=event.available)
        return True

    def flush(self, timeout: Optional[int] = None) -> None:
        timeout = timeout or self._config.producer_flush_timeout
        self._producer.flush(timeout)

    def close(self) -> None:
        self.flush()
        logger.info(
            "Producer closed",
            backlog=self.backlog_size,
            delivery_failures=self._delivery_failures,
        )
