import threading
import time

import structlog

from collector.config import Config
from collector.errors import UpstreamUnavailable
from collector.meminfo import MemInfoReader
from collector.producer import SampleProducer

logger = structlog.get_logger(__name__)


class SamplePoller:
    """Reads a memory sample every poll interval and publishes it."""

    def __init__(self, config: Config, reader: MemInfoReader, producer: SampleProducer) -> None:
        self._config = config
        self._reader = reader
        self._producer = producer
        self._published = 0
        self._skipped = 0

    def poll_once(self) -> bool:
        try:
            event = self._reader.read()
        except UpstreamUnavailable as e:
            # Downstream keeps its last state; the next tick retries.
            self._skipped += 1
            logger.warning("Memory counters unavailable, skipping tick", error=str(e))
            return False
        published = self._producer.publish(event)
        if published:
            self._published += 1
        return published

    def run(self, stop_event: threading.Event) -> None:
        interval = self._config.poll_interval_seconds
        logger.info("Starting sample poller", host=self._config.host_id, interval_s=interval)

        while not stop_event.is_set():
            start = time.monotonic()
            try:
                self.poll_once()
            except Exception as e:
                logger.exception("Unexpected error polling sample", error=str(e))

            elapsed = time.monotonic() - start
            stop_event.wait(timeout=max(0.0, interval - elapsed))

        logger.info("Sample poller stopped", published=self._published, skipped=self._skipped)
