import signal
import sys
import threading
from types import FrameType
from typing import Optional

import structlog

from collector.config import Config
from collector.meminfo import MemInfoReader
from collector.poller import SamplePoller
from collector.producer import SampleProducer

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)

logger = structlog.get_logger(__name__)


def main() -> None:
    config = Config()
    reader = MemInfoReader(config.host_id, config.meminfo_path, config.vmstat_path)
    producer = SampleProducer(config)
    poller = SamplePoller(config, reader, producer)

    stop_event = threading.Event()

    def handle_signal(signum: int, frame: Optional[FrameType]) -> None:
        logger.info("Received shutdown signal", signal=signum)
        stop_event.set()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    logger.info(
        "Starting memory collector",
        kafka_brokers=config.kafka_brokers,
        samples_topic=config.samples_topic,
        poll_interval_seconds=config.poll_interval_seconds,
    )
    poller.run(stop_event)

    logger.info("Shutting down gracefully...")
    producer.close()
    sys.exit(0)


if __name__ == "__main__":
    main()
