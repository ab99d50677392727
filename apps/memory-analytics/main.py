import structlog
import uvicorn

from analytics.api import create_app
from analytics.config import Config
from analytics.consumer import SampleConsumer
from analytics.service import AggregationService

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
    service = AggregationService.from_config(config)
    consumer = SampleConsumer(config, service)
    app = create_app(config, service, consumer)

    logger.info(
        "Starting memory analytics",
        kafka_brokers=config.kafka_brokers,
        samples_topic=config.samples_topic,
        window_capacity=config.window_capacity,
    )
    uvicorn.run(
        app,
        host=config.server_host,
        port=config.server_port,
        log_config=None,  # Use structlog instead of uvicorn's default logger
    )


if __name__ == "__main__":
    main()
