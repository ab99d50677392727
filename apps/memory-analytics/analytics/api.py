import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from analytics.config import Config
from analytics.consumer import SampleConsumer
from analytics.errors import NoDataYet
from analytics.service import AggregationService

logger = structlog.get_logger(__name__)


def create_app(
    config: Config,
    service: AggregationService,
    consumer: Optional[SampleConsumer] = None,
) -> FastAPI:
    """Build the read API over an aggregation service owned by the caller."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if consumer is not None:
            consumer.start()
        logger.info("Memory analytics API started", port=config.server_port)
        yield
        if consumer is not None:
            consumer.stop()
        logger.info("Memory analytics API stopped")

    app = FastAPI(
        title="Memory Analytics",
        description="Derived memory health metrics, recommendations and recent history",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(NoDataYet)
    async def no_data_yet_handler(request: Request, exc: NoDataYet) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/analytics")
    async def analytics():
        """Latest derived metrics and recommendations; 503 until the first sample."""
        state = service.state()
        stale = time.time() - state.observed_at > config.stale_after_seconds
        return {
            "metrics": state.metrics.to_dict(),
            "recommendations": [r.to_dict() for r in state.recommendations],
            "observed_at": state.observed_at,
            "stale": stale,
            "peak_used_bytes": state.peak_used_bytes,
        }

    @app.get("/history")
    async def history():
        entries = service.history()
        return {
            "capacity": service.capacity,
            "entries": [entry.to_dict() for entry in entries],
        }

    @app.get("/timeline")
    async def timeline():
        return {"points": [point.to_dict() for point in service.timeline()]}

    @app.get("/metrics", response_class=Response)
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST,
        )

    @app.get("/healthz")
    async def health():
        """Liveness probe endpoint."""
        return {"status": "ok"}

    @app.get("/readyz")
    async def ready():
        """Readiness probe endpoint; reports whether any sample has arrived."""
        has_data = service.has_data
        return {
            "status": "ready" if has_data else "waiting",
            "has_data": has_data,
            "samples_topic": config.samples_topic,
        }

    return app
