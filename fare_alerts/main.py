from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
import uvicorn

from .core.config import settings
from .core.lifecycle import PipelineRuntime
from .core.logging_config import setup_logging
from .shared.exceptions import TransientTransportError

logger = logging.getLogger(__name__)


def create_app(runtime: Optional[PipelineRuntime] = None) -> FastAPI:
    """Build the HTTP surface; its lifespan runs the alert pipeline"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_json)
        pipeline = runtime or PipelineRuntime(settings)
        app.state.runtime = pipeline
        logger.info("Application starting")
        async with pipeline:
            yield
        logger.info("Application stopped")

    app = FastAPI(
        title="Flight Price Alerts",
        description="Matches flight price events against user alert preferences and sends push alerts.",
        version="1.0.0",
        lifespan=lifespan
    )

    @app.get("/health", tags=["health"], summary="Engine state and pipeline counters")
    async def health(request: Request):
        status = request.app.state.runtime.get_status()
        return {
            "status": "healthy" if status["engine_state"] == "running" else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **status,
        }

    @app.get("/health/readiness", tags=["health"], summary="MongoDB and Redis connectivity")
    async def readiness(request: Request):
        result = await request.app.state.runtime.readiness()
        return JSONResponse(status_code=200 if result["ready"] else 503, content=result)

    @app.get("/queues/{queue_name}/depth", tags=["queues"], summary="Pending messages in a queue")
    async def queue_depth(queue_name: str, request: Request):
        queue = request.app.state.runtime.queue
        if queue is None:
            raise HTTPException(status_code=503, detail="Price event queue is not connected")
        try:
            depth = await queue.queue_depth(queue_name)
        except TransientTransportError as e:
            logger.warning(f"Queue depth lookup failed: {e}")
            raise HTTPException(status_code=503, detail=str(e))
        return {"queue": queue_name, "depth": depth}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "fare_alerts.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
