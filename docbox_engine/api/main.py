"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from docbox_engine.api.dependencies import get_request_id
from docbox_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from docbox_engine.api.v1 import aggregate, checklist, match, validate
from docbox_engine.infrastructure.observability.logging import setup_logging
from docbox_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Document Box Engine",
        description="Checklist, record linking and field aggregation for accounting document boxes",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logging.error(f"Unexpected error: {exc}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(checklist.router, prefix="/v1", tags=["checklist"])
    app.include_router(match.router, prefix="/v1", tags=["linking"])
    app.include_router(aggregate.router, prefix="/v1", tags=["aggregation"])
    app.include_router(validate.router, prefix="/v1", tags=["validation"])

    return app


app = create_app()
