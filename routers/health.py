"""Health check and Prometheus metrics for the API and background services."""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError

from db import ping_db

router = APIRouter(tags=["monitoring"])


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Report store reachability and whether the event bus is running."""

    try:
        database_ok = await ping_db()
    except (SQLAlchemyError, OSError):
        logger.exception("Database health check failed")
        database_ok = False

    bus = getattr(request.app.state, "event_bus", None)
    payload = {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        "eventBus": bool(bus is not None and bus.running),
    }
    return JSONResponse(payload, status_code=200 if database_ok else 503)


@router.get("/metrics")
async def metrics() -> Response:
    """Return the Prometheus metrics registry."""

    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
