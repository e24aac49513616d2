from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.core.database import ping_database

logger = structlog.get_logger()

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        await ping_database(request.app.state.engine, request.app.state.settings.DB_RETRY_ATTEMPTS)
    except Exception as e:
        logger.error("health_check_failed", error=str(e))
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "timestamp": timestamp, "database": "disconnected"},
        )
    return {"status": "healthy", "timestamp": timestamp, "database": "connected"}


@router.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
