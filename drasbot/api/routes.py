"""Webhook API routes"""
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from drasbot.api.auth import verify_api_key
from drasbot.api.models import DispatchResponse, HealthResponse, InboundMessageRequest
from drasbot.db.connection import db
from drasbot.monitoring import metrics
from drasbot.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/v1/messages", response_model=DispatchResponse, dependencies=[Depends(verify_api_key)])
async def receive_message(payload: InboundMessageRequest, request: Request):
    """Dispatch one inbound message from the bridge"""
    container = request.app.state.container
    outcome = await container.dispatcher.dispatch(payload.to_inbound())
    return DispatchResponse(
        processed=outcome.processed,
        label=outcome.label,
        handler=outcome.handler,
        replied=outcome.replied,
        delivered=outcome.delivered
    )


@router.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Liveness plus bridge and storage status"""
    container = request.app.state.container
    storage_backend = request.app.state.storage_backend

    status_info = await container.bridge.get_connection_status()
    bridge = "connected" if status_info.connected else "disconnected"

    if storage_backend == "postgres":
        storage = "ok" if await db.ping() else "unavailable"
    else:
        storage = storage_backend

    return HealthResponse(
        status="healthy" if storage != "unavailable" else "degraded",
        bridge=bridge,
        storage=storage,
        timestamp=now_utc()
    )


@router.get("/metrics")
async def metrics_endpoint():
    """Expose Prometheus metrics"""
    if not metrics.enabled:
        return Response(content="Prometheus metrics disabled", status_code=503)

    from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

    try:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
    except Exception as e:
        logger.error(f"Error generating metrics: {e}", exc_info=True)
        return Response(content=f"Error generating metrics: {str(e)}", status_code=500)
