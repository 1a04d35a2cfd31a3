"""
Annotator Client Main Application
=================================

FastAPI host for the annotation client session.

The application lifespan builds the AnnotationSession from settings,
starts it, and tears it down on shutdown (uvicorn turns SIGTERM into a
lifespan shutdown). The HTTP surface exposes the client health and live
readouts.

Endpoints:
    GET  /                - Service information
    GET  /health          - Liveness probe (is process alive?)
    GET  /ready           - Readiness probe (transport connected?)
    GET  /metrics         - Connection, latency, rate and capture metrics
    GET  /status          - Latest human-readable status readouts
    WS   /ws/annotations  - Live relay of received annotations
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from annotator_client.config import settings
from annotator_client.models.annotation import ReceivedAnnotation
from annotator_client.session import AnnotationSession, build_session
from annotator_client.transport.broadcast import Subscription


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_session: Optional[AnnotationSession] = None
_startup_time: float = 0.0


def get_session() -> Optional[AnnotationSession]:
    return _session


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _session, _startup_time

    # Startup
    _startup_time = time.time()
    logger.info(f"Starting {settings.client.name} {settings.client.version}")
    logger.info(f"Annotation service URL: {settings.service.url}")

    _session = build_session(settings)
    await _session.start()

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    if _session is not None:
        await _session.stop()
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Annotator Client",
    description="Real-time video annotation client with latency-driven frame rate",
    version=settings.client.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "annotator-client",
        "version": settings.client.version,
        "name": settings.client.name,
        "status": "running",
        "service_url": settings.service.url,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the transport connected?

    Returns 200 when connected to the annotation service, 503 otherwise.
    """
    session = get_session()
    connected = session is not None and session.connection.connected
    capturing = session is not None and session.capturing

    body = {
        "status": "ready" if connected else "not_ready",
        "connection_state": session.connection.state.value if session else None,
        "capturing": capturing,
    }
    return JSONResponse(body, status_code=200 if connected else 503)


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    session = get_session()
    if session is None:
        return JSONResponse({"error": "Session not started"}, status_code=503)

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        **session.get_metrics(),
    })


@app.get("/status")
async def status() -> JSONResponse:
    """Latest status readouts (orientation, advisories, latency, box)."""
    session = get_session()
    if session is None:
        return JSONResponse({"error": "Session not started"}, status_code=503)

    snapshot = getattr(session.status_sink, "snapshot", None)
    return JSONResponse(snapshot() if snapshot else {})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/annotations")
async def annotation_stream(websocket: WebSocket) -> None:
    """Relay each annotation received from the service to a viewer."""
    await websocket.accept()
    logger.info("Viewer connected to /ws/annotations")

    session = get_session()
    if session is None:
        await websocket.close(code=1013)
        return

    subscription = session.connection.messages()
    relay = asyncio.create_task(_relay_annotations(websocket, subscription))
    watcher = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        # Whichever ends first (viewer gone or stream complete) ends both
        await asyncio.wait({relay, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        subscription.cancel()
        for task in (relay, watcher):
            task.cancel()
        await asyncio.gather(relay, watcher, return_exceptions=True)
        logger.info("Viewer disconnected from /ws/annotations")


async def _relay_annotations(
    websocket: WebSocket,
    subscription: Subscription[ReceivedAnnotation],
) -> None:
    try:
        async for received in subscription:
            await websocket.send_json(
                received.annotation.model_dump(mode="json", by_alias=True)
            )
    except WebSocketDisconnect:
        pass


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Drain viewer messages until the viewer goes away."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "annotator_client.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
