"""
Infinity OCR Main Application
=============================

FastAPI entry point for the continuous OCR scanner.

The scan session is created at startup and stays IDLE until a client
starts it. Telemetry and the batch log are read-only projections.

Endpoints:
    GET  /                - Service information
    GET  /health          - Liveness probe
    GET  /telemetry       - Live pipeline snapshot
    GET  /logs            - Batch log, most recent first
    GET  /logs/{entry_id} - Single log entry
    GET  /presets         - Available models and prompt presets
    POST /session/start   - Apply optional overrides, acquire the camera, start scanning
    POST /session/stop    - Stop scanning and release the camera
    WS   /ws/telemetry    - Real-time telemetry stream
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from infinity_ocr import __version__
from infinity_ocr.config import settings
from infinity_ocr.models.control import SessionStartRequest
from infinity_ocr.ocr import GeminiTransport, MissingCredentialError
from infinity_ocr.pipeline import ScanSession
from infinity_ocr.presets import AVAILABLE_MODELS, PROMPT_PRESETS
from infinity_ocr.stream import DeviceError, OpenCVVideoSource


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_session: Optional[ScanSession] = None
_startup_time: float = 0.0


def get_session() -> Optional[ScanSession]:
    return _session


# =============================================================================
# Session Factory
# =============================================================================

def create_session() -> ScanSession:
    """Create the scan session from settings."""
    logger.info(
        f"Creating scan session: device={settings.video.device!r}, "
        f"model={settings.scanner.model}"
    )
    return ScanSession(
        config=settings.scanner,
        source=OpenCVVideoSource(
            device=settings.video.device,
            width=settings.video.width,
            height=settings.video.height,
        ),
        transport=GeminiTransport(),
        analysis=settings.analysis,
        encoding=settings.encoding,
        autofocus=settings.autofocus,
        tick_interval_sec=settings.video.tick_interval_sec,
    )


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _session, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting Infinity OCR {__version__}")

    _session = create_session()
    if not settings.scanner.api_key:
        logger.warning("No API key configured; scanning cannot start until one is set")

    yield

    logger.info("Shutting down gracefully...")
    if _session is not None:
        await _session.shutdown()
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Infinity OCR",
    description="Continuous OCR scanner for live video",
    version=__version__,
    lifespan=lifespan,
)


def _not_ready() -> JSONResponse:
    return JSONResponse({"error": "Session not initialized"}, status_code=503)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    session = get_session()
    return JSONResponse({
        "service": "Infinity OCR",
        "version": __version__,
        "model": settings.scanner.model,
        "session_state": session.state.value if session else None,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe - always 200 while the process is running."""
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/telemetry")
async def telemetry() -> JSONResponse:
    """Live pipeline snapshot."""
    session = get_session()
    if session is None:
        return _not_ready()
    return JSONResponse(session.telemetry().model_dump(mode="json"))


@app.get("/logs")
async def logs() -> JSONResponse:
    """Batch log, most recent first."""
    session = get_session()
    if session is None:
        return _not_ready()
    return JSONResponse([entry.model_dump(mode="json") for entry in session.logs()])


@app.get("/logs/{entry_id}")
async def log_entry(entry_id: str) -> JSONResponse:
    """Single batch log entry."""
    session = get_session()
    if session is None:
        return _not_ready()
    entry = session.get_log(entry_id)
    if entry is None:
        return JSONResponse({"error": f"Unknown log entry: {entry_id}"}, status_code=404)
    return JSONResponse(entry.model_dump(mode="json"))


@app.get("/presets")
async def presets() -> JSONResponse:
    """Available models and system prompt presets."""
    return JSONResponse({
        "models": [{"value": m.value, "label": m.label} for m in AVAILABLE_MODELS],
        "prompts": [{"label": p.label, "value": p.value} for p in PROMPT_PRESETS],
    })


@app.post("/session/start")
async def start_session(request: Optional[SessionStartRequest] = None) -> JSONResponse:
    """
    Acquire the camera and start scanning.

    The optional body overrides model, prompt (or preset label), batch
    size and capture interval for this run. Overrides are only accepted
    while the session is not ACTIVE.
    """
    session = get_session()
    if session is None:
        return _not_ready()

    if request is not None and request.has_overrides():
        if session.active:
            return JSONResponse(
                {"error": "Stop the session before changing its configuration"},
                status_code=409,
            )
        try:
            config = request.apply(session.config)
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=422)
        session.reconfigure(config)

    try:
        await session.start()
    except MissingCredentialError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except DeviceError as e:
        return JSONResponse({"error": f"Camera error: {e}"}, status_code=503)

    return JSONResponse({
        "session_state": session.state.value,
        "model": session.config.model,
        "max_frames": session.config.max_frames,
    })


@app.post("/session/stop")
async def stop_session() -> JSONResponse:
    """Stop scanning; batches already in flight still settle."""
    session = get_session()
    if session is None:
        return _not_ready()

    await session.stop()
    return JSONResponse({"session_state": session.state.value})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/telemetry")
async def telemetry_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time telemetry."""
    await websocket.accept()
    logger.info("Client connected to /ws/telemetry")

    try:
        while True:
            session = get_session()
            if session is not None:
                await websocket.send_json(session.telemetry().model_dump(mode="json"))
            await asyncio.sleep(settings.server.telemetry_push_sec)
    except WebSocketDisconnect:
        pass
    finally:
        logger.info("Client disconnected from /ws/telemetry")


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn

    # Cloud Run uses PORT env var
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "infinity_ocr.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
