"""
Signaling Relay - Main Application

This is the entry point for the FastAPI application.
It handles:
- WebSocket connections brokering WebRTC signaling between callers and admins
- ICE server credentials proxy (GET /ice)
- Health reporting
"""
from contextlib import asynccontextmanager
import logging
from datetime import datetime, UTC

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relay import __version__
from relay.api import router as api_router
from relay.api.websocket import router as ws_router
from relay.config.settings import settings
from relay.services.metrics import start_metrics_server
from relay.services.signaling import signal_router

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    # === STARTUP ===
    logger.info("🚀 Starting signaling relay...")

    if settings.METRICS_ENABLED:
        start_metrics_server(port=settings.METRICS_PORT)

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("🛑 Shutting down...")
    await signal_router.shutdown()


app = FastAPI(
    title="Signaling Relay",
    description="Pairs callers with admins and relays WebRTC signaling between them",
    version=__version__,
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Include HTTP routes
app.include_router(api_router)

# Include WebSocket routes
app.include_router(ws_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Signaling Relay",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        **signal_router.get_stats(),
    }


def run():
    """Serve the app with uvicorn on the configured host/port."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
