"""FastAPI main application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..bootstrap import build_ingestion_loop
from ..config import config
from ..events import manager
from ..logging_setup import setup_logging
from .dependencies import clear_ingestion_loop, set_ingestion_loop
from .routers import health, signals, telegram

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    setup_logging(config.log.level, config.log.file, config.log.max_mb, config.log.backups)
    logger.info("Starting Signal Ingest API...")

    loop = await build_ingestion_loop(config, events=manager)
    set_ingestion_loop(loop)

    yield

    logger.info("Shutting down...")
    await loop.source.close()
    clear_ingestion_loop()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Signal Ingest API",
    description="Ingests Telegram trading signals and reconciles their results",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api/health", tags=["Health"])
app.include_router(telegram.router, prefix="/api/telegram", tags=["Telegram"])
app.include_router(signals.router, prefix="/api/signals", tags=["Signals"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Signal Ingest API",
        "version": __version__,
        "docs": "/docs",
    }


@app.websocket("/ws/signals")
async def signals_websocket(websocket: WebSocket):
    """WebSocket endpoint for signal events.

    Clients receive {"type": "signal_inserted" | "result_updated", "signal": {...}}.
    """
    await manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.warning("WebSocket error: %s", e)
        manager.disconnect(websocket)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "signal_ingest.api.main:app",
        host=config.api.host,
        port=config.api.port,
        reload=config.api.debug,
    )
