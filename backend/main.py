"""
Swarm Tracker: FastAPI application entry point.

Runs the peer registry, swarm index and signaling relay behind a
WebSocket endpoint, plus a small diagnostics API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from api.routes import init_routes, router
from api.websocket import serve_connection
from config import (
    API_HOST,
    API_PORT,
    CORS_ORIGINS,
    HEARTBEAT_INTERVAL,
    LOG_LEVEL,
    STATIC_DIR,
)
from registry.directory import PeerDirectory
from registry.swarm import SwarmIndex
from signaling.lifecycle import ConnectionLifecycle
from signaling.relay import RelayBroadcaster

# --- Logging ---
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# --- Service singletons ---
directory = PeerDirectory()
swarms = SwarmIndex(directory)
relay = RelayBroadcaster(directory)
lifecycle = ConnectionLifecycle(directory, swarms, relay)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start/stop the heartbeat."""
    logger.info("Starting tracker services...")

    try:
        await lifecycle.start()
        logger.info(f"Tracker ready on {API_HOST}:{API_PORT}")
        yield
    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        raise
    finally:
        logger.info("Shutting down tracker services...")
        await lifecycle.stop()


# --- FastAPI app ---
app = FastAPI(
    title="Swarm Tracker",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Inject services into routes
init_routes(directory, swarms, lifecycle)
app.include_router(router)


@app.websocket("/")
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await serve_connection(websocket, lifecycle)


# --- Static Files (Frontend) ---
if STATIC_DIR.exists():
    if (STATIC_DIR / "assets").is_dir():
        app.mount("/assets", StaticFiles(directory=STATIC_DIR / "assets"), name="assets")

    @app.get("/")
    async def read_index():
        return FileResponse(STATIC_DIR / "index.html")
else:
    logger.warning(f"Frontend not found at {STATIC_DIR}. API only mode.")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=API_HOST,
        port=API_PORT,
        ws_ping_interval=HEARTBEAT_INTERVAL,
        ws_ping_timeout=HEARTBEAT_INTERVAL,
        log_level=LOG_LEVEL.lower(),
    )
