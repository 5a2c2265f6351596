"""REST API routes for tracker diagnostics."""

import logging
import time

from fastapi import APIRouter, HTTPException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# These will be injected by main.py at startup
_directory = None
_swarms = None
_lifecycle = None
_started_at = time.time()


def init_routes(directory, swarms, lifecycle) -> None:
    """Inject service dependencies into the routes module."""
    global _directory, _swarms, _lifecycle
    _directory = directory
    _swarms = swarms
    _lifecycle = lifecycle


@router.get("/health")
async def health():
    """Liveness probe with a few headline counts."""
    return {
        "status": "ok",
        "connections": len(_lifecycle.connections),
        "peers": len(_directory),
        "swarms": len(_swarms),
        "uptime_seconds": round(time.time() - _started_at, 1),
    }


# --- Presence ---

@router.get("/peers")
async def list_peers():
    """Return the current presence snapshot, with every address hint."""
    return {"peers": [{**p.descriptor(), "ips": p.ips} for p in _directory.snapshot()]}


# --- Swarms ---

@router.get("/swarms/{info_hash}")
async def get_swarm(info_hash: str):
    """Return the holders of one content item."""
    if info_hash not in _swarms:
        raise HTTPException(status_code=404, detail="Swarm not found")
    return {"infoHash": info_hash, "peers": sorted(_swarms.holders(info_hash))}
