"""WebSocket transport for the tracker."""

import asyncio
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect

from config import OUTBOX_SIZE
from signaling.connection import Connection
from signaling.lifecycle import ConnectionLifecycle

logger = logging.getLogger(__name__)

# Sentinel queued by terminate() to make the writer close the socket
_CLOSE = None


def client_address(websocket: WebSocket) -> str | None:
    """Best guess at the peer's address, honouring X-Forwarded-For."""
    forwarded = websocket.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if websocket.client:
        return websocket.client.host
    return None


class WebSocketConnection(Connection):
    """
    A Connection backed by a FastAPI WebSocket.

    Outbound frames go through a bounded queue drained by a writer
    task, so `send` never suspends the caller. When the queue is full
    the oldest pending frame is dropped.
    """

    def __init__(
        self,
        websocket: WebSocket,
        address: str | None = None,
        outbox_size: int = OUTBOX_SIZE,
    ) -> None:
        super().__init__(address)
        self._websocket = websocket
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue(maxsize=outbox_size)
        self._writer: asyncio.Task | None = None
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open and super().is_open

    def start(self) -> None:
        """Start the writer task. Must be called from the event loop."""
        self._writer = asyncio.create_task(self._write_loop())

    def send(self, event: dict) -> bool:
        if not self.is_open:
            return False
        data = json.dumps(event)
        if self._outbox.full():
            self._outbox.get_nowait()
            logger.warning(f"Outbox full for {self!r}, dropped oldest frame")
        self._outbox.put_nowait(data)
        return True

    def terminate(self) -> None:
        if not self._open:
            return
        self._open = False
        while not self._outbox.empty():
            self._outbox.get_nowait()
        self._outbox.put_nowait(_CLOSE)

    async def _write_loop(self) -> None:
        try:
            while True:
                data = await self._outbox.get()
                if data is _CLOSE:
                    await self._websocket.close(code=1001)
                    return
                await self._websocket.send_text(data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Socket is gone; stop accepting frames for it
            logger.debug(f"Writer for {self!r} stopped: {e}")
            self._open = False

    async def aclose(self) -> None:
        """Stop the writer task."""
        self._open = False
        if self._writer and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass


async def serve_connection(websocket: WebSocket, lifecycle: ConnectionLifecycle) -> None:
    """Run one WebSocket session through the lifecycle until it closes."""
    await websocket.accept()
    connection = WebSocketConnection(websocket, client_address(websocket))
    connection.start()
    lifecycle.on_connect(connection)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is not None:
                lifecycle.on_message(connection, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket session {connection!r} failed: {e}", exc_info=True)
    finally:
        lifecycle.on_close(connection)
        await connection.aclose()
