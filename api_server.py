# api_server.py  ──  FastAPI server: WebSocket /ws, GET /health
# Every frame in both directions is {"event": <name>, "data": <payload>}.
# Each accepted socket gets its own server-side connection id.

import asyncio
import contextlib
import json
import logging
import uuid
from typing import Any, Dict

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from broker import Broker
from config import TICK_INTERVAL_SECONDS, configure_logging
from scheduler import TickScheduler

logger = logging.getLogger(__name__)

# ── Connection Hub ────────────────────────────────────────────────────────────
# Outbound frames go through a per-connection queue drained by a writer task,
# so the broker never awaits a socket and per-connection order is kept.

class ConnectionHub:

    def __init__(self):
        self._outboxes: Dict[str, asyncio.Queue] = {}

    def register(self, connection_id: str) -> asyncio.Queue:
        outbox: asyncio.Queue = asyncio.Queue()
        self._outboxes[connection_id] = outbox
        return outbox

    def unregister(self, connection_id: str) -> None:
        self._outboxes.pop(connection_id, None)

    def send(self, connection_id: str, event: str, payload: Any) -> None:
        outbox = self._outboxes.get(connection_id)
        if outbox is None:
            return  # connection is gone; drop
        outbox.put_nowait({"event": event, "data": payload})

    def __len__(self) -> int:
        return len(self._outboxes)


async def _drain(websocket: WebSocket, connection_id: str, outbox: asyncio.Queue) -> None:
    try:
        while True:
            frame = await outbox.get()
            await websocket.send_json(frame)
    except (WebSocketDisconnect, RuntimeError, OSError):
        logger.debug("Writer for %s stopped: socket closed", connection_id)
    finally:
        # nothing drains this outbox any more
        hub.unregister(connection_id)


hub = ConnectionHub()
broker = Broker(transport=hub)

# ── App Lifespan ──────────────────────────────────────────────────────────────

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    scheduler = TickScheduler(broker, TICK_INTERVAL_SECONDS)
    scheduler.start()
    app.state.scheduler = scheduler
    yield
    await scheduler.stop()

app = FastAPI(
    title="Multilingual Support Broker",
    version="1.0.0",
    lifespan=lifespan,
)

# ── Response Models ───────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    queue_depth: int
    agents_online: int
    active_calls: int

# ── Helper: decode one inbound frame ──────────────────────────────────────────

def _decode_frame(raw: str):
    """Return (event, data), or None when the frame is not usable."""
    try:
        frame = json.loads(raw)
    except (ValueError, RecursionError):
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame["event"], frame.get("data")

# ── WebSocket /ws ─────────────────────────────────────────────────────────────

@app.websocket("/ws")
async def broker_socket(websocket: WebSocket):
    await websocket.accept()
    connection_id = uuid.uuid4().hex
    outbox = hub.register(connection_id)
    writer = asyncio.create_task(_drain(websocket, connection_id, outbox))
    logger.info("Client connected: %s", connection_id)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                logger.debug("Ignored non-text frame from %s", connection_id)
                continue
            decoded = _decode_frame(raw)
            if decoded is None:
                logger.debug("Ignored malformed frame from %s", connection_id)
                continue
            event, data = decoded
            try:
                broker.handle(connection_id, event, data)
            except Exception:
                logger.exception("Handler for %s failed on %s", event, connection_id)

    except WebSocketDisconnect:
        pass

    finally:
        hub.unregister(connection_id)
        broker.disconnect(connection_id)
        logger.info("Client disconnected: %s", connection_id)
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer

# ── GET /health ───────────────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="ok", **broker.stats())

# ── Entry Point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    from config import API_HOST, API_PORT
    uvicorn.run("api_server:app", host=API_HOST, port=API_PORT)
