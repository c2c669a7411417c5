from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
import time

from backend import relay_backend
from connection import WebSocketHandle
from constants import LOG_FILE, LOG_LEVEL, OUTBOUND_QUEUE_SIZE
from lifecycle import LifecycleCoordinator
from logging_config import get_logger, setup_logging
from relay import MessageRouter
from routers.rooms import rooms_router, status_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

message_router = MessageRouter(relay_backend)
lifecycle = LifecycleCoordinator(relay_backend)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.started_at = time.monotonic()
    logger.info("WebSocket Chat Server starting...")
    yield
    snapshot = relay_backend.snapshot()
    logger.info(f"Shutting down server with {snapshot.clients} clients in {snapshot.rooms} rooms")


app = FastAPI(lifespan=lifespan)
app.state.started_at = time.monotonic()

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(status_router)
app.include_router(rooms_router)

logger.info("FastAPI application initialized")


@app.websocket("/")
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Relay endpoint. Clients send JSON envelopes; see schemas.messages."""
    await websocket.accept()
    handle = WebSocketHandle(websocket, maxsize=OUTBOUND_QUEUE_SIZE)
    handle.start()
    connection_id = lifecycle.on_connect(handle)
    close_code = 1000

    try:
        while True:
            message = await handle.receive()
            if message is None:
                # Reaped by a broadcast; its bookkeeping is already gone
                logger.info(f"Client {connection_id} dropped by the relay, closing connection")
                close_code = 1011
                break
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue
            message_router.handle_message(connection_id, data)
    except WebSocketDisconnect as e:
        logger.debug(f"WebSocket disconnected for client {connection_id} (code {e.code})")
        handle.abort()
        lifecycle.on_close(connection_id)
    except Exception as e:
        handle.abort()
        lifecycle.on_error(connection_id, e)
    finally:
        await handle.close(code=close_code)
