import asyncio
from typing import Optional, Protocol

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from exceptions import SendError
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionHandle(Protocol):
    """What the relay core needs from a live connection."""

    def send(self, text: str) -> None:
        ...

    def is_open(self) -> bool:
        ...

    def abort(self) -> None:
        ...


class WebSocketHandle:
    """ConnectionHandle over a Starlette WebSocket.

    send() never awaits: frames go onto a bounded queue and run_writer()
    drains it onto the socket. A closed handle or a full queue raises
    SendError, which the relay treats as an undeliverable recipient.
    """

    def __init__(self, websocket: WebSocket, maxsize: int = 256):
        self.websocket = websocket
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._aborted = asyncio.Event()
        self._writer: Optional[asyncio.Task] = None

    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def send(self, text: str) -> None:
        if not self.is_open():
            raise SendError("Connection is not open")
        try:
            self._queue.put_nowait(text)
        except asyncio.QueueFull:
            raise SendError(f"Outbound queue full ({self._queue.maxsize} frames)")

    def abort(self):
        """Stop delivering and wake receive() so the endpoint can close the socket."""
        self._closed = True
        self._aborted.set()

    async def receive(self) -> Optional[dict]:
        """Next ASGI message from the peer, or None once the handle is aborted."""
        receiving = asyncio.ensure_future(self.websocket.receive())
        aborted = asyncio.ensure_future(self._aborted.wait())
        done, pending = await asyncio.wait({receiving, aborted}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        if receiving in done:
            return receiving.result()
        return None

    def start(self):
        if self._writer is None:
            self._writer = asyncio.create_task(self.run_writer())

    async def run_writer(self):
        while True:
            text = await self._queue.get()
            try:
                await self.websocket.send_text(text)
            except Exception as e:
                logger.debug(f"Writer stopped, socket send failed: {e}")
                self._closed = True
                return

    async def close(self, code: int = 1000):
        self._closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None
        if (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        ):
            try:
                await self.websocket.close(code=code)
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")
