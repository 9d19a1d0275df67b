"""Client connections used by the real-time layer."""

import asyncio
import uuid
from contextlib import suppress
from typing import Protocol

from fastapi import WebSocket

from ..logging_config import get_logger
from ..models import RealtimeEvent

logger = get_logger(__name__)

OUTBOX_SIZE = 256


class IConnection(Protocol):
    """A connected client that can be handed events."""

    id: str
    user_id: str
    team_id: str

    def send(self, event: RealtimeEvent) -> bool:
        """Queue an event for delivery without blocking. False if dropped."""
        ...


class WebSocketConnection:
    """A websocket client with an ordered outbound queue.

    send() only enqueues; a writer task drains the queue onto the socket.
    Events therefore reach the client in the order send() was called.
    """

    def __init__(
        self,
        websocket: WebSocket,
        user_id: str,
        team_id: str,
        role: str,
        outbox_size: int = OUTBOX_SIZE,
    ):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.team_id = team_id
        self.role = role
        self._outbox: asyncio.Queue[dict | None] = asyncio.Queue(maxsize=outbox_size)
        self._writer: asyncio.Task | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the writer task."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def send(self, event: RealtimeEvent) -> bool:
        return self.send_json(event.to_dict())

    def send_json(self, data: dict) -> bool:
        """Queue a raw frame (replies share the queue to keep ordering)."""
        if self._closed:
            return False
        try:
            self._outbox.put_nowait(data)
        except asyncio.QueueFull:
            logger.warning(
                "Outbox full, closing slow connection",
                extra={"context": {"connection": self.id, "user_id": self.user_id}},
            )
            self._closed = True
            asyncio.get_running_loop().create_task(self._abort(code=1013))
            return False
        return True

    async def _drain(self) -> None:
        while True:
            data = await self._outbox.get()
            if data is None:
                break
            try:
                await self.websocket.send_json(data)
            except Exception as e:
                logger.info(
                    "Websocket send failed: %s",
                    e,
                    extra={"context": {"connection": self.id, "user_id": self.user_id}},
                )
                self._closed = True
                break

    async def _abort(self, code: int) -> None:
        with suppress(RuntimeError):
            await self.websocket.close(code=code)

    async def close(self, drain: bool = False) -> None:
        """Stop the writer; with drain=True pending frames are sent first."""
        if self._writer is None:
            self._closed = True
            return
        if drain and not self._closed:
            self._closed = True
            await self._outbox.put(None)
            await self._writer
        else:
            self._closed = True
            self._writer.cancel()
            with suppress(asyncio.CancelledError):
                await self._writer
        self._writer = None
