"""Websocket transport binding a :class:`ClientSession` to a relay."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from .. import config
from .session import ClientSession

logger = logging.getLogger(__name__)


class UpdateTicker:
    """Samples the local pose out to the relay at a fixed rate.

    Runs on its own timer so neither the render rate nor message arrival
    changes how often ``update`` frames are sent.
    """

    def __init__(self, session: ClientSession, rate: float = config.UPDATE_RATE):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.session = session
        self.interval = 1.0 / rate

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            self.session.send_update()
            next_tick += self.interval
            delay = next_tick - loop.time()
            if delay < 0:
                # Fell behind; skip the missed ticks instead of bursting.
                next_tick = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)


class ClientConnection:
    """One websocket to the relay.

    Outbound frames go through a bounded queue drained by a writer task, so
    :meth:`send` never blocks the caller.  Frames sent while the socket is
    not open, or that do not fit in the queue, are dropped and never retried.
    """

    def __init__(
        self,
        url: str,
        session: ClientSession,
        update_rate: float = config.UPDATE_RATE,
        queue_size: int = config.PEER_QUEUE_SIZE,
    ):
        self.url = url
        self.session = session
        self.ticker = UpdateTicker(session, update_rate)
        self.closed = asyncio.Event()
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._websocket = None

    @property
    def is_open(self) -> bool:
        return self._websocket is not None and not self.closed.is_set()

    def send(self, frame: str) -> None:
        if not self.is_open:
            logger.debug("Socket not open, dropping frame")
            return
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full, dropping frame")

    async def run(self) -> None:
        """Join the room and pump messages until the relay closes the socket."""

        async with websockets.connect(self.url) as websocket:
            self._websocket = websocket
            self.session.send = self.send
            logger.info("Connected to %s as %s", self.url, self.session.player_id)
            self.session.start()
            tasks: List[asyncio.Task] = [
                asyncio.create_task(self._write(websocket)),
                asyncio.create_task(self.ticker.run()),
            ]
            try:
                await self._receive(websocket)
            finally:
                self.closed.set()
                self._websocket = None
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                logger.info("Disconnected from %s", self.url)

    async def close(self) -> None:
        websocket = self._websocket
        if websocket is not None:
            await websocket.close()

    async def _receive(self, websocket) -> None:
        try:
            async for frame in websocket:
                if isinstance(frame, bytes):
                    continue
                self.session.handle_frame(frame)
        except ConnectionClosed as exc:
            logger.info("Connection closed: %s", exc)

    async def _write(self, websocket) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await websocket.send(frame)
            except ConnectionClosed:
                return


def room_url(base: str, room: Optional[str] = None) -> str:
    """``ws://host:port`` plus the relay's room path."""

    return f"{base.rstrip('/')}/party/{room or config.DEFAULT_ROOM}"
