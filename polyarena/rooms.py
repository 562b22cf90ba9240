"""Room relay engine and connection management for the PolyArena server."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol, Set

from .config import RelayConfig
from .models import Player
from .protocol import (
    HitMessage,
    JoinMessage,
    KillMessage,
    Message,
    ProtocolError,
    ShootMessage,
    SyncMessage,
    UpdateMessage,
    decode,
    encode,
)
from .store import SessionStore

logger = logging.getLogger(__name__)

# Close code sent to a peer that could not keep up with its outbound queue.
TRY_AGAIN_LATER = 1013


class RoomError(RuntimeError):
    """Base class for room related failures."""


class RoomClosedError(RoomError):
    """Raised when a connection is opened on a room that has been stopped."""


class FrameSink(Protocol):
    """The part of a websocket the relay writes to."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class ConnectionState(Enum):
    """Lifecycle of a connection; a joined connection never goes back."""

    CONNECTED = "connected"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


@dataclass(slots=True, eq=False)
class Connection:
    """State bound to one accepted websocket."""

    connection_id: str
    sender: FrameSink
    outbox: asyncio.Queue
    state: ConnectionState = ConnectionState.CONNECTED
    player_ids: Set[str] = field(default_factory=set)
    writer: Optional[asyncio.Task] = None


@dataclass(slots=True)
class _Event:
    """One unit of work for the mutator; a ``frame`` of ``None`` is a disconnect."""

    connection: Connection
    frame: Optional[str]
    done: Optional[asyncio.Future] = None


class Room:
    """One isolated arena: a session store plus the connections sharing it.

    Every store mutation happens on a single mutator task that consumes the
    room's inbox one event at a time, so two messages are never interleaved
    mid-mutation.  Fan-out only enqueues frames on bounded per-peer queues
    drained by one writer task per peer; a peer that falls behind is dropped
    instead of slowing down the others.
    """

    def __init__(self, room_id: str, config: Optional[RelayConfig] = None):
        self.room_id = room_id
        self.config = config or RelayConfig()
        self.config.validate()
        self.store = SessionStore()
        self.connections: Dict[str, Connection] = {}
        self._inbox: asyncio.Queue = asyncio.Queue(maxsize=self.config.inbox_size)
        self._mutator: Optional[asyncio.Task] = None
        self._overflowed: List[Connection] = []
        self._background: Set[asyncio.Task] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._closed:
            raise RoomClosedError(f"room {self.room_id} is closed")
        if not self._mutator or self._mutator.done():
            self._mutator = asyncio.create_task(self._run(), name=f"room-{self.room_id}")

    async def stop(self) -> None:
        self._closed = True
        tasks: List[asyncio.Task] = []
        if self._mutator:
            self._mutator.cancel()
            tasks.append(self._mutator)
        for connection in list(self.connections.values()):
            connection.state = ConnectionState.DISCONNECTED
            if connection.writer:
                connection.writer.cancel()
                tasks.append(connection.writer)
        self.connections.clear()
        tasks.extend(self._background)
        await asyncio.gather(*tasks, return_exceptions=True)
        while not self._inbox.empty():
            event = self._inbox.get_nowait()
            self._inbox.task_done()
            if event.done and not event.done.done():
                event.done.set_result(None)
        logger.info("Room %s stopped", self.room_id)

    @property
    def is_empty(self) -> bool:
        return not self.connections

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    @property
    def players(self) -> Dict[str, Player]:
        return self.store.snapshot()

    # ------------------------------------------------------------------
    # Transport-facing API
    # ------------------------------------------------------------------
    async def connect(self, sender: FrameSink) -> Connection:
        """Register an accepted websocket and start its writer."""

        if self._closed:
            raise RoomClosedError(f"room {self.room_id} is closed")
        connection = Connection(
            connection_id=uuid.uuid4().hex,
            sender=sender,
            outbox=asyncio.Queue(maxsize=self.config.peer_queue_size),
        )
        connection.writer = asyncio.create_task(self._write(connection))
        self.connections[connection.connection_id] = connection
        logger.info("Connected: %s to room %s", connection.connection_id, self.room_id)
        return connection

    def receive(self, connection: Connection, frame: str) -> None:
        """Hand an inbound frame to the mutator without waiting for it."""

        if connection.state is ConnectionState.DISCONNECTED:
            return
        try:
            self._inbox.put_nowait(_Event(connection, frame))
        except asyncio.QueueFull:
            logger.warning("Room %s inbox full, dropping frame from %s", self.room_id, connection.connection_id)

    async def disconnect(self, connection: Connection) -> None:
        """Queue the transport-level close of ``connection`` and wait until applied."""

        if connection.state is ConnectionState.DISCONNECTED or self._closed:
            return
        done = asyncio.get_running_loop().create_future()
        await self._inbox.put(_Event(connection, None, done))
        await done

    # ------------------------------------------------------------------
    # Mutator
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        while True:
            event = await self._inbox.get()
            try:
                self._process(event)
                self._drop_overflowed()
            except Exception:
                logger.exception("Room %s failed to apply an event", self.room_id)
            finally:
                self._inbox.task_done()
                if event.done and not event.done.done():
                    event.done.set_result(None)
            # Let the peer writers drain before the next event is fanned out.
            await asyncio.sleep(0)

    def _process(self, event: _Event) -> None:
        connection = event.connection
        if event.frame is None:
            self._handle_disconnect(connection)
            return
        if connection.state is ConnectionState.DISCONNECTED:
            return
        try:
            message = decode(event.frame)
        except ProtocolError as exc:
            logger.debug("Dropping frame from %s: %s", connection.connection_id, exc)
            return
        self._apply(connection, message, event.frame)

    def _apply(self, connection: Connection, message: Message, frame: str) -> None:
        if isinstance(message, JoinMessage):
            self._handle_join(connection, message)
        elif isinstance(message, UpdateMessage):
            self._handle_update(connection, message, frame)
        elif isinstance(message, ShootMessage):
            self._broadcast(frame, exclude=connection)
        elif isinstance(message, HitMessage):
            self._handle_hit(message)
        elif isinstance(message, (SyncMessage, KillMessage)):
            logger.debug("Ignoring %s from client %s", message.type, connection.connection_id)

    def _handle_join(self, connection: Connection, message: JoinMessage) -> None:
        player = self.store.join(message.id, message.nickname)
        connection.player_ids.add(message.id)
        connection.state = ConnectionState.JOINED
        logger.info("%s joined room %s as %s (%s)", player.nickname, self.room_id, player.id, player.team.value)
        self._broadcast_sync()

    def _handle_update(self, connection: Connection, message: UpdateMessage, frame: str) -> None:
        if not self.store.update(message.id, message.position, message.rotation):
            logger.debug("Dropping update for unknown player %s", message.id)
            return
        self._broadcast(frame, exclude=connection)

    def _handle_hit(self, message: HitMessage) -> None:
        outcome = self.store.hit(message.target_id, message.source_id, message.damage)
        if outcome is None:
            logger.debug("Dropping hit on missing or dead player %s", message.target_id)
            return
        self._broadcast(encode(HitMessage(outcome.target_id, outcome.source_id, outcome.damage)))
        if outcome.killed:
            logger.info("%s eliminated %s in room %s", outcome.source_id, outcome.target_id, self.room_id)
            self._broadcast_sync()

    def _handle_disconnect(self, connection: Connection) -> None:
        if connection.state is ConnectionState.DISCONNECTED:
            return
        was_joined = connection.state is ConnectionState.JOINED
        connection.state = ConnectionState.DISCONNECTED
        self.connections.pop(connection.connection_id, None)
        self._release(connection)
        still_bound = {
            player_id
            for other in self.connections.values()
            for player_id in other.player_ids
        }
        for player_id in connection.player_ids - still_bound:
            self.store.remove(player_id)
        logger.info("Disconnected: %s from room %s", connection.connection_id, self.room_id)
        if was_joined:
            self._broadcast_sync()

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------
    def _broadcast_sync(self) -> None:
        self._broadcast(encode(SyncMessage(self.store.snapshot())))

    def _broadcast(self, frame: str, exclude: Optional[Connection] = None) -> None:
        for connection in list(self.connections.values()):
            if connection is exclude or connection.state is ConnectionState.DISCONNECTED:
                continue
            try:
                connection.outbox.put_nowait(frame)
            except asyncio.QueueFull:
                if connection not in self._overflowed:
                    logger.warning(
                        "Outbound queue of %s overflowed in room %s", connection.connection_id, self.room_id
                    )
                    self._overflowed.append(connection)

    def _drop_overflowed(self) -> None:
        while self._overflowed:
            connection = self._overflowed.pop(0)
            if connection.state is ConnectionState.DISCONNECTED:
                continue
            self._spawn(self._close(connection, TRY_AGAIN_LATER))
            self._handle_disconnect(connection)

    async def _write(self, connection: Connection) -> None:
        while True:
            frame = await connection.outbox.get()
            try:
                await connection.sender.send_text(frame)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.info("Send to %s failed: %s", connection.connection_id, exc)
                connection.outbox.task_done()
                self._discard_pending(connection)
                self._post_disconnect(connection)
                return
            connection.outbox.task_done()

    def _post_disconnect(self, connection: Connection) -> None:
        try:
            self._inbox.put_nowait(_Event(connection, None))
        except asyncio.QueueFull:
            self._spawn(self._inbox.put(_Event(connection, None)))

    def _release(self, connection: Connection) -> None:
        writer = connection.writer
        if writer and writer is not asyncio.current_task() and not writer.done():
            writer.cancel()
        self._discard_pending(connection)

    @staticmethod
    def _discard_pending(connection: Connection) -> None:
        while not connection.outbox.empty():
            connection.outbox.get_nowait()
            connection.outbox.task_done()

    async def _close(self, connection: Connection, code: int) -> None:
        try:
            await connection.sender.close(code=code)
        except Exception as exc:
            logger.debug("Closing %s failed: %s", connection.connection_id, exc)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)


class RoomManager:
    """Registry that lazily instantiates rooms on demand."""

    def __init__(self, config: Optional[RelayConfig] = None):
        self.config = config or RelayConfig()
        self.rooms: Dict[str, Room] = {}
        self.lock = asyncio.Lock()

    async def get_room(self, room_id: str) -> Room:
        async with self.lock:
            room = self.rooms.get(room_id)
            if not room:
                room = Room(room_id, self.config)
                room.start()
                self.rooms[room_id] = room
                logger.info("Opened room %s", room_id)
            return room

    async def remove_room_if_empty(self, room_id: str) -> None:
        async with self.lock:
            room = self.rooms.get(room_id)
            if room and room.is_empty:
                self.rooms.pop(room_id, None)
                await room.stop()

    async def close(self) -> None:
        async with self.lock:
            rooms = list(self.rooms.values())
            self.rooms.clear()
        for room in rooms:
            await room.stop()

    @property
    def player_count(self) -> int:
        return sum(len(room.store) for room in self.rooms.values())


__all__ = [
    "Connection",
    "ConnectionState",
    "Room",
    "RoomClosedError",
    "RoomError",
    "RoomManager",
]
