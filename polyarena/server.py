"""FastAPI application that exposes PolyArena rooms over WebSockets."""
from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Optional

import anyio
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .config import RelayConfig
from .rooms import Connection, Room, RoomClosedError, RoomManager

logger = logging.getLogger(__name__)


def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    """Create the relay application with its own room registry."""

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.room_manager = RoomManager(config)
        try:
            yield
        finally:
            await app.state.room_manager.close()

    app = FastAPI(title="PolyArena Relay", lifespan=lifespan)

    @app.get("/health")
    async def healthcheck(request: Request) -> JSONResponse:
        """Readiness probe reporting open rooms and joined players."""

        manager: RoomManager = request.app.state.room_manager
        return JSONResponse(
            {"status": "ok", "rooms": len(manager.rooms), "players": manager.player_count}
        )

    @app.websocket("/party/{room_id}")
    async def websocket_endpoint(websocket: WebSocket, room_id: str) -> None:
        manager: RoomManager = websocket.app.state.room_manager
        await websocket.accept()
        room, connection = await _register(manager, room_id, websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    logger.debug("Ignoring binary frame from %s", connection.connection_id)
                    continue
                room.receive(connection, text)
        except WebSocketDisconnect:
            pass
        finally:
            # The endpoint may be cancelled on close; the player must still leave.
            with anyio.CancelScope(shield=True):
                await room.disconnect(connection)
                await manager.remove_room_if_empty(room_id)

    return app


async def _register(manager: RoomManager, room_id: str, websocket: WebSocket) -> tuple[Room, Connection]:
    # A room emptied by another disconnect may be stopped between lookup and connect.
    while True:
        room = await manager.get_room(room_id)
        try:
            return room, await room.connect(websocket)
        except RoomClosedError:
            continue


app = create_app()

__all__ = ["app", "create_app"]
