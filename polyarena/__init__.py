"""PolyArena: multiplayer session relay and client state synchronisation.

The server side is a FastAPI websocket relay keeping one authoritative
player store per room; the :mod:`polyarena.client` package mirrors that
store on clients, predicts the local player and smooths remote ones.
"""

from .config import RelayConfig
from .models import Bullet, Player, Team, Vector3
from .protocol import ProtocolError, decode, encode
from .rooms import Room, RoomManager
from .store import HitOutcome, SessionStore

__all__ = [
    "Bullet",
    "HitOutcome",
    "Player",
    "ProtocolError",
    "RelayConfig",
    "Room",
    "RoomManager",
    "SessionStore",
    "Team",
    "Vector3",
    "decode",
    "encode",
]
