"""Configuration constants for the PolyArena relay and client.

The gameplay numbers mirror the browser client so that headless Python
clients and the relay agree with it on speeds, damage and timings.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

# Arena
MAP_SIZE = 50  # Edge length of the square floor, centred on the origin.
PLAYER_SPEED = 6.0  # Units per second.
SPAWN_POSITION: Tuple[float, float, float] = (0.0, 1.0, 0.0)

# Combat
MAX_HP = 100
HIT_DAMAGE = 10
BULLET_SPEED = 20.0  # Units per second, applied by every observer.
BULLET_TTL = 3.0  # Seconds before a bullet expires locally.
FIRE_RATE = 0.5  # Minimum seconds between two local shots.

# Teams are handed out in this order by parity of the join count.
TEAMS = ("blue", "red")
DEFAULT_NICKNAME = "Unknown"

# Client pacing
UPDATE_RATE = 30  # Outbound ``update`` messages per second.
SMOOTHING_RATE = 10.0  # Convergence rate ``k`` of remote pose smoothing.

# Relay
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 1999
DEFAULT_ROOM = "polyarena-main"
PEER_QUEUE_SIZE = 256  # Frames buffered per peer before it is dropped.
INBOX_SIZE = 1024  # Frames buffered per room before new ones are dropped.


@dataclass(frozen=True)
class RelayConfig:
    """Runtime limits of a relay room.

    Attributes
    ----------
    peer_queue_size:
        Capacity of every connection's outbound queue.  A peer whose queue
        overflows is disconnected so that it cannot stall the others.
    inbox_size:
        Capacity of the room's inbound event queue feeding the mutator task.
    """

    peer_queue_size: int = PEER_QUEUE_SIZE
    inbox_size: int = INBOX_SIZE

    def validate(self) -> None:
        if self.peer_queue_size <= 0:
            raise ValueError("peer_queue_size must be positive")
        if self.inbox_size <= 0:
            raise ValueError("inbox_size must be positive")
