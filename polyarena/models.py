"""Core data structures shared by the relay and the client mirror.

Wire dictionaries use the camelCase keys of the browser client
(``isDead``, ``ownerId``) so Python and JavaScript peers can share a room.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping

from . import config


def _number(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    try:
        number = float(value)
    except OverflowError as exc:
        raise ValueError(f"number out of range: {exc}") from exc
    if not math.isfinite(number):
        raise ValueError(f"expected a finite number, got {value!r}")
    return number


def clamp_hp(hp: int) -> int:
    return max(0, min(config.MAX_HP, hp))


@dataclass(frozen=True)
class Vector3:
    """Immutable 3D vector; Y is up."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scale(self, factor: float) -> "Vector3":
        return Vector3(self.x * factor, self.y * factor, self.z * factor)

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def distance_to(self, other: "Vector3") -> float:
        return (self - other).length()

    def normalized(self) -> "Vector3":
        """Unit vector in the same direction; the zero vector stays zero."""
        length = self.length()
        if length == 0:
            return Vector3()
        return self.scale(1.0 / length)

    def lerp(self, target: "Vector3", alpha: float) -> "Vector3":
        return self + (target - self).scale(alpha)

    def to_wire(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_wire(cls, data: object) -> "Vector3":
        if not isinstance(data, Mapping):
            raise ValueError(f"expected a vector object, got {data!r}")
        return cls(_number(data["x"]), _number(data["y"]), _number(data["z"]))


class Team(str, Enum):
    """The two sides of the arena, handed out alternately on join."""

    BLUE = config.TEAMS[0]
    RED = config.TEAMS[1]

    @classmethod
    def for_join(cls, player_count: int) -> "Team":
        """Team for a player joining a room that already holds ``player_count``."""

        return cls.BLUE if player_count % 2 == 0 else cls.RED


@dataclass(slots=True)
class Player:
    """One participant of a room.

    ``hp`` always lies in ``[0, MAX_HP]`` and ``is_dead`` holds exactly when
    ``hp`` is zero.
    """

    id: str
    nickname: str
    team: Team
    position: Vector3 = field(default_factory=lambda: Vector3(*config.SPAWN_POSITION))
    rotation: float = 0.0
    hp: int = config.MAX_HP
    is_dead: bool = False
    score: int = 0

    @classmethod
    def spawn(cls, player_id: str, nickname: str, team: Team) -> "Player":
        """Fresh record for a ``join``: spawn point, full health, zero score."""

        return cls(id=player_id, nickname=nickname or config.DEFAULT_NICKNAME, team=team)

    def copy(self) -> "Player":
        return Player(
            id=self.id,
            nickname=self.nickname,
            team=self.team,
            position=self.position,
            rotation=self.rotation,
            hp=self.hp,
            is_dead=self.is_dead,
            score=self.score,
        )

    def to_wire(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "nickname": self.nickname,
            "position": self.position.to_wire(),
            "rotation": self.rotation,
            "hp": self.hp,
            "score": self.score,
            "isDead": self.is_dead,
            "team": self.team.value,
        }

    @classmethod
    def from_wire(cls, data: object) -> "Player":
        """Parse a ``sync`` entry.

        ``hp`` is clamped and ``is_dead`` derived from it, so a record read
        off the wire always satisfies the health invariant.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"expected a player object, got {data!r}")
        player_id = data["id"]
        if not isinstance(player_id, str) or not player_id:
            raise ValueError("player id must be a non-empty string")
        nickname = data.get("nickname", config.DEFAULT_NICKNAME)
        if not isinstance(nickname, str):
            raise ValueError("nickname must be a string")
        hp = clamp_hp(int(_number(data.get("hp", config.MAX_HP))))
        return cls(
            id=player_id,
            nickname=nickname,
            team=Team(data.get("team", Team.BLUE.value)),
            position=Vector3.from_wire(data["position"]),
            rotation=_number(data.get("rotation", 0.0)),
            hp=hp,
            is_dead=hp == 0,
            score=int(_number(data.get("score", 0))),
        )


@dataclass(frozen=True)
class Bullet:
    """A spawn-only projectile.

    Only the spawn event travels over the network; every observer moves the
    bullet itself at ``BULLET_SPEED`` and decides on its own when it is gone.
    """

    id: str
    owner_id: str
    position: Vector3
    direction: Vector3
    timestamp: float

    def position_at(self, now: float) -> Vector3:
        elapsed = max(0.0, now - self.timestamp)
        return self.position + self.direction.scale(config.BULLET_SPEED * elapsed)

    def expired(self, now: float, ttl: float = config.BULLET_TTL) -> bool:
        return now - self.timestamp >= ttl

    def to_wire(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "position": self.position.to_wire(),
            "direction": self.direction.to_wire(),
            "timestamp": self.timestamp,
        }
