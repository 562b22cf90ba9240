"""Wire protocol spoken between the relay and its clients.

Every frame is a single-line UTF-8 JSON object whose ``type`` key selects
one of the message variants below:

========  ==========================================  ===================
type      fields                                      direction
========  ==========================================  ===================
join      id, nickname                                client -> server
update    id, position{x,y,z}, rotation               both ways
shoot     id, position{x,y,z}, direction{x,y,z}       both ways
hit       targetId, sourceId, damage                  both ways
sync      players: {id: player}                       server -> clients
kill      killerId, victimId                          reserved
========  ==========================================  ===================

:func:`decode` reads the discriminator first and fails closed: anything it
cannot fully parse raises :class:`ProtocolError` and is meant to be dropped.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Dict, Mapping, Union

from .models import Player, Vector3, _number


class ProtocolError(ValueError):
    """Raised when a frame is not a well-formed protocol message."""


@dataclass(frozen=True)
class JoinMessage:
    type: ClassVar[str] = "join"

    id: str
    nickname: str = ""

    def to_wire(self) -> Dict[str, object]:
        return {"type": self.type, "id": self.id, "nickname": self.nickname}


@dataclass(frozen=True)
class UpdateMessage:
    type: ClassVar[str] = "update"

    id: str
    position: Vector3
    rotation: float

    def to_wire(self) -> Dict[str, object]:
        return {
            "type": self.type,
            "id": self.id,
            "position": self.position.to_wire(),
            "rotation": self.rotation,
        }


@dataclass(frozen=True)
class ShootMessage:
    type: ClassVar[str] = "shoot"

    id: str
    position: Vector3
    direction: Vector3

    def to_wire(self) -> Dict[str, object]:
        return {
            "type": self.type,
            "id": self.id,
            "position": self.position.to_wire(),
            "direction": self.direction.to_wire(),
        }


@dataclass(frozen=True)
class HitMessage:
    type: ClassVar[str] = "hit"

    target_id: str
    source_id: str
    damage: int

    def to_wire(self) -> Dict[str, object]:
        return {
            "type": self.type,
            "targetId": self.target_id,
            "sourceId": self.source_id,
            "damage": self.damage,
        }


@dataclass(frozen=True)
class SyncMessage:
    type: ClassVar[str] = "sync"

    players: Dict[str, Player] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, object]:
        return {
            "type": self.type,
            "players": {pid: player.to_wire() for pid, player in self.players.items()},
        }


@dataclass(frozen=True)
class KillMessage:
    """Reserved kill-feed message; decodable but never emitted by the relay."""

    type: ClassVar[str] = "kill"

    killer_id: str
    victim_id: str

    def to_wire(self) -> Dict[str, object]:
        return {"type": self.type, "killerId": self.killer_id, "victimId": self.victim_id}


Message = Union[JoinMessage, UpdateMessage, ShootMessage, HitMessage, SyncMessage, KillMessage]


def _identifier(data: Mapping[str, object], key: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _damage(value: object) -> int:
    amount = _number(value)
    if not amount.is_integer():
        raise ValueError(f"damage must be an integer, got {value!r}")
    return int(amount)


def _decode_join(data: Mapping[str, object]) -> JoinMessage:
    nickname = data.get("nickname") or ""
    if not isinstance(nickname, str):
        raise ValueError("nickname must be a string")
    return JoinMessage(id=_identifier(data, "id"), nickname=nickname)


def _decode_update(data: Mapping[str, object]) -> UpdateMessage:
    return UpdateMessage(
        id=_identifier(data, "id"),
        position=Vector3.from_wire(data["position"]),
        rotation=_number(data["rotation"]),
    )


def _decode_shoot(data: Mapping[str, object]) -> ShootMessage:
    return ShootMessage(
        id=_identifier(data, "id"),
        position=Vector3.from_wire(data["position"]),
        direction=Vector3.from_wire(data["direction"]),
    )


def _decode_hit(data: Mapping[str, object]) -> HitMessage:
    return HitMessage(
        target_id=_identifier(data, "targetId"),
        source_id=_identifier(data, "sourceId"),
        damage=_damage(data["damage"]),
    )


def _decode_sync(data: Mapping[str, object]) -> SyncMessage:
    raw_players = data["players"]
    if not isinstance(raw_players, Mapping):
        raise ValueError("players must be an object")
    players: Dict[str, Player] = {}
    for player_id, raw in raw_players.items():
        player = Player.from_wire(raw)
        if player.id != player_id:
            raise ValueError(f"player key {player_id!r} does not match id {player.id!r}")
        players[player_id] = player
    return SyncMessage(players=players)


def _decode_kill(data: Mapping[str, object]) -> KillMessage:
    return KillMessage(killer_id=_identifier(data, "killerId"), victim_id=_identifier(data, "victimId"))


_DECODERS: Dict[str, Callable[[Mapping[str, object]], Message]] = {
    JoinMessage.type: _decode_join,
    UpdateMessage.type: _decode_update,
    ShootMessage.type: _decode_shoot,
    HitMessage.type: _decode_hit,
    SyncMessage.type: _decode_sync,
    KillMessage.type: _decode_kill,
}


def decode(text: Union[str, bytes]) -> Message:
    """Parse one frame into its message variant."""

    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"invalid JSON: {exc}") from exc
    except RecursionError as exc:
        raise ProtocolError("JSON nested too deeply") from exc
    if not isinstance(data, dict):
        raise ProtocolError("frame is not a JSON object")
    msg_type = data.get("type")
    decoder = _DECODERS.get(msg_type) if isinstance(msg_type, str) else None
    if decoder is None:
        raise ProtocolError(f"unknown message type {msg_type!r}")
    try:
        return decoder(data)
    except KeyError as exc:
        raise ProtocolError(f"{msg_type} message is missing field {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"malformed {msg_type} message: {exc}") from exc


def to_wire(message: Message) -> Dict[str, object]:
    return message.to_wire()


def encode(message: Message) -> str:
    """Serialise a message as a compact single-line JSON frame."""

    return json.dumps(message.to_wire(), separators=(",", ":"))


__all__ = [
    "HitMessage",
    "JoinMessage",
    "KillMessage",
    "Message",
    "ProtocolError",
    "ShootMessage",
    "SyncMessage",
    "UpdateMessage",
    "decode",
    "encode",
    "to_wire",
]
