"""Client-side mirror of a room's player store."""
from __future__ import annotations

import dataclasses
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from ..models import Player, Team, Vector3, clamp_hp
from ..protocol import HitMessage, Message, SyncMessage, UpdateMessage


class WorldMirror:
    """Local copy of the server's players plus the id this client controls.

    Records are never mutated in place: every applied message swaps in a new
    :class:`Player`, so a reader holding :meth:`snapshot` always sees whole
    records.  For the local id the position and rotation are authored here
    and never taken from the server.
    """

    def __init__(self, local_id: Optional[str] = None):
        self.local_id = local_id
        self._players: Dict[str, Player] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def __len__(self) -> int:
        return len(self._players)

    def get(self, player_id: str) -> Optional[Player]:
        return self._players.get(player_id)

    @property
    def local(self) -> Optional[Player]:
        if self.local_id is None:
            return None
        return self._players.get(self.local_id)

    def snapshot(self) -> Mapping[str, Player]:
        """Read-only view of the current records, stable for one render tick."""

        return MappingProxyType(dict(self._players))

    def remote_players(self) -> List[Player]:
        return [player for pid, player in self._players.items() if pid != self.local_id]

    def scoreboard(self) -> List[Player]:
        return sorted(self._players.values(), key=lambda p: (-p.score, p.nickname, p.id))

    # ------------------------------------------------------------------
    # Local authority
    # ------------------------------------------------------------------
    def ensure_local(self, nickname: str) -> Player:
        """Optimistically spawn the local record before the server confirms it."""

        if self.local_id is None:
            raise ValueError("mirror has no local id")
        player = self._players.get(self.local_id)
        if player is None:
            player = Player.spawn(self.local_id, nickname, Team.BLUE)
            self._players[self.local_id] = player
        return player

    def set_local_pose(self, position: Vector3, rotation: float) -> None:
        player = self.local
        if player is None:
            return
        self._players[player.id] = dataclasses.replace(player, position=position, rotation=rotation)

    def reset(self) -> None:
        self._players = {}

    # ------------------------------------------------------------------
    # Server messages
    # ------------------------------------------------------------------
    def apply(self, message: Message) -> None:
        if isinstance(message, SyncMessage):
            self._apply_sync(message)
        elif isinstance(message, UpdateMessage):
            self._apply_update(message)
        elif isinstance(message, HitMessage):
            self._apply_hit(message)

    def _apply_sync(self, message: SyncMessage) -> None:
        players: Dict[str, Player] = {}
        for player_id, incoming in message.players.items():
            current = self._players.get(player_id)
            if player_id == self.local_id and current is not None:
                players[player_id] = dataclasses.replace(
                    incoming.copy(), position=current.position, rotation=current.rotation
                )
            else:
                players[player_id] = incoming.copy()
        local = self.local
        if local is not None and local.id not in players:
            players[local.id] = local
        self._players = players

    def _apply_update(self, message: UpdateMessage) -> None:
        if message.id == self.local_id:
            return
        current = self._players.get(message.id)
        if current is None:
            return
        self._players[message.id] = dataclasses.replace(
            current, position=message.position, rotation=message.rotation
        )

    def _apply_hit(self, message: HitMessage) -> None:
        target = self._players.get(message.target_id)
        if target is None or target.is_dead:
            return
        hp = clamp_hp(target.hp - message.damage)
        self._players[target.id] = dataclasses.replace(target, hp=hp, is_dead=hp == 0)
        if hp == 0:
            source = self._players.get(message.source_id)
            if source is not None:
                self._players[source.id] = dataclasses.replace(source, score=source.score + 1)
