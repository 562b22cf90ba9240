"""Authoritative per-room player state."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from .models import Player, Team, Vector3, clamp_hp


@dataclass(frozen=True)
class HitOutcome:
    """Result of a damage event that was applied to a live target.

    ``damage`` is the amount of health actually removed, which is smaller
    than the requested damage when the target had less health left.
    """

    target_id: str
    source_id: str
    damage: int
    killed: bool


class SessionStore:
    """The single source of truth for the players of one room.

    Only message-shaped operations are exposed; the owning room serialises
    every call so no two mutations ever interleave.
    """

    def __init__(self) -> None:
        self._players: Dict[str, Player] = {}

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._players))

    def get(self, player_id: str) -> Optional[Player]:
        return self._players.get(player_id)

    def join(self, player_id: str, nickname: str) -> Player:
        """Insert (or reset) a player at the spawn point.

        The team is picked from the number of records present before the
        insert, so a re-join of an existing id counts that id as well.
        """
        team = Team.for_join(len(self._players))
        player = Player.spawn(player_id, nickname, team)
        self._players[player_id] = player
        return player

    def update(self, player_id: str, position: Vector3, rotation: float) -> bool:
        player = self._players.get(player_id)
        if player is None:
            return False
        player.position = position
        player.rotation = rotation
        return True

    def hit(self, target_id: str, source_id: str, damage: int) -> Optional[HitOutcome]:
        """Apply ``damage`` to a live target and credit a kill to the source."""

        target = self._players.get(target_id)
        if target is None or target.is_dead:
            return None
        previous = target.hp
        target.hp = clamp_hp(previous - damage)
        killed = target.hp == 0
        if killed:
            target.is_dead = True
            source = self._players.get(source_id)
            if source is not None:
                source.score += 1
        return HitOutcome(
            target_id=target_id,
            source_id=source_id,
            damage=previous - target.hp,
            killed=killed,
        )

    def remove(self, player_id: str) -> bool:
        return self._players.pop(player_id, None) is not None

    def snapshot(self) -> Dict[str, Player]:
        """Independent copy of every record, safe to hand to a broadcast."""

        return {pid: player.copy() for pid, player in self._players.items()}
