"""
Smoothing of remote players for rendering.

Remote poses only change when a message arrives, which is far less often
than the render loop ticks.  Every tick the displayed pose moves a fixed
fraction of the way towards the latest received pose:

    displayed += (target - displayed) * min(1, k * dt)

This is a first-order filter rather than a buffered playout: no timestamps
are stored, irregular packet arrival simply retargets the filter, and the
error shrinks by ``(1 - k * dt)`` per tick without ever overshooting.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from .. import config
from ..models import Player, Vector3


@dataclass(frozen=True)
class DisplayedPose:
    """What the renderer should draw for one remote player."""

    position: Vector3
    rotation: float


def shortest_angle(source: float, target: float) -> float:
    """Signed yaw difference from ``source`` to ``target`` in ``(-pi, pi]``."""

    diff = math.remainder(target - source, math.tau)
    if diff == -math.pi:
        diff = math.pi
    return diff


def slerp_yaw(source: float, target: float, alpha: float) -> float:
    """Rotate ``source`` towards ``target`` along the shorter arc.

    For rotations about a single axis this matches quaternion slerp.
    """
    return source + shortest_angle(source, target) * alpha


class Interpolator:
    """
    Keeps one displayed pose per visible remote player.
    """

    def __init__(self, rate: float = config.SMOOTHING_RATE):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self._poses: Dict[str, DisplayedPose] = {}

    def step(self, players: Iterable[Player], dt: float) -> Dict[str, DisplayedPose]:
        """
        Advance every displayed pose by one render tick.

        Args:
            players: remote player records from the mirror
            dt: seconds since the previous tick

        Returns:
            dict of player_id -> DisplayedPose for the living remote players
        """
        alpha = min(1.0, self.rate * dt) if dt > 0 else 0.0
        poses: Dict[str, DisplayedPose] = {}
        for player in players:
            if player.is_dead:
                continue
            current = self._poses.get(player.id)
            if current is None:
                # First sighting: appear in place instead of sliding in from the origin.
                poses[player.id] = DisplayedPose(player.position, player.rotation)
                continue
            poses[player.id] = DisplayedPose(
                position=current.position.lerp(player.position, alpha),
                rotation=slerp_yaw(current.rotation, player.rotation, alpha),
            )
        self._poses = poses
        return dict(poses)

    def pose(self, player_id: str) -> Optional[DisplayedPose]:
        return self._poses.get(player_id)

    def clear(self) -> None:
        self._poses = {}
