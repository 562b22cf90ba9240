"""
Kinematic prediction of the local player for clients without a physics engine.

Movement is camera-relative like the browser client: stick "up" moves away
from the camera, and the character turns to face the way it moves.
"""
from __future__ import annotations

import math
from typing import Tuple

from .. import config
from ..models import Vector3

DEAD_ZONE = 0.1
MUZZLE_HEIGHT = 1.0
MUZZLE_OFFSET = 1.2


def rotate_y(vector: Vector3, angle: float) -> Vector3:
    """Rotate ``vector`` about the up axis by ``angle`` radians."""

    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return Vector3(
        vector.x * cos_a + vector.z * sin_a,
        vector.y,
        -vector.x * sin_a + vector.z * cos_a,
    )


def forward(rotation: float) -> Vector3:
    """Unit facing direction for a yaw of ``rotation``."""

    return Vector3(math.sin(rotation), 0.0, math.cos(rotation))


def muzzle(position: Vector3, rotation: float) -> Vector3:
    """Spawn point of a bullet fired by a player standing at ``position``."""

    return position + Vector3(0.0, MUZZLE_HEIGHT, 0.0) + forward(rotation).scale(MUZZLE_OFFSET)


class Predictor:
    """
    Applies stick input to the local pose immediately.
    """

    def __init__(self, speed: float = config.PLAYER_SPEED, map_size: float = config.MAP_SIZE):
        self.speed = speed
        self.half_extent = map_size / 2.0

    def predict(
        self,
        position: Vector3,
        rotation: float,
        move_x: float,
        move_y: float,
        camera_angle: float,
        dt: float,
    ) -> Tuple[Vector3, float]:
        """
        Advance the local pose by ``dt`` seconds.

        Args:
            position: current predicted position
            rotation: current yaw in radians
            move_x: stick right (+) / left (-)
            move_y: stick down (+) / up (-), screen convention
            camera_angle: camera yaw around the player
            dt: seconds to integrate

        Returns:
            (new_position, new_rotation)
        """
        direction = rotate_y(Vector3(move_x, 0.0, -move_y), camera_angle)
        if direction.length() <= DEAD_ZONE:
            return position, rotation

        velocity = direction.normalized().scale(self.speed)
        moved = position + velocity.scale(dt)
        clamped = Vector3(
            max(-self.half_extent, min(self.half_extent, moved.x)),
            moved.y,
            max(-self.half_extent, min(self.half_extent, moved.z)),
        )
        return clamped, math.atan2(velocity.x, velocity.z)
