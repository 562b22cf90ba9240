"""Tests for remote player smoothing."""
from __future__ import annotations

import math

import pytest

from polyarena.client.interpolation import Interpolator, shortest_angle, slerp_yaw
from polyarena.models import Player, Team, Vector3


def remote(x: float, rotation: float = 0.0, hp: int = 100) -> Player:
    player = Player.spawn("r", "Remote", Team.RED)
    player.position = Vector3(x, 1.0, 0.0)
    player.rotation = rotation
    player.hp = hp
    player.is_dead = hp == 0
    return player


def test_first_sighting_appears_in_place() -> None:
    interpolator = Interpolator(rate=10.0)
    poses = interpolator.step([remote(5.0)], 1 / 60)
    assert poses["r"].position == Vector3(5.0, 1.0, 0.0)


def test_error_decays_geometrically() -> None:
    interpolator = Interpolator(rate=10.0)
    interpolator.step([remote(0.0)], 0.01)
    errors = []
    for _ in range(5):
        pose = interpolator.step([remote(10.0)], 0.01)["r"]
        errors.append(10.0 - pose.position.x)
    for before, after in zip([10.0] + errors, errors):
        assert after == pytest.approx(before * 0.9)


def test_large_step_snaps_without_overshoot() -> None:
    interpolator = Interpolator(rate=10.0)
    interpolator.step([remote(0.0)], 0.01)
    pose = interpolator.step([remote(10.0)], 0.5)["r"]
    assert pose.position.x == pytest.approx(10.0)


def test_converges_when_target_stops() -> None:
    interpolator = Interpolator(rate=10.0)
    interpolator.step([remote(0.0)], 1 / 60)
    for _ in range(300):
        pose = interpolator.step([remote(3.0, rotation=1.0)], 1 / 60)["r"]
        assert pose.position.x <= 3.0
    assert pose.position.x == pytest.approx(3.0, abs=1e-6)
    assert pose.rotation == pytest.approx(1.0, abs=1e-6)


def test_zero_dt_holds_pose() -> None:
    interpolator = Interpolator(rate=10.0)
    interpolator.step([remote(0.0)], 0.01)
    assert interpolator.step([remote(10.0)], 0.0)["r"].position.x == 0.0


def test_dead_players_are_not_displayed() -> None:
    interpolator = Interpolator()
    interpolator.step([remote(0.0)], 0.01)
    assert interpolator.step([remote(0.0, hp=0)], 0.01) == {}
    assert interpolator.pose("r") is None


def test_yaw_takes_shortest_arc() -> None:
    assert shortest_angle(math.pi - 0.1, -math.pi + 0.1) == pytest.approx(0.2)
    assert shortest_angle(0.0, -0.5) == pytest.approx(-0.5)
    assert slerp_yaw(math.pi - 0.1, -math.pi + 0.1, 0.5) == pytest.approx(math.pi)


def test_rate_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Interpolator(rate=0)
