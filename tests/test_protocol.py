"""Tests for the JSON wire codec."""
from __future__ import annotations

import json

import pytest

from polyarena.models import Player, Team, Vector3
from polyarena.protocol import (
    HitMessage,
    JoinMessage,
    KillMessage,
    ProtocolError,
    ShootMessage,
    SyncMessage,
    UpdateMessage,
    decode,
    encode,
)


def test_decode_update() -> None:
    message = decode('{"type":"update","id":"a","position":{"x":1,"y":2,"z":3},"rotation":0.5}')
    assert message == UpdateMessage(id="a", position=Vector3(1.0, 2.0, 3.0), rotation=0.5)


def test_decode_hit_uses_browser_field_names() -> None:
    message = decode(json.dumps({"type": "hit", "targetId": "b", "sourceId": "a", "damage": 10}))
    assert message == HitMessage(target_id="b", source_id="a", damage=10)


def test_join_without_nickname_decodes_to_empty_name() -> None:
    assert decode('{"type":"join","id":"a"}') == JoinMessage(id="a", nickname="")


def test_decode_reserved_kill() -> None:
    assert decode('{"type":"kill","killerId":"a","victimId":"b"}') == KillMessage("a", "b")


def test_sync_entries_keep_health_invariant() -> None:
    frame = json.dumps(
        {
            "type": "sync",
            "players": {
                "a": {
                    "id": "a",
                    "nickname": "Alpha",
                    "position": {"x": 0, "y": 1, "z": 0},
                    "rotation": 0,
                    "hp": -5,
                    "score": 2,
                    "isDead": False,
                    "team": "red",
                }
            },
        }
    )
    message = decode(frame)
    assert isinstance(message, SyncMessage)
    player = message.players["a"]
    assert player.hp == 0
    assert player.is_dead
    assert player.team is Team.RED
    assert player.score == 2


@pytest.mark.parametrize(
    "frame",
    [
        "not json",
        "[1, 2, 3]",
        '{"id": "a"}',
        '{"type": "teleport", "id": "a"}',
        '{"type": 5}',
        '{"type": "update", "id": "a", "rotation": 0}',
        '{"type": "update", "id": "a", "position": {"x": 1, "y": 2}, "rotation": 0}',
        '{"type": "update", "id": "", "position": {"x": 1, "y": 2, "z": 3}, "rotation": 0}',
        '{"type": "hit", "targetId": "b", "sourceId": "a", "damage": "ten"}',
        '{"type": "hit", "targetId": "b", "sourceId": "a", "damage": true}',
        '{"type": "hit", "targetId": "b", "sourceId": "a", "damage": 2.5}',
        '{"type": "shoot", "id": "a", "position": {"x": 0, "y": 0, "z": 0}, "direction": {"x": NaN, "y": 0, "z": 1}}',
        '{"type": "sync", "players": {"a": {"id": "b", "position": {"x": 0, "y": 0, "z": 0}}}}',
    ],
)
def test_malformed_frames_fail_closed(frame: str) -> None:
    with pytest.raises(ProtocolError):
        decode(frame)


def test_encode_is_single_line_and_decodable() -> None:
    players = {"a": Player.spawn("a", "Alpha\nBeta", Team.BLUE)}
    frame = encode(SyncMessage(players))
    assert "\n" not in frame
    decoded = decode(frame)
    assert isinstance(decoded, SyncMessage)
    assert decoded.players["a"].nickname == "Alpha\nBeta"
    assert decoded.players["a"].position == Vector3(0.0, 1.0, 0.0)


def test_encode_shoot_uses_wire_keys() -> None:
    message = ShootMessage(id="a", position=Vector3(1, 2, 3), direction=Vector3(0, 0, 1))
    assert json.loads(encode(message)) == {
        "type": "shoot",
        "id": "a",
        "position": {"x": 1, "y": 2, "z": 3},
        "direction": {"x": 0, "y": 0, "z": 1},
    }


def test_out_of_range_numbers_fail_closed() -> None:
    huge = "1" + "0" * 400
    with pytest.raises(ProtocolError):
        decode('{"type": "hit", "targetId": "b", "sourceId": "a", "damage": %s}' % huge)
    with pytest.raises(ProtocolError):
        decode('{"type": "update", "id": "a", "position": {"x": %s, "y": 0, "z": 0}, "rotation": 0}' % huge)


def test_deeply_nested_frame_fails_closed() -> None:
    with pytest.raises(ProtocolError):
        decode("[" * 100000 + "]" * 100000)
