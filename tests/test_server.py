"""End-to-end tests of the websocket relay with real client sessions."""
from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from polyarena.client.session import ClientSession, GamePhase
from polyarena.models import Vector3
from polyarena.server import create_app


@pytest.fixture()
def client() -> TestClient:
    with TestClient(create_app()) as test_client:
        yield test_client


def test_health_reports_rooms(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "rooms": 0, "players": 0}


def test_malformed_frame_does_not_close_connection(client: TestClient) -> None:
    with client.websocket_connect("/party/lobby") as ws:
        ws.send_text("definitely not json")
        ws.send_text(json.dumps({"type": "emote", "id": "a"}))
        ws.send_bytes(b"\x00\x01")
        ws.send_text(json.dumps({"type": "join", "id": "a", "nickname": "Alpha"}))
        sync = ws.receive_json()
        assert sync["type"] == "sync"
        assert list(sync["players"]) == ["a"]


def test_closed_socket_leaves_and_room_is_reaped(client: TestClient) -> None:
    with client.websocket_connect("/party/brief") as ws:
        ws.send_text(json.dumps({"type": "join", "id": "a", "nickname": "Alpha"}))
        assert ws.receive_json()["type"] == "sync"
        assert client.get("/health").json() == {"status": "ok", "rooms": 1, "players": 1}
    assert client.get("/health").json() == {"status": "ok", "rooms": 0, "players": 0}


def test_rooms_are_isolated(client: TestClient) -> None:
    with client.websocket_connect("/party/one") as one, client.websocket_connect("/party/two") as two:
        one.send_text(json.dumps({"type": "join", "id": "a", "nickname": "Alpha"}))
        two.send_text(json.dumps({"type": "join", "id": "b", "nickname": "Bravo"}))
        assert list(one.receive_json()["players"]) == ["a"]
        assert list(two.receive_json()["players"]) == ["b"]
        assert client.get("/health").json()["rooms"] == 2


def test_two_player_duel(client: TestClient) -> None:
    with client.websocket_connect("/party/duel") as ws_a:
        alice = ClientSession("Alice", player_id="A", send=ws_a.send_text, fire_rate=0.0)
        alice.start()
        alice.handle_frame(ws_a.receive_text())
        assert set(alice.mirror.snapshot()) == {"A"}

        with client.websocket_connect("/party/duel") as ws_b:
            bob = ClientSession("Bob", player_id="B", send=ws_b.send_text, fire_rate=0.0)
            bob.start()
            for session, ws in ((alice, ws_a), (bob, ws_b)):
                frame = json.loads(ws.receive_text())
                assert frame["type"] == "sync"
                assert len(frame["players"]) == 2
                assert frame["players"]["A"]["team"] == "blue"
                assert frame["players"]["B"]["team"] == "red"
                session.handle_frame(json.dumps(frame))

            alice.set_local_pose(Vector3(1.0, 1.0, 1.0), 0.0)
            assert alice.send_update()
            bob.handle_frame(ws_b.receive_text())
            assert bob.mirror.get("A").position == Vector3(1.0, 1.0, 1.0)
            assert alice.mirror.local.position == Vector3(1.0, 1.0, 1.0)

            for round_number in range(1, 11):
                bullet = alice.shoot(Vector3(1.0, 2.0, 2.2), Vector3(0.0, 0.0, 1.0))
                assert bullet is not None
                shoot = ws_b.receive_text()
                bob.handle_frame(shoot)
                assert json.loads(shoot)["type"] == "shoot"
                assert len(bob.bullets) == 1

                # Bob sees the same collision but must not report it.
                (mirrored_id,) = [b.id for b in bob.bullets.live()]
                assert bob.on_bullet_collision(mirrored_id, "B") is None
                assert alice.on_bullet_collision(bullet.id, "B") is not None

                for session, ws in ((alice, ws_a), (bob, ws_b)):
                    # The shooter gets no echo of its own update or shot: the hit comes first.
                    frame = ws.receive_text()
                    assert json.loads(frame) == {"type": "hit", "targetId": "B", "sourceId": "A", "damage": 10}
                    session.handle_frame(frame)
                assert bob.mirror.local.hp == 100 - 10 * round_number

            for session, ws in ((alice, ws_a), (bob, ws_b)):
                frame = ws.receive_text()
                sync = json.loads(frame)
                assert sync["type"] == "sync"
                assert sync["players"]["A"]["score"] == 1
                assert sync["players"]["B"]["isDead"] is True
                session.handle_frame(frame)

            assert bob.mirror.local.is_dead
            assert bob.phase is GamePhase.DEAD
            assert alice.mirror.local.score == 1
            assert alice.mirror.scoreboard()[0].id == "A"
            assert bob.shoot(Vector3(), Vector3(0.0, 0.0, 1.0)) is None

        departure = json.loads(ws_a.receive_text())
        assert departure["type"] == "sync"
        assert list(departure["players"]) == ["A"]
        alice.handle_frame(json.dumps(departure))
        assert "B" not in alice.mirror
