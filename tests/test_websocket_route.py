import pytest

from chore_cycle.services.auth_service import auth_service
from chore_cycle.services.websocket_service import websocket_manager


def test_ping_pong(api):
    with api.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_auth_handshake(api, register):
    alice = register("alice@example.com")

    with api.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        ws.send_json({"type": "auth", "token": alice["token"], "user_id": alice["id"]})
        assert ws.receive_json() == {"type": "auth_success"}
        assert alice["id"] in websocket_manager.active_connections.values()


def test_auth_failure_leaves_socket_open(api, register):
    alice = register("alice@example.com")

    with api.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "token": auth_service.create_access_token("someone-else"), "user_id": alice["id"]})
        assert ws.receive_json() == {"type": "auth_failed"}
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_socket_is_unregistered_when_handler_fails(api, monkeypatch):
    before = dict(websocket_manager.active_connections)

    async def explode(websocket, token, user_id):
        raise RuntimeError("auth backend down")

    monkeypatch.setattr(websocket_manager, "authenticate", explode)

    with pytest.raises(RuntimeError):
        with api.websocket_connect("/ws") as ws:
            ws.send_json({"type": "auth", "token": "t", "user_id": "me"})
            ws.receive_json()

    assert websocket_manager.active_connections == before
