import asyncio
from unittest.mock import AsyncMock, call

import pytest
import socketio

import sockets
from auth import create_token


@pytest.fixture
def server(monkeypatch, socket_emit):
    monkeypatch.setattr(sockets.sio, "save_session", AsyncMock())
    monkeypatch.setattr(sockets.sio, "enter_room", AsyncMock())
    return sockets.sio


def test_connect_without_token_is_refused(server):
    with pytest.raises(socketio.exceptions.ConnectionRefusedError) as exc:
        asyncio.run(sockets.connect("sid-1", {}, None))
    assert exc.value.args == ("auth:required", {"reason": "no_token"})
    server.enter_room.assert_not_called()


def test_connect_with_non_dict_auth_falls_back_to_header(server):
    with pytest.raises(socketio.exceptions.ConnectionRefusedError) as exc:
        asyncio.run(sockets.connect("sid-1", {}, "just-a-string"))
    assert exc.value.args == ("auth:required", {"reason": "no_token"})

    token = create_token({"id": "u4", "email": "u4@example.com"})
    asyncio.run(sockets.connect("sid-4", {"HTTP_AUTHORIZATION": f"Bearer {token}"}, ["not", "a", "dict"]))
    server.enter_room.assert_has_calls([call("sid-4", "sid-4"), call("sid-4", "user:u4")])


def test_connect_with_bad_token_is_refused(server):
    with pytest.raises(socketio.exceptions.ConnectionRefusedError) as exc:
        asyncio.run(sockets.connect("sid-1", {}, {"token": "not-a-jwt"}))
    assert exc.value.args == ("auth:required", {"reason": "invalid_token"})


def test_connect_joins_user_and_session_rooms(server):
    token = create_token({"id": "u1", "email": "u1@example.com", "role": "user"})
    asyncio.run(sockets.connect("sid-1", {}, {"token": token}))
    server.enter_room.assert_has_calls([call("sid-1", "sid-1"), call("sid-1", "user:u1")])
    event, payload = server.emit.call_args.args
    assert event == "user:connected"
    assert payload["user"]["id"] == "u1"
    assert payload["socketId"] == "sid-1"
    assert server.emit.call_args.kwargs == {"to": "sid-1"}


def test_connect_uses_session_claim_and_header(server):
    token = create_token({"id": "u2", "email": "u2@example.com", "sid": "browser-session"})
    asyncio.run(sockets.connect("sid-2", {"HTTP_AUTHORIZATION": f"Bearer {token}"}))
    server.enter_room.assert_has_calls([call("sid-2", "browser-session"), call("sid-2", "user:u2")])
    server.save_session.assert_awaited_once()
    assert server.save_session.call_args.args[1]["session_id"] == "browser-session"


def test_emit_helpers_target_rooms(socket_emit):
    asyncio.run(sockets.emit_to_user("u3", "ping", {"a": 1}))
    socket_emit.assert_awaited_with("ping", {"a": 1}, room="user:u3")
    asyncio.run(sockets.emit_to_session("s-9", "pong", {}))
    socket_emit.assert_awaited_with("pong", {}, room="s-9")
