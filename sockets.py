"""
Socket.IO bridge

A socket is tied to the same identity as the HTTP API: the bearer token
presented at connect time. Each accepted socket joins a session room and a
`user:<id>` room so the API can push events to either.
"""

import logging
import time
from typing import Any, Dict, Optional

import socketio

import config
from auth import bearer_token, decode_token
from errors import UnauthorizedError

log = logging.getLogger("storefront.sockets")

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*" if config.CORS_ORIGINS == ["*"] else config.CORS_ORIGINS,
    ping_timeout=60,
    ping_interval=25,
)


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def token_from(environ: Dict[str, Any], auth: Optional[Dict[str, Any]]) -> Optional[str]:
    if isinstance(auth, dict) and auth.get("token"):
        token = auth["token"]
        return bearer_token(token) or token
    return bearer_token(environ.get("HTTP_AUTHORIZATION"))


@sio.event
async def connect(sid, environ, auth=None):
    token = token_from(environ, auth)
    if not token:
        log.info("Socket %s refused: no token", sid)
        raise socketio.exceptions.ConnectionRefusedError("auth:required", {"reason": "no_token"})
    try:
        user = decode_token(token)
    except UnauthorizedError:
        log.info("Socket %s refused: invalid token", sid)
        raise socketio.exceptions.ConnectionRefusedError("auth:required", {"reason": "invalid_token"})

    session_id = user.sid or sid
    await sio.save_session(sid, {"user": user.model_dump(), "session_id": session_id})
    await sio.enter_room(sid, session_id)
    await sio.enter_room(sid, user_room(user.id))
    await sio.emit("user:connected", {
        "user": user.model_dump(exclude={"sid"}),
        "socketId": sid,
        "timestamp": int(time.time() * 1000),
    }, to=sid)
    log.info("Socket %s connected for user %s", sid, user.id)


@sio.event
async def disconnect(sid, reason=None):
    log.info("Socket %s disconnected (%s)", sid, reason)


async def emit_to_user(user_id: str, event: str, data: Dict[str, Any]) -> None:
    await sio.emit(event, data, room=user_room(user_id))


async def emit_to_session(session_id: str, event: str, data: Dict[str, Any]) -> None:
    await sio.emit(event, data, room=session_id)
