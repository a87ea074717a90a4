"""
The Socket.IO server shared by every real-time feature.

Clients connect to `/socket.io` on the API host and authenticate with their
access token, given either as the `token` query parameter or as
`auth: { token }` in the handshake.
"""

from typing import Any
from urllib.parse import parse_qs

import socketio


def create_server(cors_origins: list[str]) -> socketio.AsyncServer:
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=cors_origins,
        logger=False,
        engineio_logger=False,
    )


def extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """
    Extract the access token from the Socket.IO environ or auth payload.
    """

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    return None


def group_id_from(data: Any) -> int | None:
    """
    Clients send either a bare group id or `{"group_id": ...}` (older clients
    use `groupId`).
    """
    if isinstance(data, dict):
        data = data.get("group_id", data.get("groupId"))

    # JSON true/false and fractional numbers are not ids, though int() takes them.
    if isinstance(data, (bool, float)):
        return None

    try:
        return int(data)
    except (TypeError, ValueError):
        return None
