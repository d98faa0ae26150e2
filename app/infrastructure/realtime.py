"""Realtime gateway over WebSockets.

Best-effort push to connected clients grouped into rooms ``user:<id>`` and
``shop:<id>``. No buffering for disconnected clients and no replay; the
durable queue pipeline is the delivery guarantee, this layer is not.
"""

import asyncio
from enum import Enum
from typing import Any

import structlog
from fastapi import WebSocket

from app.infrastructure.auth import Identity, TokenCodec

logger = structlog.get_logger()


class RealtimeEvent(str, Enum):
    """Events pushed to connected clients."""

    ORDER_CREATED = "order:created"
    ORDER_STATUS_CHANGED = "order:statusChanged"
    NOTIFICATION_NEW = "notification:new"
    PAYMENT_COMPLETED = "payment:completed"
    PAYMENT_FAILED = "payment:failed"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def shop_room(shop_id: str) -> str:
    return f"shop:{shop_id}"


class RealtimeGateway:
    """Room-based fan-out to WebSocket connections."""

    def __init__(self, token_codec: TokenCodec) -> None:
        self.token_codec = token_codec
        self._rooms: dict[str, set[WebSocket]] = {}
        self._memberships: dict[WebSocket, list[str]] = {}

    def authenticate(self, token: str | None) -> Identity:
        """Decode a connection token with the REST token scheme.

        Raises:
            AuthenticationError: If the token is invalid.
        """
        return self.token_codec.decode(token)

    def connect(self, websocket: WebSocket, identity: Identity) -> list[str]:
        """Join an accepted socket to its rooms.

        Returns:
            Rooms the socket joined.
        """
        rooms = [user_room(identity.user_id)]
        if identity.shop_id:
            rooms.append(shop_room(identity.shop_id))

        for room in rooms:
            self._rooms.setdefault(room, set()).add(websocket)
        self._memberships[websocket] = rooms

        logger.info("Realtime client connected", user_id=identity.user_id, rooms=rooms)
        return rooms

    def disconnect(self, websocket: WebSocket) -> None:
        for room in self._memberships.pop(websocket, []):
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(websocket)
            if not members:
                del self._rooms[room]

    def connection_count(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def emit_to_user(self, user_id: str, event: RealtimeEvent, data: dict[str, Any]) -> int:
        return await self._emit(user_room(user_id), event, data)

    async def emit_to_shop(self, shop_id: str, event: RealtimeEvent, data: dict[str, Any]) -> int:
        return await self._emit(shop_room(shop_id), event, data)

    async def _emit(self, room: str, event: RealtimeEvent, data: dict[str, Any]) -> int:
        """Send to every socket in a room.

        Returns:
            Number of sockets that received the event.
        """
        sockets = list(self._rooms.get(room, ()))
        if not sockets:
            return 0

        message = {"event": event.value, "data": data}
        results = await asyncio.gather(
            *(socket.send_json(message) for socket in sockets),
            return_exceptions=True,
        )

        delivered = 0
        for socket, result in zip(sockets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Realtime send failed, dropping connection",
                    room=room,
                    realtime_event=event.value,
                    error=str(result),
                )
                self.disconnect(socket)
            else:
                delivered += 1
        return delivered

    async def close(self) -> None:
        """Close every open socket."""
        sockets = list(self._memberships)
        self._rooms.clear()
        self._memberships.clear()
        await asyncio.gather(*(socket.close() for socket in sockets), return_exceptions=True)
