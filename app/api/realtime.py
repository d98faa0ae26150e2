"""Realtime WebSocket endpoint.

Clients authenticate with the REST bearer token, passed as the ``token``
query parameter or an ``Authorization`` header. Invalid tokens are refused
with close code 4401.
"""

from dataclasses import replace

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.api.middleware import bearer_token
from app.domain.entities import UserRole
from app.domain.exceptions import AuthenticationError

logger = structlog.get_logger()

router = APIRouter(tags=["Realtime"])

CLOSE_UNAUTHORIZED = 4401


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket) -> None:
    context = websocket.app.state.context
    token = websocket.query_params.get("token") or bearer_token(
        websocket.headers.get("authorization")
    )

    try:
        identity = context.realtime.authenticate(token)
    except AuthenticationError as e:
        logger.warning("Realtime authentication failed", reason=e.message)
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return

    # Owners who registered after their token was issued still join their shop room
    if identity.shop_id is None and identity.role == UserRole.SHOP_OWNER:
        shop = await context.repositories.shops.get_by_owner(identity.user_id)
        if shop is not None:
            identity = replace(identity, shop_id=shop.id)

    await websocket.accept()
    rooms = context.realtime.connect(websocket, identity)
    await websocket.send_json({"event": "connected", "data": {"rooms": rooms}})

    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        context.realtime.disconnect(websocket)
        logger.info("Realtime client disconnected", user_id=identity.user_id)
