"""
Realtime router.

One WebSocket per open tab/device. The socket authenticates with a query
token (browsers cannot set headers on the upgrade request) and names its app
instance; every session of that instance then receives order events and
alert cues from the change bus.

Client frames:
    {"type": "ping"}                  -> {"type": "pong"}
    {"type": "mute", "muted": true}   silences alert cues for the instance
"""

import uuid

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from hotel_shared.config.logging import realtime_logger as logger
from hotel_shared.security.auth import verify_jwt
from hotel_shared.utils.exceptions import AppException

from hotel_api.services.events import InstanceHub
from hotel_api.services.permissions import principal_from_claims

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/orders")
async def orders_socket(
    websocket: WebSocket,
    token: str = Query(...),
    instance: str = Query(..., min_length=1, max_length=64),
) -> None:
    try:
        principal = principal_from_claims(verify_jwt(token))
    except HTTPException as e:
        logger.warning("WebSocket auth rejected", reason=e.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    hub: InstanceHub = websocket.app.state.instance_hub
    session_id = uuid.uuid4().hex

    async def send(payload: dict) -> None:
        await websocket.send_json(payload)

    await websocket.accept()
    try:
        hub.connect(instance, session_id, principal, send)
    except AppException as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.detail)
        return

    try:
        await websocket.send_json({"type": "connected", "session_id": session_id})
        while True:
            message = await websocket.receive_json()
            kind = message.get("type") if isinstance(message, dict) else None
            if kind == "ping":
                await websocket.send_json({"type": "pong"})
            elif kind == "mute":
                hub.set_muted(instance, bool(message.get("muted", True)))
            else:
                logger.debug("Ignoring client frame", session_id=session_id, frame_type=kind)
    except WebSocketDisconnect:
        logger.debug("WebSocket disconnected", session_id=session_id)
    finally:
        hub.disconnect(instance, session_id)
