"""
Settings router: webhook test-fire for the settings screen.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from hotel_shared.config.constants import Action, Module
from hotel_shared.utils.exceptions import SinkDeliveryFailure

from hotel_api.core.dependencies import get_principal, get_webhook_sink
from hotel_api.services.events.sinks import WebhookSink
from hotel_api.services.permissions import PermissionContext, Principal

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.post("/webhook/test")
async def test_webhook(
    principal: Principal = Depends(get_principal),
    sink: WebhookSink = Depends(get_webhook_sink),
) -> dict[str, Any]:
    """
    Send a ``webhook.test`` envelope to the configured URL.

    Works even while order webhooks are disabled, so the endpoint can be
    checked before switching them on.
    """
    PermissionContext(principal).require(Module.SETTINGS, Action.UPDATE)
    try:
        status_code = await sink.send_test()
    except SinkDeliveryFailure as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return {"url": sink.url, "status_code": status_code, "ok": 200 <= status_code < 300}
