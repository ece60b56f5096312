"""
FastAPI dependencies.

Services live on ``app.state`` (wired in the lifespan) and are handed to
routes through these functions so tests can swap them with
``app.dependency_overrides``.
"""

from typing import Any

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from hotel_shared.infrastructure.db import get_db
from hotel_shared.security.auth import current_user_context

from hotel_api.services.domain import MenuService, OrderService
from hotel_api.services.events.sinks import WebhookSink
from hotel_api.services.permissions import Principal, principal_from_claims


def get_principal(claims: dict[str, Any] = Depends(current_user_context)) -> Principal:
    return principal_from_claims(claims)


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_webhook_sink(request: Request) -> WebhookSink:
    return request.app.state.webhook_sink


def get_menu_service(db: Session = Depends(get_db)) -> MenuService:
    return MenuService(db)
