"""
Event Schema.

Defines the ChangeEvent value produced once per committed order transition.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from hotel_shared.config.constants import OrderStatus
from hotel_shared.utils.schemas import Order
from .event_types import NEW_ORDER, ORDER_UPDATE


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChangeEvent:
    """
    One committed order transition.

    ``previous_status`` is None for creation. ``order`` is the committed
    snapshot, carried so sinks can render it without another read.
    ``origin`` names the API process that committed the transition once the
    event has crossed Redis; it stays None on the committing process.
    Not persisted; lives only for the duration of fan-out.
    """

    order_id: str
    new_status: OrderStatus
    previous_status: OrderStatus | None = None
    tenant_id: str | None = None
    actor_role: str = ""
    occurred_at: datetime = field(default_factory=_now)
    order: Order | None = field(default=None, compare=False, repr=False)
    origin: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.order_id or not isinstance(self.order_id, str):
            raise ValueError("ChangeEvent order_id must be a non-empty string")

        # Accept raw strings from JSON and normalise to the enum
        object.__setattr__(self, "new_status", OrderStatus(self.new_status))
        if self.previous_status is not None:
            object.__setattr__(self, "previous_status", OrderStatus(self.previous_status))

        if self.previous_status == self.new_status:
            raise ValueError("ChangeEvent must describe a status change")

        if self.tenant_id is not None and not isinstance(self.tenant_id, str):
            raise ValueError("ChangeEvent tenant_id must be a string or None")

    @property
    def type(self) -> str:
        return NEW_ORDER if self.is_creation else ORDER_UPDATE

    @property
    def is_creation(self) -> bool:
        return self.previous_status is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "order_id": self.order_id,
            "previous_status": self.previous_status.value if self.previous_status else None,
            "new_status": self.new_status.value,
            "tenant_id": self.tenant_id,
            "actor_role": self.actor_role,
            "occurred_at": self.occurred_at.isoformat(),
            "order": self.order.model_dump(mode="json") if self.order is not None else None,
            "origin": self.origin,
        }

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeEvent":
        """Deserialize event from JSON string. Validation runs in __post_init__."""
        data = json.loads(json_str)
        data.pop("type", None)
        order = data.pop("order", None)
        if order is not None:
            order.pop("total_amount", None)
            data["order"] = Order.model_validate(order)
        data["occurred_at"] = datetime.fromisoformat(data["occurred_at"])
        return cls(**data)
