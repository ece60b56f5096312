"""
Shared Pydantic schemas used across the application.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from hotel_shared.config.constants import Action, Limits, Module, OrderStatus


# =============================================================================
# Order read model
# =============================================================================


class OrderItem(BaseModel):
    """One line of an order. Price and name are captured at order time."""

    model_config = ConfigDict(frozen=True)

    dish_id: int
    name: str
    quantity: int = Field(ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)
    unit_price: Decimal = Field(ge=0)
    tenant_id: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Order(BaseModel):
    """
    Snapshot of an order as read from the store.

    ``items`` keep kitchen preparation order. ``total_amount`` is derived
    from the items on every read and cannot be supplied.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    location_id: str
    items: tuple[OrderItem, ...] = ()
    status: OrderStatus
    payment_method: str
    payment_proof: str | None = None
    tenant_id: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    version: int = Field(default=1, ge=1)
    printed: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_amount(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

    def item_summary(self) -> str:
        """'name x qty, name x qty' in preparation order."""
        return ", ".join(f"{item.name} x {item.quantity}" for item in self.items)


# =============================================================================
# Order requests
# =============================================================================


class OrderItemInput(BaseModel):
    """Item as submitted by the guest app. Prices come from the catalog."""

    dish_id: int
    quantity: int = Field(ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)


class CreateOrderRequest(BaseModel):
    """Guest order submission. Unknown fields (e.g. a client total) are ignored."""

    location_id: str = Field(min_length=1, max_length=Limits.MAX_LOCATION_LENGTH)
    items: list[OrderItemInput] = Field(min_length=1, max_length=Limits.MAX_ITEMS_PER_ORDER)
    payment_method: str = Field(min_length=1, max_length=64)
    payment_proof: str | None = Field(default=None, max_length=Limits.MAX_PAYMENT_PROOF_LENGTH)


class UpdateOrderStatusRequest(BaseModel):
    """
    Status change request from the staff console or kitchen display.

    ``expected_version`` is the version the client last saw; when given, the
    write is conditioned on it instead of the freshly read version.
    """

    status: OrderStatus
    expected_version: int | None = Field(default=None, ge=1)


class MarkPrintedRequest(BaseModel):
    printed: bool = True


# =============================================================================
# Menu (catalog) schemas
# =============================================================================


class DishCreate(BaseModel):
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    price: Decimal = Field(ge=0)
    description: str | None = None
    category: str | None = None
    is_available: bool = True
    # Only honoured for non-partner callers; partners always write their own tenant
    tenant_id: str | None = None


class DishUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    price: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    category: str | None = None
    is_available: bool | None = None


class DishOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: Decimal
    description: str | None = None
    category: str | None = None
    is_available: bool
    tenant_id: str | None = None


# =============================================================================
# Permission and error schemas
# =============================================================================


class PermissionCheckResponse(BaseModel):
    role: str
    module: Module
    action: Action
    allowed: bool


class GrantOutput(BaseModel):
    enabled: bool
    create: bool
    read: bool
    update: bool
    delete: bool


class PermissionMatrixResponse(BaseModel):
    """Effective grants for the caller, so the UI can hide controls up front."""

    role: str
    tenant_id: str | None = None
    grants: dict[Module, GrantOutput]


class ErrorResponse(BaseModel):
    """Error body rendered for every AppException."""

    detail: str
    kind: str
