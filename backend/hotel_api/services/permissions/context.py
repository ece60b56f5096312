"""
Permission Context - main entry point for authorization in services.

Bundles a principal with the tenancy guard and the permission matrix.
Tenancy is checked first: a partner without a tenant is refused before any
grant is consulted.

Usage:
    ctx = PermissionContext(principal)

    ctx.require(Module.ORDERS, Action.UPDATE, tenant_id=order.tenant_id)
    query = ctx.filter_query(select(OrderRow), OrderRow)
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Select

from hotel_shared.config.constants import Action, Module

from . import matrix, tenancy
from .principal import Principal

# Sentinel: "no row involved", as opposed to a house row with tenant None
_NO_ROW = object()


class PermissionContext:
    """Context for performing permission checks on behalf of one principal."""

    def __init__(self, principal: Principal):
        self._principal = principal

    @property
    def principal(self) -> Principal:
        return self._principal

    @property
    def role(self) -> str:
        return self._principal.role

    @property
    def tenant_scope(self) -> str | None:
        """Tenant the caller is confined to (raises for a tenantless partner)."""
        return tenancy.scope(self._principal)

    def can(self, module: Module | str, action: Action | str) -> bool:
        return matrix.check(self._principal, module, action)

    def require(
        self,
        module: Module,
        action: Action,
        tenant_id: Any = _NO_ROW,
        resource: str = "order",
        resource_id: Any = None,
    ) -> None:
        """
        Refuse unless the caller may act on ``module`` (and on the row's
        tenant, when ``tenant_id`` is given).

        Raises:
            TenancyViolationError, PermissionDeniedError
        """
        if tenant_id is _NO_ROW:
            tenancy.scope(self._principal)
        else:
            tenancy.ensure_access(self._principal, tenant_id, resource, resource_id)
        matrix.require(self._principal, module, action)

    def filter_query(self, query: Select, model: Any) -> Select:
        return tenancy.narrow(query, self._principal, model)
