"""
Tenancy Guard.

Partners only ever see and mutate rows of their own tenant. Every other role
works on the full dataset, subject to the permission matrix. A partner
principal without a tenant id is refused outright.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Select

from hotel_shared.config.logging import audit_tenancy_event
from hotel_shared.utils.exceptions import TenancyViolationError

from .principal import Principal


def scope(principal: Principal) -> str | None:
    """
    Tenant the principal is confined to, or None for unrestricted roles.

    Raises:
        TenancyViolationError: partner principal without a tenant id.
    """
    if not principal.is_partner:
        return None
    if not principal.tenant_id:
        audit_tenancy_event(
            "MISSING_TENANT",
            role=principal.role,
            principal_tenant_id=None,
            user_id=principal.user_id,
            reason="partner principal carries no tenant id",
        )
        raise TenancyViolationError("partner principal has no tenant", role=principal.role)
    return principal.tenant_id


def narrow(query: Select, principal: Principal, model: Any) -> Select:
    """
    Add ``model.tenant_id == principal.tenant_id`` for partners.

    Models without a tenant column cannot be narrowed and are refused for
    partners rather than returned unfiltered.
    """
    tenant_id = scope(principal)
    if tenant_id is None:
        return query
    column = getattr(model, "tenant_id", None)
    if column is None:
        audit_tenancy_event(
            "UNSCOPED_MODEL",
            role=principal.role,
            principal_tenant_id=tenant_id,
            user_id=principal.user_id,
            reason=f"{getattr(model, '__name__', model)} has no tenant column",
        )
        raise TenancyViolationError("resource is not tenant-scoped", role=principal.role)
    return query.where(column == tenant_id)


def ensure_access(
    principal: Principal,
    resource_tenant_id: str | None,
    resource: str = "order",
    resource_id: Any = None,
) -> None:
    """
    Check a single already-loaded row against the principal's scope.

    House rows (tenant None) are outside every partner's scope.
    """
    tenant_id = scope(principal)
    if tenant_id is None or resource_tenant_id == tenant_id:
        return
    audit_tenancy_event(
        "TENANT_MISMATCH",
        role=principal.role,
        principal_tenant_id=tenant_id,
        resource_tenant_id=resource_tenant_id,
        user_id=principal.user_id,
        resource=resource,
        resource_id=resource_id,
    )
    raise TenancyViolationError(
        f"{resource} belongs to another tenant",
        role=principal.role,
        resource_id=resource_id,
    )
