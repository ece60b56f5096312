"""
Permission services: principal, tenancy guard, permission matrix.

Usage:
    from hotel_api.services.permissions import PermissionContext, principal_from_claims

    ctx = PermissionContext(principal_from_claims(claims))
    ctx.require(Module.ORDERS, Action.UPDATE, tenant_id=order.tenant_id)
"""

from .principal import (
    PermissionOverride,
    Principal,
    parse_overrides,
    principal_from_claims,
)
from .matrix import (
    PermissionGrant,
    ROLE_PRESETS,
    check,
    require,
    effective_grant,
    effective_grants,
)
from .tenancy import scope, narrow, ensure_access
from .context import PermissionContext

__all__ = [
    # principal
    "PermissionOverride",
    "Principal",
    "parse_overrides",
    "principal_from_claims",
    # matrix
    "PermissionGrant",
    "ROLE_PRESETS",
    "check",
    "require",
    "effective_grant",
    "effective_grants",
    # tenancy
    "scope",
    "narrow",
    "ensure_access",
    # context
    "PermissionContext",
]
