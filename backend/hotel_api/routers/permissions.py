"""
Permissions router: lets the UI ask what the caller may do.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from hotel_shared.config.constants import Action, Module
from hotel_shared.utils.schemas import (
    GrantOutput,
    PermissionCheckResponse,
    PermissionMatrixResponse,
)

from hotel_api.core.dependencies import get_principal
from hotel_api.services.permissions import Principal, check, effective_grants

router = APIRouter(prefix="/api/permissions", tags=["permissions"])


@router.get("/check", response_model=PermissionCheckResponse)
def check_permission(
    module: Module,
    action: Action,
    principal: Principal = Depends(get_principal),
) -> PermissionCheckResponse:
    return PermissionCheckResponse(
        role=principal.role,
        module=module,
        action=action,
        allowed=check(principal, module, action),
    )


@router.get("/me", response_model=PermissionMatrixResponse)
def my_permissions(principal: Principal = Depends(get_principal)) -> PermissionMatrixResponse:
    grants = effective_grants(principal)
    return PermissionMatrixResponse(
        role=principal.role,
        tenant_id=principal.tenant_id,
        grants={module: GrantOutput(**asdict(grant)) for module, grant in grants.items()},
    )
