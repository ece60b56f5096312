"""
Permission Matrix.

Declarative role -> module -> grant presets, merged with a principal's
sparse overrides at lookup time. Unknown roles, modules or actions are
denied. The presets are immutable after import and safe to read from any
thread.

Usage:
    from hotel_api.services.permissions.matrix import check, require

    if check(principal, Module.ORDERS, Action.UPDATE):
        ...
    require(principal, Module.SUPPLY_CHAIN, Action.DELETE)  # raises PermissionDeniedError
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping

from hotel_shared.config.constants import Action, Module, Role
from hotel_shared.config.logging import audit_permission_event
from hotel_shared.utils.exceptions import PermissionDeniedError

from .principal import PermissionOverride, Principal


@dataclass(frozen=True)
class PermissionGrant:
    """CRUD flags for one module. Every flag reads as False when disabled."""

    enabled: bool = False
    create: bool = False
    read: bool = False
    update: bool = False
    delete: bool = False

    def allows(self, action: Action) -> bool:
        return self.enabled and bool(getattr(self, action.value))

    def merged(self, override: PermissionOverride | None) -> "PermissionGrant":
        if override is None:
            return self
        changes = {
            name: value
            for name, value in (
                ("enabled", override.enabled),
                ("create", override.create),
                ("read", override.read),
                ("update", override.update),
                ("delete", override.delete),
            )
            if value is not None
        }
        return replace(self, **changes) if changes else self


DISABLED = PermissionGrant()
FULL = PermissionGrant(enabled=True, create=True, read=True, update=True, delete=True)
READ_ONLY = PermissionGrant(enabled=True, read=True)
NO_DELETE = PermissionGrant(enabled=True, create=True, read=True, update=True)


def _preset(**grants: PermissionGrant) -> Mapping[Module, PermissionGrant]:
    """Complete a preset: every module absent from ``grants`` is disabled."""
    return MappingProxyType({
        module: grants.get(module.value, DISABLED) for module in Module
    })


ROLE_PRESETS: Mapping[Role, Mapping[Module, PermissionGrant]] = MappingProxyType({
    Role.ADMIN: _preset(**{module.value: FULL for module in Module}),
    Role.MAINTAINER: _preset(**{module.value: FULL for module in Module}),
    Role.STAFF: _preset(
        dashboard=READ_ONLY,
        rooms=NO_DELETE,
        orders=NO_DELETE,
        financial_hub=READ_ONLY,
    ),
    Role.PARTNER: _preset(
        dashboard=READ_ONLY,
        orders=READ_ONLY,
        supply_chain=FULL,
        financial_hub=READ_ONLY,
        images=FULL,
    ),
})


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def effective_grant(principal: Principal, module: Module | str) -> PermissionGrant:
    """Preset for the principal's role at ``module`` with overrides applied."""
    role = principal.known_role
    module_key = _coerce(Module, module)
    if role is None or module_key is None:
        return DISABLED
    preset = ROLE_PRESETS[role].get(module_key, DISABLED)
    return preset.merged(principal.permission_overrides.get(module_key))


def effective_grants(principal: Principal) -> dict[Module, PermissionGrant]:
    """Full effective matrix, for screens that hide controls up front."""
    return {module: effective_grant(principal, module) for module in Module}


def check(principal: Principal, module: Module | str, action: Action | str) -> bool:
    """Pure query: may ``principal`` perform ``action`` on ``module``?"""
    action_key = _coerce(Action, action)
    if action_key is None:
        return False
    return effective_grant(principal, module).allows(action_key)


def require(principal: Principal, module: Module | str, action: Action | str) -> None:
    """Raise PermissionDeniedError unless ``check`` allows the action."""
    if check(principal, module, action):
        return
    module_name = module.value if isinstance(module, Module) else str(module)
    action_name = action.value if isinstance(action, Action) else str(action)
    audit_permission_event(
        role=principal.role,
        module=module_name,
        action=action_name,
        user_id=principal.user_id,
    )
    raise PermissionDeniedError(module_name, action_name, role=principal.role)
