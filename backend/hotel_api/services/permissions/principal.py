"""
Principal - the acting identity for an operation.

Built per request from verified token claims. Never persisted here.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Mapping

from hotel_shared.config.constants import Module, Role
from hotel_shared.config.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PermissionOverride:
    """
    Sparse per-user adjustment of one module's grant.

    ``None`` means "keep the role preset" for that flag.
    """

    enabled: bool | None = None
    create: bool | None = None
    read: bool | None = None
    update: bool | None = None
    delete: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PermissionOverride":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key in known and isinstance(value, bool):
                values[key] = value
        return cls(**values)


@dataclass(frozen=True)
class Principal:
    """
    Authenticated actor.

    ``role`` is kept as the raw claim string so an unknown role can reach the
    permission matrix and be denied there instead of failing to parse.
    """

    role: str
    tenant_id: str | None = None
    display_name: str = ""
    user_id: str | None = None
    permission_overrides: Mapping[Module, PermissionOverride] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def is_partner(self) -> bool:
        return self.role == Role.PARTNER

    @property
    def known_role(self) -> Role | None:
        try:
            return Role(self.role)
        except ValueError:
            return None


def parse_overrides(raw: Any) -> Mapping[Module, PermissionOverride]:
    """Turn a ``perms`` claim into typed overrides. Unknown modules are dropped."""
    if not isinstance(raw, Mapping):
        return MappingProxyType({})

    overrides: dict[Module, PermissionOverride] = {}
    for module_name, flags in raw.items():
        try:
            module = Module(module_name)
        except ValueError:
            logger.warning("Ignoring override for unknown module", module=module_name)
            continue
        if isinstance(flags, Mapping):
            overrides[module] = PermissionOverride.from_dict(flags)
    return MappingProxyType(overrides)


def principal_from_claims(claims: Mapping[str, Any]) -> Principal:
    """Build a Principal from verified JWT claims."""
    tenant_id = claims.get("tenant_id")
    return Principal(
        role=str(claims.get("role", "")),
        tenant_id=tenant_id if tenant_id else None,
        display_name=str(claims.get("name", "")),
        user_id=str(claims["sub"]) if claims.get("sub") not in (None, "") else None,
        permission_overrides=parse_overrides(claims.get("perms")),
    )


__all__ = [
    "PermissionOverride",
    "Principal",
    "parse_overrides",
    "principal_from_claims",
]
