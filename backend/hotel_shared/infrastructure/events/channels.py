"""
Redis Channel Naming.
"""

from __future__ import annotations

import re

_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")


def channel_order_changes(deployment_id: str) -> str:
    """Channel every API process of one deployment relays committed transitions on."""
    if not isinstance(deployment_id, str) or not _SAFE_SEGMENT.match(deployment_id):
        raise ValueError(f"deployment_id must be a non-empty identifier, got {deployment_id!r}")
    return f"deployment:{deployment_id}:orders"
