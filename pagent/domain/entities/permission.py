from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal


PermissionStatus = Literal["active", "revoked", "expired"]


@dataclass(frozen=True)
class SpendPermission:
    id: str
    user_id: str
    token_address: str
    cap_amount: Decimal
    period_seconds: int
    start_timestamp: datetime
    end_timestamp: datetime
    spender_address: str
    permission_signature: str
    status: PermissionStatus
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CreditUsage:
    id: str
    user_id: str
    permission_id: str
    period_start: datetime
    period_end: datetime
    total_limit: Decimal
    used_amount: Decimal
    transaction_count: int
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


def is_permission_active(permission: SpendPermission, now: datetime) -> bool:
    return (
        permission.status == "active"
        and permission.start_timestamp <= now
        and permission.end_timestamp >= now
    )
