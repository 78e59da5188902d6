from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pagent.domain.entities.permission import CreditUsage, SpendPermission


CreditPermissionMode = Literal["recurring", "topup"]


@dataclass(frozen=True)
class PermissionTerms:
    token: str
    cap: Decimal
    period: int
    start: datetime
    end: datetime
    spender: str


@dataclass(frozen=True)
class CreatePermissionInput:
    smart_account: str
    permission: PermissionTerms
    signature: str


@dataclass(frozen=True)
class CreatePermissionOutput:
    permission_id: str
    user_id: str


@dataclass(frozen=True)
class RevokePermissionInput:
    smart_account: str
    permission_id: str


@dataclass(frozen=True)
class CreditsOverview:
    permissions: list[SpendPermission]
    active_permission: SpendPermission | None
    usage: CreditUsage | None
    credit_limit: Decimal
    used_amount: Decimal
    remaining_amount: Decimal


@dataclass(frozen=True)
class CreateCreditPermissionInput:
    user_id: str
    token_address: str | None
    cap_amount: Decimal | None
    period_seconds: int | None
    spender_address: str | None
    permission_signature: str | None
    mode: CreditPermissionMode = "recurring"


@dataclass(frozen=True)
class CreateCreditPermissionOutput:
    permission: SpendPermission
    usage: CreditUsage
    mode: CreditPermissionMode
