from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .envelope import CreditUsageResponse, PermissionResponse


class PermissionTermsRequest(BaseModel):
    token: str = Field(..., min_length=1)
    cap: Decimal
    period: int
    start: datetime
    end: datetime
    spender: str = Field(..., min_length=1)


class CreatePermissionRequest(BaseModel):
    permission: PermissionTermsRequest
    signature: str = Field(..., min_length=1)
    smart_account: str = Field(..., min_length=1)


class CreatePermissionResponse(BaseModel):
    success: bool = True
    permission_id: str
    user_id: str


class RevokePermissionRequest(BaseModel):
    permission_id: str = Field(..., min_length=1)
    smart_account: str = Field(..., min_length=1)


class RevokePermissionResponse(BaseModel):
    success: bool = True
    permission_id: str
    message: str


class ListPermissionsResponse(BaseModel):
    success: bool = True
    permissions: list[PermissionResponse]


class CreditsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    permissions: list[PermissionResponse]
    active_permission: PermissionResponse | None = Field(default=None, alias="activePermission")
    credit_limit: float = Field(..., alias="creditLimit")
    used_amount: float = Field(..., alias="usedAmount")
    remaining_amount: float = Field(..., alias="remainingAmount")


class CreateCreditPermissionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token_address: str | None = Field(default=None, alias="tokenAddress")
    cap_amount: Decimal | None = Field(default=None, alias="capAmount")
    period_seconds: int | None = Field(default=None, alias="periodSeconds")
    spender_address: str | None = Field(default=None, alias="spenderAddress")
    permission_signature: str | None = Field(default=None, alias="permissionSignature")
    mode: str = "recurring"


class CreateCreditPermissionData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    permission: PermissionResponse
    usage: CreditUsageResponse
    mode: str
    final_amount: float = Field(..., alias="finalAmount")
    metadata: dict[str, Any]


class CreateCreditPermissionResponse(BaseModel):
    success: bool = True
    data: CreateCreditPermissionData
    message: str
