from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .envelope import CreditAssignmentResponse, PermissionResponse, RecurringConfigResponse


class AssignCreditsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_wallet_address: str = Field(..., min_length=1, alias="userWalletAddress")
    credit_type: Literal["recurring", "topup", "one-time"] = Field(..., alias="creditType")
    amount: Decimal
    period_seconds: int | None = Field(default=None, alias="periodSeconds")
    description: str | None = None


class AssignCreditsData(BaseModel):
    credit_type: str
    amount: float
    permission: PermissionResponse | None = None
    assignment: CreditAssignmentResponse | None = None
    recurring_config: RecurringConfigResponse | None = None


class AssignCreditsResponse(BaseModel):
    success: bool = True
    data: AssignCreditsData
    message: str


class UserCreditsReportData(BaseModel):
    user_id: str
    wallet_address: str
    assignments: list[CreditAssignmentResponse]
    recurring_configs: list[RecurringConfigResponse]


class UserCreditsReportResponse(BaseModel):
    success: bool = True
    data: UserCreditsReportData
