from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SiweAuthRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    timestamp: int | None = None
    client_info: dict[str, Any] | None = Field(default=None, alias="clientInfo")


class SiweAuthUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    address: str
    is_new_user: bool = Field(..., alias="isNewUser")


class SiweAuthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    token: str
    expires_at: datetime = Field(..., alias="expiresAt")
    user: SiweAuthUser
