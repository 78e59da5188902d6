from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pagent.domain.entities.siwe import SiweMessage
from pagent.domain.entities.user import User


SiweFailureReason = Literal[
    "MalformedMessage",
    "UnsupportedChain",
    "NotYetValid",
    "Expired",
    "SignatureMismatch",
    "VerifierUnavailable",
    "NonceReused",
]
VerificationMethod = Literal["eoa", "contract"]


@dataclass(frozen=True)
class SiweVerificationResult:
    success: bool
    address: str | None = None
    reason: SiweFailureReason | None = None
    method: VerificationMethod | None = None
    message: SiweMessage | None = None

    @classmethod
    def failed(cls, reason: SiweFailureReason, message: SiweMessage | None = None) -> SiweVerificationResult:
        return cls(success=False, reason=reason, message=message)


@dataclass(frozen=True)
class SessionClaims:
    wallet_address: str
    user_id: str
    role: str
    expires_at: datetime


@dataclass(frozen=True)
class UpsertWalletUserInput:
    address: str
    metadata: dict[str, Any] = field(default_factory=dict)
    eoa_address: str | None = None
    # Applied only when the user is created.
    signup_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UpsertWalletUserOutput:
    user: User
    is_new_user: bool


@dataclass(frozen=True)
class LoginSiweInput:
    message: str
    signature: str
    timestamp: int | None = None
    client_info: dict[str, Any] | None = None


@dataclass(frozen=True)
class LoginSiweOutput:
    token: str
    expires_at: datetime
    user_id: str
    address: str
    is_new_user: bool
    method: VerificationMethod
