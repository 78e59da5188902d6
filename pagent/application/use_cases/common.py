from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4


# USDC on Base.
DEFAULT_TOKEN_ADDRESS = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
PLACEHOLDER_SPENDER_ADDRESS = "0x" + "0" * 40
PLACEHOLDER_PERMISSION_SIGNATURE = "0x" + "0" * 64
ONE_TIME_CREDIT_SECONDS = 30 * 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def normalize_address(address: str) -> str:
    return address.strip().lower()
