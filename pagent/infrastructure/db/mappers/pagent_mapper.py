from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Mapping

from pagent.domain.entities.credit import CreditAssignment, RecurringCreditConfig
from pagent.domain.entities.permission import CreditUsage, SpendPermission
from pagent.domain.entities.receipt import Receipt
from pagent.domain.entities.reward import Promo, RewardBalance
from pagent.domain.entities.user import User


def _as_str(value: Any) -> str:
    return str(value)


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _as_metadata(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value) if value else {}
    return dict(value)


def map_row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=_as_str(row["id"]),
        smart_account=row["smart_account"],
        eoa_wallet_address=row.get("eoa_wallet_address"),
        card_id=row.get("card_id"),
        is_active=bool(row["is_active"]),
        metadata=_as_metadata(row.get("metadata")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def map_row_to_permission(row: Mapping[str, Any]) -> SpendPermission:
    return SpendPermission(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        token_address=row["token_address"],
        cap_amount=_as_decimal(row["cap_amount"]),
        period_seconds=int(row["period_seconds"]),
        start_timestamp=row["start_timestamp"],
        end_timestamp=row["end_timestamp"],
        spender_address=row["spender_address"],
        permission_signature=row["permission_signature"],
        status=row["status"],
        metadata=_as_metadata(row.get("metadata")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def map_row_to_credit_usage(row: Mapping[str, Any]) -> CreditUsage:
    return CreditUsage(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        permission_id=_as_str(row["permission_id"]),
        period_start=row["period_start"],
        period_end=row["period_end"],
        total_limit=_as_decimal(row["total_limit"]),
        used_amount=_as_decimal(row["used_amount"]),
        transaction_count=int(row.get("transaction_count") or 0),
        metadata=_as_metadata(row.get("metadata")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def map_row_to_receipt(row: Mapping[str, Any]) -> Receipt:
    return Receipt(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        card_id=row.get("card_id"),
        auth_id=row["auth_id"],
        amount=_as_decimal(row["amount"]),
        merchant=row["merchant"],
        chain_tx=row.get("chain_tx"),
        status=row["status"],
        metadata=_as_metadata(row.get("metadata")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def map_row_to_recurring_config(row: Mapping[str, Any]) -> RecurringCreditConfig:
    return RecurringCreditConfig(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        amount=_as_decimal(row["amount"]),
        period_seconds=int(row["period_seconds"]),
        next_assignment=row["next_assignment"],
        status=row["status"],
        description=row.get("description") or "",
        metadata=_as_metadata(row.get("metadata")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def map_row_to_credit_assignment(row: Mapping[str, Any]) -> CreditAssignment:
    return CreditAssignment(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        amount=_as_decimal(row["amount"]),
        credit_type=row["credit_type"],
        assigned_at=row["assigned_at"],
        expires_at=row.get("expires_at"),
        status=row["status"],
        description=row.get("description") or "",
        metadata=_as_metadata(row.get("metadata")),
    )


def map_row_to_reward_balance(row: Mapping[str, Any]) -> RewardBalance:
    return RewardBalance(
        user_id=_as_str(row["user_id"]),
        cashback_balance=_as_decimal(row["cashback_balance"]),
        points_balance=int(row["points_balance"] or 0),
        updated_at=row.get("updated_at"),
    )


def map_row_to_promo(row: Mapping[str, Any]) -> Promo:
    return Promo(
        id=_as_str(row["id"]),
        title=row["title"],
        description=row.get("description") or "",
        reward_type=row["reward_type"],
        reward_value=_as_decimal(row["reward_value"]),
        conditions=row.get("conditions") or "",
        expires_at=row.get("expires_at"),
        status=row["status"],
        priority=int(row.get("priority") or 0),
    )
