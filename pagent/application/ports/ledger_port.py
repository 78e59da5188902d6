from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Protocol, TypeVar

from pagent.application.dto.receipts import ReceiptFilters
from pagent.domain.entities.credit import CreditAssignment, CreditType, RecurringCreditConfig
from pagent.domain.entities.permission import CreditUsage, SpendPermission
from pagent.domain.entities.receipt import Receipt, ReceiptStatus
from pagent.domain.entities.reward import Promo, RewardBalance


TLedgerResult = TypeVar("TLedgerResult")


class LedgerPort(Protocol):
    def execute_in_transaction(self, fn: Callable[[LedgerPort], TLedgerResult]) -> TLedgerResult:
        ...

    # spend permissions
    def list_permissions(self, *, user_id: str) -> list[SpendPermission]:
        ...

    def get_permission(self, *, permission_id: str) -> SpendPermission | None:
        ...

    def get_active_permission(self, *, user_id: str, now: datetime) -> SpendPermission | None:
        ...

    def revoke_active_permissions(self, *, user_id: str, revoked_at: datetime) -> int:
        ...

    def revoke_permission(self, *, permission_id: str, revoked_at: datetime) -> None:
        ...

    def create_permission(
        self,
        *,
        permission_id: str,
        user_id: str,
        token_address: str,
        cap_amount: Decimal,
        period_seconds: int,
        start_timestamp: datetime,
        end_timestamp: datetime,
        spender_address: str,
        permission_signature: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ) -> SpendPermission:
        ...

    def update_permission_cap(
        self, *, permission_id: str, cap_amount: Decimal, updated_at: datetime
    ) -> SpendPermission:
        ...

    # credit usage
    def get_usage_for_permission(self, *, permission_id: str) -> CreditUsage | None:
        ...

    def create_usage(
        self,
        *,
        usage_id: str,
        user_id: str,
        permission_id: str,
        period_start: datetime,
        period_end: datetime,
        total_limit: Decimal,
        used_amount: Decimal,
        created_at: datetime,
    ) -> CreditUsage:
        ...

    def update_usage_limit(
        self, *, usage_id: str, total_limit: Decimal, updated_at: datetime
    ) -> CreditUsage:
        ...

    def reserve_usage(
        self, *, usage_id: str, amount: Decimal, updated_at: datetime
    ) -> CreditUsage | None:
        """Adds `amount` to the used amount atomically.

        Returns None, leaving the row untouched, when the result would exceed
        the total limit.
        """
        ...

    def release_usage(self, *, usage_id: str, amount: Decimal, updated_at: datetime) -> CreditUsage:
        ...

    # receipts
    def get_receipt_by_auth_id(self, *, auth_id: str) -> Receipt | None:
        ...

    def create_receipt(
        self,
        *,
        receipt_id: str,
        user_id: str,
        card_id: str | None,
        auth_id: str,
        amount: Decimal,
        merchant: str,
        status: ReceiptStatus,
        metadata: dict[str, Any],
        created_at: datetime,
    ) -> Receipt:
        """Raises DuplicateEventError when the auth id was already recorded."""
        ...

    def update_receipt(
        self,
        *,
        receipt_id: str,
        status: ReceiptStatus,
        chain_tx: str | None,
        metadata: dict[str, Any],
        updated_at: datetime,
    ) -> Receipt:
        ...

    def list_receipts(
        self,
        *,
        user_id: str,
        filters: ReceiptFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[Receipt], int]:
        ...

    def list_receipt_amounts_by_status(self, *, user_id: str) -> list[tuple[ReceiptStatus, Decimal]]:
        ...

    # rewards
    def get_user_receipt(self, *, user_id: str, receipt_id: str) -> Receipt | None:
        ...

    def apply_receipt_cashback(
        self, *, user_id: str, receipt_id: str, cashback: dict[str, Any], updated_at: datetime
    ) -> Receipt | None:
        """Stores `cashback` on a completed receipt that has none yet.

        Returns None, leaving the receipt untouched, when it is not completed or
        already carries cashback.
        """
        ...

    def credit_reward_balance(
        self, *, user_id: str, cashback_amount: Decimal, updated_at: datetime
    ) -> RewardBalance:
        ...

    def get_reward_balance(self, *, user_id: str) -> RewardBalance | None:
        ...

    def list_cashback_receipts(self, *, user_id: str, limit: int) -> list[Receipt]:
        ...

    def list_active_promos(self, *, now: datetime, limit: int) -> list[Promo]:
        ...

    # recurring credits and assignments
    def list_active_recurring_configs(self) -> list[RecurringCreditConfig]:
        ...

    def list_recurring_configs_for_user(self, *, user_id: str) -> list[RecurringCreditConfig]:
        ...

    def create_recurring_config(
        self,
        *,
        config_id: str,
        user_id: str,
        amount: Decimal,
        period_seconds: int,
        next_assignment: datetime,
        description: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ) -> RecurringCreditConfig:
        ...

    def update_recurring_next_assignment(
        self, *, config_id: str, next_assignment: datetime, updated_at: datetime
    ) -> None:
        ...

    def create_assignment(
        self,
        *,
        assignment_id: str,
        user_id: str,
        amount: Decimal,
        credit_type: CreditType,
        assigned_at: datetime,
        expires_at: datetime | None,
        description: str,
        metadata: dict[str, Any],
    ) -> CreditAssignment:
        ...

    def list_assignments_for_user(self, *, user_id: str) -> list[CreditAssignment]:
        ...
