from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from pagent.application.dto.admin_credits import (
    AssignCreditsInput,
    AssignCreditsOutput,
    UserCreditsReport,
)
from pagent.application.ports.ledger_port import LedgerPort
from pagent.application.ports.user_directory_port import UserDirectoryPort
from pagent.domain.entities.credit import CreditAssignment
from pagent.domain.entities.permission import SpendPermission
from pagent.domain.exceptions import NoActivePermissionError, UserNotFoundError, ValidationError

from .common import (
    DEFAULT_TOKEN_ADDRESS,
    ONE_TIME_CREDIT_SECONDS,
    PLACEHOLDER_PERMISSION_SIGNATURE,
    PLACEHOLDER_SPENDER_ADDRESS,
    new_id,
    normalize_address,
    utcnow,
)


logger = logging.getLogger(__name__)

DEFAULT_RECURRING_PERIOD_SECONDS = 30 * 24 * 60 * 60


class AssignCreditsUseCase:
    def __init__(
        self,
        *,
        user_directory_port: UserDirectoryPort,
        ledger_port: LedgerPort,
        token_address: str = DEFAULT_TOKEN_ADDRESS,
    ):
        self._user_directory_port = user_directory_port
        self._ledger_port = ledger_port
        self._token_address = token_address.lower()

    def execute(self, command: AssignCreditsInput) -> AssignCreditsOutput:
        if not command.wallet_address:
            raise ValidationError("userWalletAddress is required.")
        if command.amount <= 0:
            raise ValidationError("amount must be positive.")
        if command.period_seconds is not None and command.period_seconds <= 0:
            raise ValidationError("periodSeconds must be positive.")

        user = self._user_directory_port.find_user_by_addresses(
            addresses=[normalize_address(command.wallet_address)]
        )
        if user is None:
            raise UserNotFoundError("User not found.")

        if command.credit_type == "recurring":
            handler = self._assign_recurring
        elif command.credit_type == "topup":
            handler = self._assign_topup
        elif command.credit_type == "one-time":
            handler = self._assign_one_time
        else:
            raise ValidationError("creditType must be one of recurring, topup, one-time.")

        output = self._ledger_port.execute_in_transaction(
            lambda ledger: handler(ledger, user.id, command, utcnow())
        )
        logger.info(
            "admin_credits: assigned user_id=%s type=%s amount=%s",
            user.id,
            command.credit_type,
            command.amount,
        )
        return output

    def _assign_recurring(
        self, ledger: LedgerPort, user_id: str, command: AssignCreditsInput, now: datetime
    ) -> AssignCreditsOutput:
        period_seconds = command.period_seconds or DEFAULT_RECURRING_PERIOD_SECONDS
        description = command.description or (
            f"Recurring credits: ${command.amount} every {period_seconds // 86400} days"
        )
        config = ledger.create_recurring_config(
            config_id=new_id(),
            user_id=user_id,
            amount=command.amount,
            period_seconds=period_seconds,
            next_assignment=now + timedelta(seconds=period_seconds),
            description=description,
            metadata={"created_by": "admin"},
            created_at=now,
        )
        permission, assignment = self._grant_one_time(
            ledger,
            user_id,
            command.amount,
            f"Initial recurring credit assignment: {command.description or 'Recurring credits'}",
            now,
            extra_metadata={"recurring_config_id": config.id},
        )
        return AssignCreditsOutput(
            credit_type="recurring",
            amount=command.amount,
            permission=permission,
            assignment=assignment,
            recurring_config=config,
        )

    def _assign_topup(
        self, ledger: LedgerPort, user_id: str, command: AssignCreditsInput, now: datetime
    ) -> AssignCreditsOutput:
        current = ledger.get_active_permission(user_id=user_id, now=now)
        if current is None:
            raise NoActivePermissionError("User has no active permission to top up.")

        permission = ledger.update_permission_cap(
            permission_id=current.id,
            cap_amount=current.cap_amount + command.amount,
            updated_at=now,
        )
        usage = ledger.get_usage_for_permission(permission_id=current.id)
        if usage is not None:
            ledger.update_usage_limit(
                usage_id=usage.id,
                total_limit=usage.total_limit + command.amount,
                updated_at=now,
            )
        assignment = ledger.create_assignment(
            assignment_id=new_id(),
            user_id=user_id,
            amount=command.amount,
            credit_type="topup",
            assigned_at=now,
            expires_at=current.end_timestamp,
            description=command.description or f"Top-up credits: ${command.amount}",
            metadata={"permission_id": current.id, "previous_cap": str(current.cap_amount)},
        )
        return AssignCreditsOutput(
            credit_type="topup",
            amount=command.amount,
            permission=permission,
            assignment=assignment,
        )

    def _assign_one_time(
        self, ledger: LedgerPort, user_id: str, command: AssignCreditsInput, now: datetime
    ) -> AssignCreditsOutput:
        permission, assignment = self._grant_one_time(
            ledger,
            user_id,
            command.amount,
            command.description or f"One-time credits: ${command.amount}",
            now,
        )
        return AssignCreditsOutput(
            credit_type="one-time",
            amount=command.amount,
            permission=permission,
            assignment=assignment,
        )

    def _grant_one_time(
        self,
        ledger: LedgerPort,
        user_id: str,
        amount: Decimal,
        description: str,
        now: datetime,
        extra_metadata: dict | None = None,
    ) -> tuple[SpendPermission, CreditAssignment]:
        end = now + timedelta(seconds=ONE_TIME_CREDIT_SECONDS)
        ledger.revoke_active_permissions(user_id=user_id, revoked_at=now)
        permission = ledger.create_permission(
            permission_id=new_id(),
            user_id=user_id,
            token_address=self._token_address,
            cap_amount=amount,
            period_seconds=ONE_TIME_CREDIT_SECONDS,
            start_timestamp=now,
            end_timestamp=end,
            spender_address=PLACEHOLDER_SPENDER_ADDRESS,
            permission_signature=PLACEHOLDER_PERMISSION_SIGNATURE,
            metadata={"source": "admin_credit", **(extra_metadata or {})},
            created_at=now,
        )
        ledger.create_usage(
            usage_id=new_id(),
            user_id=user_id,
            permission_id=permission.id,
            period_start=now,
            period_end=end,
            total_limit=amount,
            used_amount=Decimal("0"),
            created_at=now,
        )
        assignment = ledger.create_assignment(
            assignment_id=new_id(),
            user_id=user_id,
            amount=amount,
            credit_type="one-time",
            assigned_at=now,
            expires_at=end,
            description=description,
            metadata={"permission_id": permission.id, **(extra_metadata or {})},
        )
        return permission, assignment


class GetUserCreditsReportUseCase:
    def __init__(self, *, user_directory_port: UserDirectoryPort, ledger_port: LedgerPort):
        self._user_directory_port = user_directory_port
        self._ledger_port = ledger_port

    def execute(self, *, wallet_address: str) -> UserCreditsReport:
        user = self._user_directory_port.find_user_by_addresses(
            addresses=[normalize_address(wallet_address)]
        )
        if user is None:
            raise UserNotFoundError("User not found.")
        return UserCreditsReport(
            user_id=user.id,
            wallet_address=user.smart_account,
            assignments=self._ledger_port.list_assignments_for_user(user_id=user.id),
            recurring_configs=self._ledger_port.list_recurring_configs_for_user(user_id=user.id),
        )
