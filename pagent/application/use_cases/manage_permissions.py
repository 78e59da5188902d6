from __future__ import annotations

import logging
from decimal import Decimal

from pagent.application.dto.permissions import (
    CreatePermissionInput,
    CreatePermissionOutput,
    RevokePermissionInput,
)
from pagent.application.dto.siwe import UpsertWalletUserInput
from pagent.application.ports.ledger_port import LedgerPort
from pagent.application.ports.user_directory_port import UserDirectoryPort
from pagent.domain.entities.permission import SpendPermission
from pagent.domain.exceptions import PermissionNotFoundError, UserNotFoundError, ValidationError

from .common import new_id, normalize_address, utcnow
from .upsert_wallet_user import UpsertWalletUserUseCase


logger = logging.getLogger(__name__)


class CreatePermissionUseCase:
    def __init__(
        self,
        *,
        upsert_wallet_user: UpsertWalletUserUseCase,
        ledger_port: LedgerPort,
    ):
        self._upsert_wallet_user = upsert_wallet_user
        self._ledger_port = ledger_port

    def execute(self, command: CreatePermissionInput) -> CreatePermissionOutput:
        terms = command.permission
        if not command.smart_account:
            raise ValidationError("smart_account is required.")
        if not command.signature:
            raise ValidationError("signature is required.")
        if not terms.token or not terms.spender:
            raise ValidationError("permission token and spender are required.")
        if terms.cap <= 0:
            raise ValidationError("permission cap must be positive.")
        if terms.period <= 0:
            raise ValidationError("permission period must be positive.")
        if terms.end <= terms.start:
            raise ValidationError("permission end must be after start.")

        user = self._upsert_wallet_user.execute(
            UpsertWalletUserInput(address=command.smart_account)
        ).user

        def _tx(ledger: LedgerPort) -> SpendPermission:
            now = utcnow()
            revoked = ledger.revoke_active_permissions(user_id=user.id, revoked_at=now)
            permission = ledger.create_permission(
                permission_id=new_id(),
                user_id=user.id,
                token_address=normalize_address(terms.token),
                cap_amount=terms.cap,
                period_seconds=terms.period,
                start_timestamp=terms.start,
                end_timestamp=terms.end,
                spender_address=normalize_address(terms.spender),
                permission_signature=command.signature,
                metadata={"revoked_previous": revoked},
                created_at=now,
            )
            ledger.create_usage(
                usage_id=new_id(),
                user_id=user.id,
                permission_id=permission.id,
                period_start=terms.start,
                period_end=terms.end,
                total_limit=terms.cap,
                used_amount=Decimal("0"),
                created_at=now,
            )
            return permission

        permission = self._ledger_port.execute_in_transaction(_tx)
        logger.info("permissions: created permission_id=%s user_id=%s", permission.id, user.id)
        return CreatePermissionOutput(permission_id=permission.id, user_id=user.id)


class RevokePermissionUseCase:
    def __init__(self, *, user_directory_port: UserDirectoryPort, ledger_port: LedgerPort):
        self._user_directory_port = user_directory_port
        self._ledger_port = ledger_port

    def execute(self, command: RevokePermissionInput) -> SpendPermission:
        if not command.permission_id:
            raise ValidationError("permission_id is required.")
        user = self._user_directory_port.find_user_by_addresses(
            addresses=[normalize_address(command.smart_account)]
        )
        if user is None:
            raise UserNotFoundError("User not found.")

        permission = self._ledger_port.get_permission(permission_id=command.permission_id)
        if permission is None or permission.user_id != user.id:
            raise PermissionNotFoundError("Permission not found.")

        self._ledger_port.revoke_permission(permission_id=permission.id, revoked_at=utcnow())
        logger.info("permissions: revoked permission_id=%s user_id=%s", permission.id, user.id)
        return permission


class ListPermissionsUseCase:
    def __init__(self, *, user_directory_port: UserDirectoryPort, ledger_port: LedgerPort):
        self._user_directory_port = user_directory_port
        self._ledger_port = ledger_port

    def execute(self, *, smart_account: str) -> list[SpendPermission]:
        user = self._user_directory_port.find_user_by_addresses(
            addresses=[normalize_address(smart_account)]
        )
        if user is None:
            return []
        return self._ledger_port.list_permissions(user_id=user.id)
