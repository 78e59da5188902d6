from __future__ import annotations

import logging

from pagent.application.dto.siwe import UpsertWalletUserInput, UpsertWalletUserOutput
from pagent.application.ports.user_directory_port import UserDirectoryPort
from pagent.domain.exceptions import UserAlreadyExistsError, ValidationError

from .common import new_id, normalize_address, utcnow


logger = logging.getLogger(__name__)


class UpsertWalletUserUseCase:
    def __init__(self, *, user_directory_port: UserDirectoryPort):
        self._user_directory_port = user_directory_port

    def execute(self, command: UpsertWalletUserInput) -> UpsertWalletUserOutput:
        address = normalize_address(command.address)
        if not address:
            raise ValidationError("address is required.")
        eoa_address = normalize_address(command.eoa_address) if command.eoa_address else None

        def _tx(port: UserDirectoryPort) -> UpsertWalletUserOutput:
            return self._upsert(port, address=address, eoa_address=eoa_address, command=command)

        try:
            return self._user_directory_port.execute_in_transaction(_tx)
        except UserAlreadyExistsError:
            # Lost an insert race on the unique address index; the row exists now.
            logger.info("upsert_user: concurrent insert, retrying as update address=%s", address)
            return self._user_directory_port.execute_in_transaction(_tx)

    @staticmethod
    def _upsert(
        port: UserDirectoryPort,
        *,
        address: str,
        eoa_address: str | None,
        command: UpsertWalletUserInput,
    ) -> UpsertWalletUserOutput:
        now = utcnow()
        keys = [address] if eoa_address is None else [address, eoa_address]
        existing = port.find_user_by_addresses(addresses=keys)

        if existing is None:
            user = port.create_user(
                user_id=new_id(),
                smart_account=address,
                eoa_wallet_address=eoa_address,
                metadata={**command.signup_metadata, **command.metadata},
                created_at=now,
            )
            logger.info("upsert_user: created user_id=%s address=%s", user.id, address)
            return UpsertWalletUserOutput(user=user, is_new_user=True)

        user = port.update_user(
            user_id=existing.id,
            metadata={**existing.metadata, **command.metadata},
            eoa_wallet_address=eoa_address or existing.eoa_wallet_address,
            updated_at=now,
        )
        return UpsertWalletUserOutput(user=user, is_new_user=False)
