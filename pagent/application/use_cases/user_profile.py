from __future__ import annotations

import logging
import re
import secrets
from decimal import Decimal

from pagent.application.dto.profile import CardOutput, ClaimCardInput, UpdateProfileInput
from pagent.application.ports.user_directory_port import UserDirectoryPort
from pagent.domain.entities.user import User
from pagent.domain.exceptions import UserNotFoundError, ValidationError

from .common import normalize_address, utcnow


logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[a-f0-9]{40}$")


class GetUserProfileUseCase:
    def __init__(self, *, user_directory_port: UserDirectoryPort):
        self._user_directory_port = user_directory_port

    def execute(self, *, user_id: str) -> User:
        user = self._user_directory_port.get_user_by_id(user_id=user_id)
        if user is None:
            raise UserNotFoundError("User not found.")
        return user


class UpdateUserProfileUseCase:
    def __init__(self, *, user_directory_port: UserDirectoryPort):
        self._user_directory_port = user_directory_port

    def execute(self, command: UpdateProfileInput) -> User:
        if command.metadata is None and command.eoa_wallet_address is None:
            raise ValidationError("Nothing to update.")

        eoa_address = None
        if command.eoa_wallet_address is not None:
            eoa_address = normalize_address(command.eoa_wallet_address)
            if not _ADDRESS_RE.match(eoa_address):
                raise ValidationError("eoa_wallet_address must be a 0x-prefixed 20-byte hex address.")

        def _tx(port: UserDirectoryPort) -> User:
            user = port.get_user_by_id(user_id=command.user_id)
            if user is None:
                raise UserNotFoundError("User not found.")
            return port.update_user(
                user_id=user.id,
                metadata={**user.metadata, **(command.metadata or {})},
                eoa_wallet_address=eoa_address or user.eoa_wallet_address,
                updated_at=utcnow(),
            )

        return self._user_directory_port.execute_in_transaction(_tx)


class ListCardsUseCase:
    def __init__(self, *, user_directory_port: UserDirectoryPort):
        self._user_directory_port = user_directory_port

    def execute(self, *, user_id: str) -> list[CardOutput]:
        user = self._user_directory_port.get_user_by_id(user_id=user_id)
        if user is None:
            raise UserNotFoundError("User not found.")
        if not user.card_id:
            return []
        return [build_card_output(user)]


class ClaimCardUseCase:
    def __init__(self, *, user_directory_port: UserDirectoryPort):
        self._user_directory_port = user_directory_port

    def execute(self, command: ClaimCardInput) -> CardOutput:
        if command.initial_limit <= 0:
            raise ValidationError("initialLimit must be positive.")

        def _tx(port: UserDirectoryPort) -> User:
            user = port.get_user_by_id(user_id=command.user_id)
            if user is None:
                raise UserNotFoundError("User not found.")
            if user.card_id:
                return user
            card_id = f"card_{secrets.token_hex(12)}"
            return port.assign_card_id(
                user_id=user.id,
                card_id=card_id,
                metadata={
                    **user.metadata,
                    "card": {"initial_limit": str(command.initial_limit), "status": "active"},
                },
                updated_at=utcnow(),
            )

        user = self._user_directory_port.execute_in_transaction(_tx)
        logger.info("cards: card claimed user_id=%s card_id=%s", user.id, user.card_id)
        return build_card_output(user)


def build_card_output(user: User) -> CardOutput:
    card = user.metadata.get("card") or {}
    initial_limit = card.get("initial_limit")
    return CardOutput(
        card_id=user.card_id or "",
        user_id=user.id,
        initial_limit=Decimal(str(initial_limit)) if initial_limit is not None else None,
        status=card.get("status", "active"),
    )
