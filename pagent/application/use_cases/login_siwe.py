from __future__ import annotations

import logging

from pagent.application.dto.siwe import LoginSiweInput, LoginSiweOutput, UpsertWalletUserInput
from pagent.application.ports.session_token_port import SessionTokenPort
from pagent.application.ports.user_directory_port import UserDirectoryPort
from pagent.domain.exceptions import (
    MalformedMessageError,
    SiweAuthenticationError,
    UserInactiveError,
)

from .common import normalize_address, utcnow
from .upsert_wallet_user import UpsertWalletUserUseCase
from .verify_siwe_signature import SiweSignatureVerifier


logger = logging.getLogger(__name__)

SESSION_ROLE = "authenticated"


class LoginSiweUseCase:
    def __init__(
        self,
        *,
        verifier: SiweSignatureVerifier,
        upsert_wallet_user: UpsertWalletUserUseCase,
        user_directory_port: UserDirectoryPort,
        token_port: SessionTokenPort,
    ):
        self._verifier = verifier
        self._upsert_wallet_user = upsert_wallet_user
        self._user_directory_port = user_directory_port
        self._token_port = token_port

    def execute(self, command: LoginSiweInput) -> LoginSiweOutput:
        if not command.message or not command.signature:
            raise MalformedMessageError("message and signature are required.")

        now = utcnow()
        result = self._verifier.verify(message=command.message, signature=command.signature, now=now)
        if not result.success:
            if result.reason == "MalformedMessage":
                raise MalformedMessageError("Malformed SIWE message.")
            logger.info("siwe_login: rejected reason=%s", result.reason)
            raise SiweAuthenticationError(result.reason or "SignatureMismatch")

        parsed = result.message
        if parsed is None or not parsed.nonce:
            raise MalformedMessageError("SIWE message has no nonce.")

        address = normalize_address(result.address or parsed.address)
        if not self._user_directory_port.consume_siwe_nonce(
            nonce=parsed.nonce,
            address=address,
            consumed_at=now,
        ):
            logger.info("siwe_login: nonce reused address=%s", address)
            raise SiweAuthenticationError("NonceReused", "Nonce has already been used.")

        upserted = self._upsert_wallet_user.execute(
            UpsertWalletUserInput(
                address=address,
                metadata={
                    "last_login_at": now.isoformat(),
                    "chain_id": parsed.chain_id,
                    "client_info": command.client_info or {},
                },
                signup_metadata={
                    "signup_timestamp": command.timestamp,
                },
            )
        )
        user = upserted.user
        if not user.is_active:
            raise UserInactiveError("User is inactive.")

        token, expires_at = self._token_port.issue_session_token(
            wallet_address=user.smart_account,
            user_id=user.id,
            role=SESSION_ROLE,
            now=now,
        )
        logger.info(
            "siwe_login: session issued user_id=%s method=%s new_user=%s",
            user.id,
            result.method,
            upserted.is_new_user,
        )
        return LoginSiweOutput(
            token=token,
            expires_at=expires_at,
            user_id=user.id,
            address=user.smart_account,
            is_new_user=upserted.is_new_user,
            method=result.method or "eoa",
        )
