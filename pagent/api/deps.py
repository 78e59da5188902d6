from __future__ import annotations

import hmac
from functools import lru_cache

from fastapi import Header, HTTPException

from pagent.application.dto.siwe import SessionClaims
from pagent.application.use_cases.assign_credits import (
    AssignCreditsUseCase,
    GetUserCreditsReportUseCase,
)
from pagent.application.use_cases.common import normalize_address, utcnow
from pagent.application.use_cases.credits import CreateCreditPermissionUseCase, GetCreditsUseCase
from pagent.application.use_cases.list_receipts import ListReceiptsUseCase
from pagent.application.use_cases.login_siwe import LoginSiweUseCase
from pagent.application.use_cases.manage_permissions import (
    CreatePermissionUseCase,
    ListPermissionsUseCase,
    RevokePermissionUseCase,
)
from pagent.application.use_cases.process_card_webhook import ProcessCardWebhookUseCase
from pagent.application.use_cases.recurring_credits import (
    PreviewRecurringCreditsUseCase,
    SweepRecurringCreditsUseCase,
)
from pagent.application.use_cases.rewards import GetRewardsSummaryUseCase, ProcessCashbackUseCase
from pagent.application.use_cases.upsert_wallet_user import UpsertWalletUserUseCase
from pagent.application.use_cases.user_profile import (
    ClaimCardUseCase,
    GetUserProfileUseCase,
    ListCardsUseCase,
    UpdateUserProfileUseCase,
)
from pagent.application.use_cases.verify_siwe_signature import SiweSignatureVerifier
from pagent.infrastructure.clients.spend_executor import RelayerSpendExecutor, SimulatedSpendExecutor
from pagent.infrastructure.db.engine import get_engine
from pagent.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from pagent.infrastructure.db.repositories.ledger_repository import SqlLedgerRepository
from pagent.infrastructure.security.eth_signatures import (
    EthSignatureRecoverer,
    Web3ContractSignatureVerifier,
)
from pagent.infrastructure.security.token_service import JwtSessionTokenService
from pagent.infrastructure.security.webhook_signature import HmacCardWebhookVerifier
from pagent.shared.config import get_settings


def _get_db_engine():
    settings = get_settings()
    if not settings.postgres_dsn:
        raise HTTPException(status_code=500, detail="POSTGRES_DSN is required.")
    return get_engine(settings.postgres_dsn)


def _get_accounts_repository() -> SqlAccountsRepository:
    return SqlAccountsRepository(_get_db_engine())


def _get_ledger_repository() -> SqlLedgerRepository:
    return SqlLedgerRepository(_get_db_engine())


@lru_cache(maxsize=1)
def _get_token_service() -> JwtSessionTokenService:
    settings = get_settings()
    if not settings.session_jwt_secret:
        raise HTTPException(status_code=500, detail="SESSION_JWT_SECRET is required.")
    return JwtSessionTokenService(
        jwt_secret=settings.session_jwt_secret,
        issuer=settings.session_issuer,
        ttl_minutes=settings.session_ttl_minutes,
    )


@lru_cache(maxsize=1)
def _get_contract_signature_verifier() -> Web3ContractSignatureVerifier:
    settings = get_settings()
    return Web3ContractSignatureVerifier(
        rpc_urls={chain_id: url for chain_id, url in settings.rpc_urls.items() if url},
        timeout_seconds=settings.rpc_timeout_seconds,
        universal_verifier_address=settings.siwe_verifier_contract or None,
    )


@lru_cache(maxsize=1)
def _get_webhook_verifier() -> HmacCardWebhookVerifier:
    settings = get_settings()
    if not settings.card_webhook_secret:
        raise HTTPException(status_code=500, detail="CARD_WEBHOOK_SECRET is required.")
    return HmacCardWebhookVerifier(webhook_secret=settings.card_webhook_secret)


@lru_cache(maxsize=1)
def _get_spend_executor():
    settings = get_settings()
    if settings.settlement_mode == "relayer":
        if not settings.settlement_relayer_url:
            raise HTTPException(status_code=500, detail="SETTLEMENT_RELAYER_URL is required.")
        return RelayerSpendExecutor(
            relayer_url=settings.settlement_relayer_url,
            timeout_seconds=settings.settlement_timeout_seconds,
            api_key=settings.settlement_relayer_api_key or None,
        )
    if settings.settlement_mode != "simulated":
        raise HTTPException(status_code=500, detail="SETTLEMENT_MODE must be 'simulated' or 'relayer'.")
    return SimulatedSpendExecutor()


def get_siwe_signature_verifier() -> SiweSignatureVerifier:
    settings = get_settings()
    return SiweSignatureVerifier(
        signature_recovery=EthSignatureRecoverer(),
        contract_signatures=_get_contract_signature_verifier(),
        allowed_chain_ids=settings.siwe_allowed_chain_ids,
        clock_skew_seconds=settings.siwe_clock_skew_seconds,
    )


def get_upsert_wallet_user_use_case() -> UpsertWalletUserUseCase:
    return UpsertWalletUserUseCase(user_directory_port=_get_accounts_repository())


def get_login_siwe_use_case() -> LoginSiweUseCase:
    accounts = _get_accounts_repository()
    return LoginSiweUseCase(
        verifier=get_siwe_signature_verifier(),
        upsert_wallet_user=UpsertWalletUserUseCase(user_directory_port=accounts),
        user_directory_port=accounts,
        token_port=_get_token_service(),
    )


def get_create_permission_use_case() -> CreatePermissionUseCase:
    return CreatePermissionUseCase(
        upsert_wallet_user=get_upsert_wallet_user_use_case(),
        ledger_port=_get_ledger_repository(),
    )


def get_revoke_permission_use_case() -> RevokePermissionUseCase:
    return RevokePermissionUseCase(
        user_directory_port=_get_accounts_repository(),
        ledger_port=_get_ledger_repository(),
    )


def get_list_permissions_use_case() -> ListPermissionsUseCase:
    return ListPermissionsUseCase(
        user_directory_port=_get_accounts_repository(),
        ledger_port=_get_ledger_repository(),
    )


def get_get_credits_use_case() -> GetCreditsUseCase:
    return GetCreditsUseCase(ledger_port=_get_ledger_repository())


def get_create_credit_permission_use_case() -> CreateCreditPermissionUseCase:
    return CreateCreditPermissionUseCase(ledger_port=_get_ledger_repository())


def get_process_card_webhook_use_case() -> ProcessCardWebhookUseCase:
    return ProcessCardWebhookUseCase(
        webhook_verifier=_get_webhook_verifier(),
        user_directory_port=_get_accounts_repository(),
        ledger_port=_get_ledger_repository(),
        spend_executor=_get_spend_executor(),
    )


def get_list_receipts_use_case() -> ListReceiptsUseCase:
    return ListReceiptsUseCase(ledger_port=_get_ledger_repository())


def get_rewards_summary_use_case() -> GetRewardsSummaryUseCase:
    return GetRewardsSummaryUseCase(ledger_port=_get_ledger_repository())


def get_process_cashback_use_case() -> ProcessCashbackUseCase:
    return ProcessCashbackUseCase(ledger_port=_get_ledger_repository())


def get_sweep_recurring_credits_use_case() -> SweepRecurringCreditsUseCase:
    settings = get_settings()
    return SweepRecurringCreditsUseCase(
        ledger_port=_get_ledger_repository(),
        token_address=settings.default_token_address,
    )


def get_preview_recurring_credits_use_case() -> PreviewRecurringCreditsUseCase:
    return PreviewRecurringCreditsUseCase(ledger_port=_get_ledger_repository())


def get_assign_credits_use_case() -> AssignCreditsUseCase:
    settings = get_settings()
    return AssignCreditsUseCase(
        user_directory_port=_get_accounts_repository(),
        ledger_port=_get_ledger_repository(),
        token_address=settings.default_token_address,
    )


def get_user_credits_report_use_case() -> GetUserCreditsReportUseCase:
    return GetUserCreditsReportUseCase(
        user_directory_port=_get_accounts_repository(),
        ledger_port=_get_ledger_repository(),
    )


def get_get_user_profile_use_case() -> GetUserProfileUseCase:
    return GetUserProfileUseCase(user_directory_port=_get_accounts_repository())


def get_update_user_profile_use_case() -> UpdateUserProfileUseCase:
    return UpdateUserProfileUseCase(user_directory_port=_get_accounts_repository())


def get_list_cards_use_case() -> ListCardsUseCase:
    return ListCardsUseCase(user_directory_port=_get_accounts_repository())


def get_claim_card_use_case() -> ClaimCardUseCase:
    return ClaimCardUseCase(user_directory_port=_get_accounts_repository())


def get_current_session(
    authorization: str | None = Header(default=None),
) -> SessionClaims:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header.")
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header.")

    claims = _get_token_service().validate_session_token(token=token, now=utcnow())
    if claims is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return claims


def ensure_session_owns(session: SessionClaims, smart_account: str | None) -> None:
    if smart_account and normalize_address(smart_account) != normalize_address(session.wallet_address):
        raise HTTPException(status_code=403, detail="smart_account does not match the session.")


def require_admin_key(
    x_admin_key: str | None = Header(default=None),
) -> None:
    settings = get_settings()
    if not settings.admin_api_key:
        raise HTTPException(status_code=500, detail="ADMIN_API_KEY is required.")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid admin key.")
