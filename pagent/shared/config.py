from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()

BASE_CHAIN_ID = 8453
BASE_SEPOLIA_CHAIN_ID = 84532


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _bool(name: str, default: str = "false") -> bool:
    return (_env(name, default) or "").strip().lower() in {"1", "true", "yes", "on"}


def _int_list(name: str, default: str) -> tuple[int, ...]:
    value = _env(name, default) or ""
    return tuple(int(part) for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    postgres_dsn: str
    db_auto_create_schema: bool
    log_level: str
    session_jwt_secret: str
    session_ttl_minutes: int
    session_issuer: str
    siwe_allowed_chain_ids: tuple[int, ...]
    siwe_clock_skew_seconds: int
    rpc_urls: dict
    rpc_timeout_seconds: float
    siwe_verifier_contract: str
    card_webhook_secret: str
    admin_api_key: str
    settlement_mode: str
    settlement_relayer_url: str
    settlement_relayer_api_key: str
    settlement_timeout_seconds: float
    default_token_address: str
    cors_allow_origins: tuple[str, ...]


def get_settings() -> Settings:
    rpc_urls = {
        BASE_CHAIN_ID: _env("RPC_URL_BASE", "https://mainnet.base.org"),
        BASE_SEPOLIA_CHAIN_ID: _env("RPC_URL_BASE_SEPOLIA", "https://sepolia.base.org"),
    }
    return Settings(
        postgres_dsn=_env("POSTGRES_DSN", ""),
        db_auto_create_schema=_bool("DB_AUTO_CREATE_SCHEMA"),
        log_level=_env("LOG_LEVEL", "INFO"),
        session_jwt_secret=_env("SESSION_JWT_SECRET", ""),
        session_ttl_minutes=int(_env("SESSION_TTL_MINUTES", "60")),
        session_issuer=_env("SESSION_ISSUER", "pagent-credits"),
        siwe_allowed_chain_ids=_int_list(
            "SIWE_ALLOWED_CHAIN_IDS", f"{BASE_CHAIN_ID},{BASE_SEPOLIA_CHAIN_ID}"
        ),
        siwe_clock_skew_seconds=int(_env("SIWE_CLOCK_SKEW_SECONDS", "60")),
        rpc_urls=rpc_urls,
        rpc_timeout_seconds=float(_env("RPC_TIMEOUT_SECONDS", "5")),
        siwe_verifier_contract=_env("SIWE_VERIFIER_CONTRACT", ""),
        card_webhook_secret=_env("CARD_WEBHOOK_SECRET", ""),
        admin_api_key=_env("ADMIN_API_KEY", ""),
        settlement_mode=(_env("SETTLEMENT_MODE", "simulated") or "simulated").lower(),
        settlement_relayer_url=_env("SETTLEMENT_RELAYER_URL", ""),
        settlement_relayer_api_key=_env("SETTLEMENT_RELAYER_API_KEY", ""),
        settlement_timeout_seconds=float(_env("SETTLEMENT_TIMEOUT_SECONDS", "15")),
        default_token_address=_env(
            "DEFAULT_TOKEN_ADDRESS", "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
        ),
        cors_allow_origins=tuple(
            origin.strip() for origin in (_env("CORS_ALLOW_ORIGINS", "*") or "*").split(",") if origin.strip()
        ),
    )
