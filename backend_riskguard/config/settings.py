"""
Application settings and environment configuration.

Loads configuration from environment variables (and .env), applies defaults for
optional values, and exposes a frozen Settings object shared by the ledger
collector, enrichers, explanation generator, stores, and API server.
"""

from __future__ import annotations

import functools
import os
from dataclasses import dataclass

from backend_riskguard.config.env import get_stellar_network, load_riskguard_env

STELLAR_EXPERT_API_URL = "https://api.stellar.expert/explorer"
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _database_url() -> str:
    """RISKGUARD_DB_URL or DATABASE_URL when set; else SQLite at RISKGUARD_DB_PATH."""
    url = _env_str("RISKGUARD_DB_URL") or _env_str("DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{_env_str('RISKGUARD_DB_PATH', 'riskguard.db')}"


@dataclass(frozen=True)
class Settings:
    """Typed service configuration. Build with get_settings()."""

    network: str
    stellar_expert_api_url: str
    ledger_timeout_sec: float
    enrichment_timeout_sec: float
    ledger_tx_limit: int
    ledger_payment_limit: int
    ledger_operation_limit: int
    ledger_offer_limit: int
    ledger_trade_limit: int
    openai_api_key: str | None
    openai_model: str
    openai_api_url: str
    ai_timeout_sec: float
    database_url: str
    known_addresses_path: str | None
    exchange_brands_path: str | None
    api_host: str
    api_port: int

    @property
    def generative_text_enabled(self) -> bool:
        return bool(self.openai_api_key)


def load_settings() -> Settings:
    """Build Settings from the current environment (no caching)."""
    load_riskguard_env()
    return Settings(
        network=get_stellar_network(),
        stellar_expert_api_url=_env_str("STELLAR_EXPERT_API_URL", STELLAR_EXPERT_API_URL).rstrip("/"),
        ledger_timeout_sec=_env_float("LEDGER_TIMEOUT_SEC", 15.0),
        enrichment_timeout_sec=_env_float("ENRICHMENT_TIMEOUT_SEC", 8.0),
        ledger_tx_limit=_env_int("LEDGER_TX_LIMIT", 100),
        ledger_payment_limit=_env_int("LEDGER_PAYMENT_LIMIT", 100),
        ledger_operation_limit=_env_int("LEDGER_OPERATION_LIMIT", 200),
        ledger_offer_limit=_env_int("LEDGER_OFFER_LIMIT", 100),
        ledger_trade_limit=_env_int("LEDGER_TRADE_LIMIT", 50),
        openai_api_key=_env_str("OPENAI_API_KEY") or None,
        openai_model=_env_str("OPENAI_MODEL", "gpt-4"),
        openai_api_url=_env_str("OPENAI_API_URL", OPENAI_API_URL),
        ai_timeout_sec=_env_float("AI_TIMEOUT_SEC", 10.0),
        database_url=_database_url(),
        known_addresses_path=_env_str("KNOWN_ADDRESSES_PATH") or None,
        exchange_brands_path=_env_str("EXCHANGE_BRANDS_PATH") or None,
        api_host=_env_str("API_HOST", "0.0.0.0"),
        api_port=_env_int("API_PORT", 8000),
    )


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the current application settings.

    Cached for the process lifetime; tests call get_settings.cache_clear()
    after changing the environment.
    """
    return load_settings()
