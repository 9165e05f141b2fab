"""
Pytest fixtures for RiskGuard tests.

Stores use a temporary SQLite DB; HTTP collaborators are faked with
httpx.MockTransport; facts are built directly with facts_factory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from backend_riskguard.analytics.reference_data import KnownAddress, ReferenceData
from backend_riskguard.config.settings import Settings
from backend_riskguard.core.exceptions import StoreUnavailable
from backend_riskguard.database import BlacklistRecord, ReportRecord
from backend_riskguard.ledger.models import ActivityMetrics, AccountFacts, Balance, PaymentRecord

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

BINANCE = "GAHK7EEG2WWHVKDNT4CEQFZGKF2LGDSW2IVM4S5DP42RBW3K6BTODB4A"
KRAKEN = "GCQHDR2E4WNUX24NO76ZWHFHHUW25C5BZPQYBUT7KSRQZ65AZKH7RSRO"
TARGET = "G" + "A" * 55
OTHER = "G" + "C" * 55


def addr(n: int) -> str:
    """Distinct 56-char G... address for counterparty n."""
    return f"G{n:0>55}"


def payment(
    from_address: str,
    to_address: str,
    amount: float = 10.0,
    *,
    native: bool = True,
    created_at: datetime | None = None,
    pid: str = "1",
) -> PaymentRecord:
    return PaymentRecord(
        id=pid,
        type="payment",
        from_address=from_address,
        to_address=to_address,
        amount=amount,
        asset_code="XLM" if native else "USDC",
        is_native=native,
        created_at=created_at or NOW,
    )


def make_facts(
    *,
    address: str = TARGET,
    age_days: int = 200,
    native_balance: float | None = 100.0,
    trustlines: tuple[str, ...] = (),
    tx_count: int = 50,
    incoming: int = 0,
    outgoing: int = 0,
    largest: float = 0.0,
    average: float = 0.0,
    signer_count: int = 1,
    flags: tuple[str, ...] = (),
    home_domain: str | None = None,
    payments: tuple[PaymentRecord, ...] = (),
) -> AccountFacts:
    balances: list[Balance] = []
    if native_balance is not None:
        balances.append(Balance("XLM", None, native_balance))
    for code in trustlines:
        balances.append(Balance(code, OTHER, 5.0))
    return AccountFacts(
        address=address,
        age_days=age_days,
        created_at=NOW - timedelta(days=age_days),
        balances=tuple(balances),
        signer_count=signer_count,
        flags=frozenset(flags),
        home_domain=home_domain,
        activity=ActivityMetrics(
            total_transactions=tx_count,
            total_payments=incoming + outgoing,
            incoming_payments=incoming,
            outgoing_payments=outgoing,
            largest_payment=largest,
            average_payment=average,
        ),
        payments=payments,
    )


@pytest.fixture
def facts_factory():
    return make_facts


@pytest.fixture
def reference():
    return ReferenceData(
        known_addresses=(KnownAddress("Binance", BINANCE), KnownAddress("Kraken", KRAKEN)),
        exchange_brands=("exchange", "binance", "coinbase", "kraken", "ftx"),
    )


@pytest.fixture
def settings(tmp_path):
    """Explicit settings: no generative text, temp SQLite, short timeouts."""
    return Settings(
        network="testnet",
        stellar_expert_api_url="https://expert.test/explorer",
        ledger_timeout_sec=5.0,
        enrichment_timeout_sec=2.0,
        ledger_tx_limit=100,
        ledger_payment_limit=100,
        ledger_operation_limit=200,
        ledger_offer_limit=100,
        ledger_trade_limit=50,
        openai_api_key=None,
        openai_model="gpt-4",
        openai_api_url="https://ai.test/v1/chat/completions",
        ai_timeout_sec=2.0,
        database_url=f"sqlite:///{tmp_path / 'riskguard.db'}",
        known_addresses_path=None,
        exchange_brands_path=None,
        api_host="127.0.0.1",
        api_port=8000,
    )


@pytest.fixture
def store_db(tmp_path, monkeypatch):
    """
    Point the stores at a temporary SQLite DB and init tables.
    Resets engine and settings caches so each test gets a fresh DB.
    """
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("RISKGUARD_DB_URL", f"sqlite:///{tmp_path / 'stores.db'}")

    from backend_riskguard.config import get_settings
    import backend_riskguard.database.repositories as db

    get_settings.cache_clear()
    db.reset_engine_for_test()
    db.init_db()
    yield db
    db.reset_engine_for_test()
    get_settings.cache_clear()


@dataclass
class FakeBlacklist:
    """In-memory BlacklistLookup; fail=True simulates an unreachable store."""

    entries: list[BlacklistRecord] = field(default_factory=list)
    fail: bool = False
    calls: list[list[str]] = field(default_factory=list)

    def find_active(self, addresses):
        self.calls.append(list(addresses))
        if self.fail:
            raise StoreUnavailable("blacklist down")
        return [e for e in self.entries if e.address in addresses]


@dataclass
class FakeReports:
    """In-memory report store (verified lookup + per-address reports)."""

    reports: list[ReportRecord] = field(default_factory=list)
    fail: bool = False

    def find_verified(self, addresses):
        if self.fail:
            raise StoreUnavailable("reports down")
        return [r for r in self.reports if r.address in addresses and r.status == "verified"]

    def find_for_address(self, address, limit=10):
        if self.fail:
            raise StoreUnavailable("reports down")
        found = [r for r in self.reports if r.address == address and r.status in ("verified", "pending")]
        return sorted(found, key=lambda r: r.created_at, reverse=True)[:limit]
