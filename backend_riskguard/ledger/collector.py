"""
Ledger data collector: fetch and normalize on-chain facts for a Stellar account.

Issues the account, transactions, payments, operations, offers and trades
requests concurrently against Horizon, then runs a best-effort oldest-first
transaction query for account age. Every request has a bounded timeout; any
transport failure on the main fetch is fatal (UpstreamUnavailable). A 404 on
the account record means the account was never funded (AccountNotFound).

Windows are capped (100 transactions / 100 payments by default, most recent
first), so activity aggregates describe recent activity only.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from backend_riskguard.config import Settings, get_settings
from backend_riskguard.config.env import get_horizon_url
from backend_riskguard.core.concurrency import gather_or_cancel
from backend_riskguard.core.exceptions import AccountNotFound, UpstreamUnavailable
from backend_riskguard.ledger.models import (
    KNOWN_FLAGS,
    AccountFacts,
    Balance,
    PaymentRecord,
    derive_activity,
    parse_timestamp,
)
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def age_in_days(created_at: datetime | None, now: datetime) -> int:
    """Whole days between created_at and now; 0 when unknown or in the future."""
    if created_at is None:
        return 0
    elapsed = (now - created_at).total_seconds()
    if elapsed <= 0:
        return 0
    return int(math.floor(elapsed / SECONDS_PER_DAY))


class LedgerDataCollector:
    """
    Async Horizon reader producing one AccountFacts snapshot per call.

    Pass an httpx.AsyncClient to share connections (or to inject a
    MockTransport in tests); otherwise a client is opened per collect().
    """

    def __init__(
        self,
        horizon_url: str,
        *,
        timeout_sec: float = 15.0,
        tx_limit: int = 100,
        payment_limit: int = 100,
        operation_limit: int = 200,
        offer_limit: int = 100,
        trade_limit: int = 50,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not horizon_url.strip():
            raise ValueError("horizon_url must be non-empty")
        self._base_url = horizon_url.rstrip("/")
        self._timeout = timeout_sec
        self._tx_limit = tx_limit
        self._payment_limit = payment_limit
        self._operation_limit = operation_limit
        self._offer_limit = offer_limit
        self._trade_limit = trade_limit
        self._client = client
        self._clock = clock

    @classmethod
    def for_network(
        cls,
        network: str,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> "LedgerDataCollector":
        cfg = settings or get_settings()
        return cls(
            get_horizon_url(network),
            timeout_sec=cfg.ledger_timeout_sec,
            tx_limit=cfg.ledger_tx_limit,
            payment_limit=cfg.ledger_payment_limit,
            operation_limit=cfg.ledger_operation_limit,
            offer_limit=cfg.ledger_offer_limit,
            trade_limit=cfg.ledger_trade_limit,
            client=client,
            clock=clock,
        )

    async def collect(self, address: str) -> AccountFacts:
        """Return the AccountFacts snapshot for address."""
        if self._client is not None:
            return await self._collect(self._client, address)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._collect(client, address)

    async def _collect(self, client: httpx.AsyncClient, address: str) -> AccountFacts:
        logger.debug("ledger_collect_start", address=short_address(address))
        prefix = f"/accounts/{address}"
        account, transactions, payments, operations, offers, trades = await gather_or_cancel(
            self._get_json(client, prefix, address=address, required=True),
            self._records(client, f"{prefix}/transactions", {"order": "desc", "limit": self._tx_limit}),
            self._records(client, f"{prefix}/payments", {"order": "desc", "limit": self._payment_limit}),
            self._records(client, f"{prefix}/operations", {"order": "desc", "limit": self._operation_limit}),
            self._records(client, f"{prefix}/offers", {"limit": self._offer_limit}),
            self._records(client, f"{prefix}/trades", {"order": "desc", "limit": self._trade_limit}),
        )
        now = self._clock()
        last_modified = parse_timestamp(account.get("last_modified_time"))
        created_at = await self._oldest_transaction_time(client, address)
        if created_at is None:
            created_at = last_modified

        payment_records = [PaymentRecord.from_horizon(p) for p in payments]
        tx_times = [t for t in (parse_timestamp(tx.get("created_at")) for tx in transactions) if t is not None]
        activity = derive_activity(
            address,
            payment_records,
            transaction_count=len(transactions),
            transaction_times=tx_times,
            operation_count=len(operations),
            offer_count=len(offers),
            trade_count=len(trades),
            fallback_last_activity=last_modified,
            now=now,
        )
        raw_flags = account.get("flags") or {}
        facts = AccountFacts(
            address=address,
            age_days=age_in_days(created_at, now),
            created_at=created_at,
            balances=tuple(Balance.from_horizon(b) for b in account.get("balances") or []),
            signer_count=len(account.get("signers") or []) or 1,
            flags=frozenset(name for name in KNOWN_FLAGS if raw_flags.get(name)),
            home_domain=(account.get("home_domain") or "").strip() or None,
            sequence=str(account.get("sequence")) if account.get("sequence") is not None else None,
            activity=activity,
            payments=tuple(payment_records),
        )
        logger.info(
            "ledger_collect_done",
            address=short_address(address),
            age_days=facts.age_days,
            transactions=activity.total_transactions,
            payments=activity.total_payments,
        )
        return facts

    async def _oldest_transaction_time(self, client: httpx.AsyncClient, address: str) -> datetime | None:
        """Best-effort: created_at of the first transaction. None when unavailable."""
        try:
            records = await self._records(
                client, f"/accounts/{address}/transactions", {"order": "asc", "limit": 1}
            )
        except UpstreamUnavailable as e:
            logger.warning("ledger_account_age_failed", address=short_address(address), error=str(e))
            return None
        if not records:
            return None
        return parse_timestamp(records[0].get("created_at"))

    async def _records(self, client: httpx.AsyncClient, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        data = await self._get_json(client, path, params=params)
        if not data:
            return []
        return list((data.get("_embedded") or {}).get("records") or [])

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        address: str | None = None,
        required: bool = False,
    ) -> dict[str, Any]:
        """
        GET a Horizon resource. 404 raises AccountNotFound for the account record
        and yields an empty page for collection endpoints.
        """
        url = f"{self._base_url}{path}"
        try:
            resp = await client.get(url, params=params, timeout=self._timeout)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Ledger request timed out: {path}") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Ledger request failed: {path}: {e}") from e

        if resp.status_code == 404:
            if required:
                raise AccountNotFound(address or path)
            return {}
        if resp.status_code >= 400:
            raise UpstreamUnavailable(f"Ledger API error {resp.status_code}: {path}")
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"Ledger API returned invalid JSON: {path}") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"Ledger API returned unexpected payload: {path}")
        return data
