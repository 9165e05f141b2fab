"""
Typed ledger records for the risk pipeline.

Horizon JSON is converted once at the ingestion boundary into frozen
dataclasses; nothing downstream touches raw records.

Activity aggregates (largest/average payment, incoming/outgoing split) cover
only the fetched payment window (most recent N payments), i.e. they describe
recent activity, not lifetime activity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

NATIVE_ASSET_CODE = "XLM"

# Account security flags as named in Horizon's `flags` object
FLAG_AUTH_REQUIRED = "auth_required"
FLAG_AUTH_REVOCABLE = "auth_revocable"  # issuer can freeze holder balances
FLAG_AUTH_IMMUTABLE = "auth_immutable"
FLAG_AUTH_CLAWBACK = "auth_clawback_enabled"  # issuer can claw back balances
KNOWN_FLAGS = (FLAG_AUTH_REQUIRED, FLAG_AUTH_REVOCABLE, FLAG_AUTH_IMMUTABLE, FLAG_AUTH_CLAWBACK)

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse Horizon ISO-8601 timestamps ("2024-01-02T03:04:05Z"). None on failure."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def parse_amount(raw: Any) -> float:
    try:
        return float(raw or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class Balance:
    """One balance line: native lumens or a trustline to (code, issuer)."""

    asset_code: str
    asset_issuer: str | None
    amount: float

    @property
    def is_native(self) -> bool:
        return self.asset_issuer is None

    @classmethod
    def from_horizon(cls, item: dict[str, Any]) -> "Balance":
        if item.get("asset_type") == "native":
            return cls(asset_code=NATIVE_ASSET_CODE, asset_issuer=None, amount=parse_amount(item.get("balance")))
        return cls(
            asset_code=str(item.get("asset_code") or item.get("liquidity_pool_id") or ""),
            asset_issuer=str(item.get("asset_issuer") or ""),
            amount=parse_amount(item.get("balance")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"asset_code": self.asset_code, "asset_issuer": self.asset_issuer, "amount": self.amount}


@dataclass(frozen=True)
class PaymentRecord:
    """
    Normalized payment-like operation.

    Horizon's payments endpoint mixes payment, path payments, create_account and
    account_merge; each is mapped to (from, to, amount, asset).
    """

    id: str
    type: str
    from_address: str
    to_address: str
    amount: float
    asset_code: str
    is_native: bool
    created_at: datetime | None

    @classmethod
    def from_horizon(cls, item: dict[str, Any]) -> "PaymentRecord":
        op_type = str(item.get("type") or "")
        if op_type == "create_account":
            sender = item.get("funder")
            receiver = item.get("account")
            amount = parse_amount(item.get("starting_balance"))
            is_native = True
        elif op_type == "account_merge":
            sender = item.get("account")
            receiver = item.get("into")
            amount = 0.0
            is_native = True
        else:
            sender = item.get("from")
            receiver = item.get("to")
            amount = parse_amount(item.get("amount"))
            is_native = item.get("asset_type") == "native"
        return cls(
            id=str(item.get("id") or ""),
            type=op_type,
            from_address=str(sender or ""),
            to_address=str(receiver or ""),
            amount=amount,
            asset_code=NATIVE_ASSET_CODE if is_native else str(item.get("asset_code") or ""),
            is_native=is_native,
            created_at=parse_timestamp(item.get("created_at")),
        )

    def direction_for(self, address: str) -> str | None:
        """incoming / outgoing relative to address; None if address is neither side."""
        if self.from_address == address:
            return DIRECTION_OUTGOING
        if self.to_address == address:
            return DIRECTION_INCOMING
        return None

    def counterparty_of(self, address: str) -> str | None:
        if self.from_address == address:
            return self.to_address or None
        if self.to_address == address:
            return self.from_address or None
        return None


@dataclass(frozen=True)
class ActivityMetrics:
    """Aggregates over the fetched windows (see module docstring)."""

    total_transactions: int = 0
    total_payments: int = 0
    total_operations: int = 0
    incoming_payments: int = 0
    outgoing_payments: int = 0
    largest_payment: float = 0.0
    average_payment: float = 0.0
    last_activity: datetime | None = None
    open_offer_count: int = 0
    trade_count: int = 0
    transactions_last_24h: int = 0
    transactions_last_7d: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_transactions": self.total_transactions,
            "total_payments": self.total_payments,
            "total_operations": self.total_operations,
            "incoming_payments": self.incoming_payments,
            "outgoing_payments": self.outgoing_payments,
            "largest_payment": self.largest_payment,
            "average_payment": self.average_payment,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "open_offer_count": self.open_offer_count,
            "trade_count": self.trade_count,
            "transactions_last_24h": self.transactions_last_24h,
            "transactions_last_7d": self.transactions_last_7d,
        }


@dataclass(frozen=True)
class AccountFacts:
    """
    Snapshot of one account at analysis time. Built per request, never mutated.

    has_verified_domain is True when the account declares a home domain on-ledger
    (the ledger only accepts it from the account's signers); proof that the domain
    lists the account is a separate enrichment (reputation.toml_verifier).
    """

    address: str
    age_days: int = 0
    created_at: datetime | None = None
    balances: tuple[Balance, ...] = ()
    signer_count: int = 1
    flags: frozenset[str] = frozenset()
    home_domain: str | None = None
    sequence: str | None = None
    activity: ActivityMetrics = field(default_factory=ActivityMetrics)
    payments: tuple[PaymentRecord, ...] = ()

    @property
    def is_multi_signature(self) -> bool:
        return self.signer_count > 1

    @property
    def has_verified_domain(self) -> bool:
        return bool(self.home_domain)

    @property
    def native_balance(self) -> float:
        for balance in self.balances:
            if balance.is_native:
                return balance.amount
        return 0.0

    @property
    def trustlines(self) -> tuple[Balance, ...]:
        return tuple(b for b in self.balances if not b.is_native)

    def has_flag(self, name: str) -> bool:
        return name in self.flags

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "age_days": self.age_days,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "native_balance": self.native_balance,
            "balances": [b.to_dict() for b in self.balances],
            "signer_count": self.signer_count,
            "is_multi_signature": self.is_multi_signature,
            "flags": sorted(self.flags),
            "home_domain": self.home_domain,
            "has_verified_domain": self.has_verified_domain,
            "trustline_count": len(self.trustlines),
            "activity": self.activity.to_dict(),
        }


def derive_activity(
    address: str,
    payments: list[PaymentRecord],
    *,
    transaction_count: int,
    transaction_times: list[datetime],
    operation_count: int,
    offer_count: int,
    trade_count: int,
    fallback_last_activity: datetime | None,
    now: datetime,
) -> ActivityMetrics:
    """
    Single pass over the payment window.

    Average is native volume divided by the number of payments in the window
    (non-native payments count toward the divisor but not the volume).
    """
    incoming = outgoing = 0
    native_total = 0.0
    largest = 0.0
    for payment in payments:
        direction = payment.direction_for(address)
        if direction == DIRECTION_INCOMING:
            incoming += 1
        elif direction == DIRECTION_OUTGOING:
            outgoing += 1
        if payment.is_native:
            if direction is not None:
                native_total += payment.amount
                largest = max(largest, payment.amount)
    average = native_total / len(payments) if payments else 0.0

    last_activity = transaction_times[0] if transaction_times else fallback_last_activity
    day_ago = now.timestamp() - 24 * 3600
    week_ago = now.timestamp() - 7 * 24 * 3600
    return ActivityMetrics(
        total_transactions=transaction_count,
        total_payments=len(payments),
        total_operations=operation_count,
        incoming_payments=incoming,
        outgoing_payments=outgoing,
        largest_payment=largest,
        average_payment=average,
        last_activity=last_activity,
        open_offer_count=offer_count,
        trade_count=trade_count,
        transactions_last_24h=sum(1 for t in transaction_times if t.timestamp() > day_ago),
        transactions_last_7d=sum(1 for t in transaction_times if t.timestamp() > week_ago),
    )
