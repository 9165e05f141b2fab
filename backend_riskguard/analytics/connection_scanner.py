"""
Connection graph scanner.

Builds a directed interaction graph of the analyzed account and its payment
counterparties (networkx), batch-checks every counterparty against the
blacklist and verified community reports, and summarizes the hits. Blacklist
hits win over report hits for the same counterparty.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol

import networkx as nx

from backend_riskguard.analytics.models import (
    ConnectionRecord,
    ConnectionRiskLevel,
    ConnectionScanResult,
    InteractionDirection,
    Severity,
    ThreatFinding,
)
from backend_riskguard.core.exceptions import StoreUnavailable
from backend_riskguard.ledger.models import PaymentRecord
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

DEFAULT_BLACKLIST_CATEGORY = "BLACKLISTED"
DEFAULT_BLACKLIST_REASON = "Known scam address"
DEFAULT_REPORT_CATEGORY = "REPORTED"
DEFAULT_REPORT_REASON = "Community reported scam"

CONNECTION_RECOMMENDATIONS = {
    ConnectionRiskLevel.NONE: ("No scam connections detected - keep up good security practices",),
    ConnectionRiskLevel.HIGH: (
        "Multiple scam connections detected - review all recent transactions",
        "Consider creating a new wallet for future transactions",
    ),
    ConnectionRiskLevel.CRITICAL: (
        "CRITICAL: Many scam connections detected",
        "This wallet may be compromised or associated with scam activity",
        "Strongly recommend moving funds to a new secure wallet",
    ),
}
SINGLE_CONNECTION_RECOMMENDATION = "Consider reviewing your transaction history"
SINGLE_OUTBOUND_RECOMMENDATION = "You may have been a victim of a scam - be extra cautious"

# SCAM_CONNECTIONS finding: (severity, confidence) per scan level
CONNECTION_FINDING_POLICY = {
    ConnectionRiskLevel.CRITICAL: (Severity.CRITICAL, 40),
    ConnectionRiskLevel.HIGH: (Severity.HIGH, 25),
}
CONNECTION_FINDING_DEFAULT = (Severity.MEDIUM, 15)


class _BlacklistHit(Protocol):
    address: str
    scam_type: str | None
    reason: str | None


class _ReportHit(Protocol):
    address: str
    scam_type: str | None
    title: str | None


class BlacklistLookup(Protocol):
    def find_active(self, addresses: list[str]) -> list[_BlacklistHit]: ...


class VerifiedReportLookup(Protocol):
    def find_verified(self, addresses: list[str]) -> list[_ReportHit]: ...


@dataclass(frozen=True)
class CounterpartyStats:
    sent_count: int = 0
    received_count: int = 0
    sent_total: float = 0.0
    received_total: float = 0.0
    last_interaction: datetime | None = None

    @property
    def direction(self) -> InteractionDirection:
        if self.sent_count > 0 and self.received_count > 0:
            return InteractionDirection.BOTH
        if self.sent_count > 0:
            return InteractionDirection.SENT_TO
        return InteractionDirection.RECEIVED_FROM


def build_interaction_graph(address: str, payments: Iterable[PaymentRecord]) -> nx.DiGraph:
    """
    Directed graph centred on address: an edge address -> X aggregates
    payments sent to X, X -> address payments received from X.
    """
    G = nx.DiGraph()
    G.add_node(address)
    for payment in payments:
        counterparty = payment.counterparty_of(address)
        if not counterparty or counterparty == address:
            continue
        if payment.from_address == address:
            u, v = address, counterparty
        else:
            u, v = counterparty, address
        if G.has_edge(u, v):
            data = G.edges[u, v]
            data["count"] += 1
            data["total"] += payment.amount
            if payment.created_at and (data["last"] is None or payment.created_at > data["last"]):
                data["last"] = payment.created_at
        else:
            G.add_edge(u, v, count=1, total=payment.amount, last=payment.created_at)
    return G


def counterparty_stats(G: nx.DiGraph, address: str) -> dict[str, CounterpartyStats]:
    """Per-counterparty stats in first-seen order."""
    out: dict[str, CounterpartyStats] = {}
    for node in G.nodes:
        if node == address:
            continue
        sent = G.edges[address, node] if G.has_edge(address, node) else None
        received = G.edges[node, address] if G.has_edge(node, address) else None
        lasts = [d["last"] for d in (sent, received) if d is not None and d["last"] is not None]
        out[node] = CounterpartyStats(
            sent_count=sent["count"] if sent else 0,
            received_count=received["count"] if received else 0,
            sent_total=sent["total"] if sent else 0.0,
            received_total=received["total"] if received else 0.0,
            last_interaction=max(lasts) if lasts else None,
        )
    return out


def connection_risk_level(connections: tuple[ConnectionRecord, ...]) -> ConnectionRiskLevel:
    count = len(connections)
    if count == 0:
        return ConnectionRiskLevel.NONE
    if count == 1:
        if connections[0].direction == InteractionDirection.SENT_TO:
            return ConnectionRiskLevel.HIGH
        return ConnectionRiskLevel.MEDIUM
    if count <= 3:
        return ConnectionRiskLevel.HIGH
    return ConnectionRiskLevel.CRITICAL


def connection_recommendations(connections: tuple[ConnectionRecord, ...]) -> tuple[str, ...]:
    if len(connections) == 1:
        if connections[0].direction == InteractionDirection.SENT_TO:
            return (SINGLE_CONNECTION_RECOMMENDATION, SINGLE_OUTBOUND_RECOMMENDATION)
        return (SINGLE_CONNECTION_RECOMMENDATION,)
    return CONNECTION_RECOMMENDATIONS[connection_risk_level(connections)]


def _record(address: str, category: str, reason: str, stats: CounterpartyStats) -> ConnectionRecord:
    return ConnectionRecord(
        counterparty_address=address,
        scam_category=category,
        reason=reason,
        direction=stats.direction,
        interaction_count=stats.sent_count + stats.received_count,
        cumulative_amount=stats.sent_total + stats.received_total,
        last_interaction=stats.last_interaction,
    )


class ConnectionScanner:
    """Flags counterparties found in the blacklist or verified reports."""

    def __init__(self, blacklist: BlacklistLookup, reports: VerifiedReportLookup) -> None:
        self._blacklist = blacklist
        self._reports = reports

    def scan(self, address: str, payments: Iterable[PaymentRecord]) -> ConnectionScanResult | None:
        """
        Scan the payment window. Returns None (and logs) when a store is
        unavailable, so the result carries no connection block.
        """
        G = build_interaction_graph(address, payments)
        stats = counterparty_stats(G, address)
        counterparties = list(stats)
        connections: list[ConnectionRecord] = []
        if counterparties:
            try:
                blacklisted = self._blacklist.find_active(counterparties)
                reported = self._reports.find_verified(counterparties)
            except StoreUnavailable as e:
                logger.warning("connection_scan_store_unavailable", address=short_address(address), error=str(e))
                return None
            seen: set[str] = set()
            for hit in blacklisted:
                if hit.address in seen or hit.address not in stats:
                    continue
                seen.add(hit.address)
                connections.append(
                    _record(
                        hit.address,
                        hit.scam_type or DEFAULT_BLACKLIST_CATEGORY,
                        hit.reason or DEFAULT_BLACKLIST_REASON,
                        stats[hit.address],
                    )
                )
            for hit in reported:
                if hit.address in seen or hit.address not in stats:
                    continue
                seen.add(hit.address)
                connections.append(
                    _record(
                        hit.address,
                        hit.scam_type or DEFAULT_REPORT_CATEGORY,
                        hit.title or DEFAULT_REPORT_REASON,
                        stats[hit.address],
                    )
                )

        found = tuple(connections)
        result = ConnectionScanResult(
            risk_level=connection_risk_level(found),
            connections=found,
            recommendations=connection_recommendations(found),
        )
        if found:
            logger.info(
                "scam_connections_found",
                address=short_address(address),
                count=len(found),
                risk_level=result.risk_level.value,
            )
        return result


_DIRECTION_LABELS = {
    InteractionDirection.SENT_TO: "sent funds",
    InteractionDirection.RECEIVED_FROM: "received funds",
    InteractionDirection.BOTH: "two-way",
}


def connection_finding(scan: ConnectionScanResult) -> ThreatFinding | None:
    """SCAM_CONNECTIONS finding summarizing a scan with hits."""
    if not scan.has_scam_connections:
        return None
    severity, confidence = CONNECTION_FINDING_POLICY.get(scan.risk_level, CONNECTION_FINDING_DEFAULT)
    evidence = tuple(
        f"{c.counterparty_address[:12]}... {c.scam_category}: {c.reason} "
        f"({_DIRECTION_LABELS[c.direction]}, {c.interaction_count} tx, {c.cumulative_amount:.2f} XLM)"
        for c in scan.connections
    )
    return ThreatFinding(
        name="SCAM_CONNECTIONS",
        severity=severity,
        description=f"This wallet has interacted with {scan.connection_count} known scam address(es)",
        confidence=confidence,
        evidence=evidence,
    )
