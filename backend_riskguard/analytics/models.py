"""
Data models for risk analysis output.

ThreatFinding is the unit every detector and rule check emits; AnalysisResult
is the sealed per-request output returned by analyze().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskLevel(str, Enum):
    SAFE = "SAFE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ConnectionRiskLevel(str, Enum):
    NONE = "NONE"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Recommendation(str, Enum):
    """Pre-screen tier derived from the fraud-detector composite."""

    BLOCK = "BLOCK"
    WARN = "WARN"
    CAUTION = "CAUTION"
    PROCEED = "PROCEED"


class InteractionDirection(str, Enum):
    SENT_TO = "sent_to"
    RECEIVED_FROM = "received_from"
    BOTH = "both"


@dataclass(frozen=True)
class ThreatFinding:
    """
    One structured finding from a detector or rule check.

    name is a stable identifier (e.g. DRAIN_WALLET); confidence is 0-100;
    evidence is an ordered tuple of short human-readable strings.
    """

    name: str
    severity: Severity
    description: str
    confidence: int
    evidence: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "severity": self.severity.value,
            "description": self.description,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
        }


def merge_findings(*groups: Iterable[ThreatFinding]) -> list[ThreatFinding]:
    """Concatenate finding lists, keeping the first finding per name."""
    seen: set[str] = set()
    merged: list[ThreatFinding] = []
    for group in groups:
        for finding in group:
            if finding.name in seen:
                continue
            seen.add(finding.name)
            merged.append(finding)
    return merged


@dataclass(frozen=True)
class ConnectionRecord:
    """A counterparty of the analyzed account that is a known or reported scam."""

    counterparty_address: str
    scam_category: str
    reason: str
    direction: InteractionDirection
    interaction_count: int
    cumulative_amount: float
    last_interaction: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "counterparty_address": self.counterparty_address,
            "scam_category": self.scam_category,
            "reason": self.reason,
            "direction": self.direction.value,
            "interaction_count": self.interaction_count,
            "cumulative_amount": self.cumulative_amount,
            "last_interaction": self.last_interaction.isoformat() if self.last_interaction else None,
        }


@dataclass(frozen=True)
class ConnectionScanResult:
    risk_level: ConnectionRiskLevel
    connections: tuple[ConnectionRecord, ...] = ()
    recommendations: tuple[str, ...] = ()

    @property
    def has_scam_connections(self) -> bool:
        return bool(self.connections)

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_scam_connections": self.has_scam_connections,
            "connection_count": self.connection_count,
            "risk_level": self.risk_level.value,
            "connections": [c.to_dict() for c in self.connections],
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class FraudAssessment:
    """Composite of all triggered pattern detectors."""

    findings: tuple[ThreatFinding, ...]
    confidence: float
    is_fraud: bool
    recommendation: Recommendation

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_fraud": self.is_fraud,
            "confidence": round(self.confidence, 2),
            "recommendation": self.recommendation.value,
            "patterns": [f.name for f in self.findings],
        }


@dataclass(frozen=True)
class ScoreFactor:
    """One additive contribution to the risk score."""

    name: str
    points: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "points": self.points, "reason": self.reason}


@dataclass(frozen=True)
class TransactionContext:
    """Optional details of the transfer the caller is about to make."""

    sender_address: str | None = None
    amount: str | None = None
    asset_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"sender_address": self.sender_address, "amount": self.amount, "asset_code": self.asset_code}


@dataclass(frozen=True)
class CommunityInfo:
    """Store lookups about the analyzed address itself."""

    is_blacklisted: bool = False
    blacklist_reason: str | None = None
    report_count: int = 0
    verified_report_count: int = 0
    pending_report_count: int = 0
    latest_reports: tuple[dict[str, Any], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_blacklisted": self.is_blacklisted,
            "blacklist_reason": self.blacklist_reason,
            "report_count": self.report_count,
            "verified_report_count": self.verified_report_count,
            "pending_report_count": self.pending_report_count,
            "latest_reports": list(self.latest_reports),
        }


@dataclass(frozen=True)
class AnalysisResult:
    """
    Sealed output of one analysis.

    Optional blocks (reputation, connection_scan, community) are None when the
    corresponding source was unavailable; their absence is how degraded
    enrichment is made visible to callers.
    """

    address: str
    network: str
    risk_score: int
    risk_level: RiskLevel
    threats: tuple[ThreatFinding, ...]
    connections: tuple[ConnectionRecord, ...]
    recommendation: str
    recommendations: tuple[str, ...]
    explanation: str
    timestamp: datetime
    account_found: bool = True
    factors: tuple[ScoreFactor, ...] = ()
    fraud: FraudAssessment | None = None
    verification_badges: tuple[str, ...] = ()
    account: dict[str, Any] | None = None
    reputation: dict[str, Any] | None = None
    connection_scan: ConnectionScanResult | None = None
    community: CommunityInfo | None = None
    context: TransactionContext | None = None
    explanation_source: str = "template"

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "network": self.network,
            "account_found": self.account_found,
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "threats": [t.to_dict() for t in self.threats],
            "connections": [c.to_dict() for c in self.connections],
            "recommendation": self.recommendation,
            "recommendations": list(self.recommendations),
            "explanation": self.explanation,
            "explanation_source": self.explanation_source,
            "timestamp": self.timestamp.isoformat(),
            "factors": [f.to_dict() for f in self.factors],
            "fraud": self.fraud.to_dict() if self.fraud else None,
            "verification_badges": list(self.verification_badges),
            "account": self.account,
            "reputation": self.reputation,
            "connection_scan": self.connection_scan.to_dict() if self.connection_scan else None,
            "community": self.community.to_dict() if self.community else None,
            "context": self.context.to_dict() if self.context else None,
        }
