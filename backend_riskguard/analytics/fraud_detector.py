"""
Pattern detectors: one pure function per fraud archetype.

Every detector has the signature (facts, reputation, reference) -> tuple of
ThreatFinding and inspects nothing else, so they can run in any order (or
concurrently) with identical results. FraudDetector runs the battery, merges
the findings, and derives the composite confidence and pre-screen tier.

Thresholds here are policy; tests pin them at their boundaries.
"""

from __future__ import annotations

from typing import Callable

from backend_riskguard.analytics.models import FraudAssessment, Recommendation, Severity, ThreatFinding
from backend_riskguard.analytics.reference_data import ReferenceData
from backend_riskguard.ledger.models import (
    DIRECTION_INCOMING,
    DIRECTION_OUTGOING,
    FLAG_AUTH_CLAWBACK,
    FLAG_AUTH_REVOCABLE,
    AccountFacts,
)
from backend_riskguard.reputation.models import ReputationSignal
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

Detector = Callable[[AccountFacts, "ReputationSignal | None", ReferenceData], tuple[ThreatFinding, ...]]

# Drain wallet
DRAIN_MIN_INCOMING = 10
DRAIN_MIN_OUTGOING = 10
DRAIN_MAX_BALANCE = 1.0

# Phishing / airdrop
PHISHING_MAX_AGE_DAYS = 30
PHISHING_KEYWORDS = ("airdrop", "free", "bonus", "gift")

# Ponzi / pyramid
PONZI_MIN_SENDERS = 20
PONZI_MAX_RECIPIENTS = 5
PONZI_MAX_AGE_DAYS = 90

FAKE_EXCHANGE_MAX_AGE_DAYS = 180

RAPID_MAX_AGE_DAYS = 3
RAPID_MAX_TRANSACTIONS = 2

SIMILARITY_PREFIX_LEN = 10
SIMILARITY_THRESHOLD = 70.0

SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 1.5,
    Severity.HIGH: 1.2,
    Severity.MEDIUM: 1.0,
    Severity.LOW: 0.7,
}
FRAUD_DETECTED_THRESHOLD = 60.0
BLOCK_THRESHOLD = 80.0
WARN_THRESHOLD = 60.0
CAUTION_THRESHOLD = 40.0


def detect_drain_wallet(
    facts: AccountFacts, reputation: ReputationSignal | None, reference: ReferenceData
) -> tuple[ThreatFinding, ...]:
    """Many payments in and out while the account stays empty."""
    incoming = facts.activity.incoming_payments
    outgoing = facts.activity.outgoing_payments
    balance = facts.native_balance
    if incoming >= DRAIN_MIN_INCOMING and outgoing >= DRAIN_MIN_OUTGOING and balance < DRAIN_MAX_BALANCE:
        return (
            ThreatFinding(
                name="DRAIN_WALLET",
                severity=Severity.CRITICAL,
                description="Wallet-drain pattern detected",
                confidence=85,
                evidence=(
                    f"{incoming} incoming payments",
                    f"{outgoing} outgoing payments",
                    f"Native balance: {balance} XLM (always empty)",
                    "Funds are forwarded to another account as soon as they arrive",
                ),
            ),
        )
    return ()


def detect_phishing_airdrop(
    facts: AccountFacts, reputation: ReputationSignal | None, reference: ReferenceData
) -> tuple[ThreatFinding, ...]:
    """Young account holding giveaway-style assets."""
    if facts.age_days >= PHISHING_MAX_AGE_DAYS:
        return ()
    suspicious = [
        t.asset_code
        for t in facts.trustlines
        if any(keyword in t.asset_code.lower() for keyword in PHISHING_KEYWORDS)
    ]
    if not suspicious:
        return ()
    return (
        ThreatFinding(
            name="PHISHING_AIRDROP",
            severity=Severity.CRITICAL,
            description="Fake airdrop / token giveaway pattern",
            confidence=90,
            evidence=(
                f"Account age: {facts.age_days} days",
                f"{len(suspicious)} suspicious token(s)",
                ", ".join(suspicious),
            ),
        ),
    )


def detect_ponzi_scheme(
    facts: AccountFacts, reputation: ReputationSignal | None, reference: ReferenceData
) -> tuple[ThreatFinding, ...]:
    """Many distinct payers, very few payees, recent account."""
    senders: set[str] = set()
    recipients: set[str] = set()
    for payment in facts.payments:
        direction = payment.direction_for(facts.address)
        if direction == DIRECTION_INCOMING:
            senders.add(payment.from_address)
        elif direction == DIRECTION_OUTGOING:
            recipients.add(payment.to_address)
    if (
        len(senders) >= PONZI_MIN_SENDERS
        and len(recipients) < PONZI_MAX_RECIPIENTS
        and facts.age_days < PONZI_MAX_AGE_DAYS
    ):
        return (
            ThreatFinding(
                name="PONZI_SCHEME",
                severity=Severity.CRITICAL,
                description="Pyramid / Ponzi scheme pattern detected",
                confidence=75,
                evidence=(
                    f"Funds received from {len(senders)} distinct addresses",
                    f"Funds sent to only {len(recipients)} addresses",
                    "Many small investors, few exits",
                ),
            ),
        )
    return ()


def detect_fake_exchange(
    facts: AccountFacts, reputation: ReputationSignal | None, reference: ReferenceData
) -> tuple[ThreatFinding, ...]:
    """Exchange-branded home domain on a young, unverified account."""
    domain = (facts.home_domain or "").lower()
    if not domain:
        return ()
    brand = next((b for b in reference.exchange_brands if b in domain), None)
    if brand is None or facts.age_days >= FAKE_EXCHANGE_MAX_AGE_DAYS:
        return ()
    if reputation is not None and reputation.is_verified_organization:
        return ()
    return (
        ThreatFinding(
            name="FAKE_EXCHANGE",
            severity=Severity.CRITICAL,
            description="Possible fake exchange account",
            confidence=80,
            evidence=(
                f"Domain: {domain} (not verified)",
                f"Account age: {facts.age_days} days",
                f"Resembles a known exchange brand ({brand}) but is not a verified organization",
            ),
        ),
    )


def detect_honeypot_token(
    facts: AccountFacts, reputation: ReputationSignal | None, reference: ReferenceData
) -> tuple[ThreatFinding, ...]:
    """Issuer can freeze or claw back holder balances."""
    revocable = facts.has_flag(FLAG_AUTH_REVOCABLE)
    clawback = facts.has_flag(FLAG_AUTH_CLAWBACK)
    if not (revocable or clawback):
        return ()
    evidence: list[str] = []
    if revocable:
        evidence.append("AUTH_REVOCABLE: issuer can freeze your balance")
    if clawback:
        evidence.append("AUTH_CLAWBACK: issuer can claw back your tokens")
    evidence.append("Do not open a trustline to this account")
    return (
        ThreatFinding(
            name="HONEYPOT_TOKEN",
            severity=Severity.CRITICAL,
            description="Token trap risk (freeze / clawback authority)",
            confidence=95,
            evidence=tuple(evidence),
        ),
    )


def detect_rapid_creation(
    facts: AccountFacts, reputation: ReputationSignal | None, reference: ReferenceData
) -> tuple[ThreatFinding, ...]:
    """Freshly created and idle, typical of bot-created throwaway accounts."""
    total = facts.activity.total_transactions
    if facts.age_days < RAPID_MAX_AGE_DAYS and total < RAPID_MAX_TRANSACTIONS:
        return (
            ThreatFinding(
                name="RAPID_CREATION",
                severity=Severity.HIGH,
                description="Newly created account with no activity",
                confidence=70,
                evidence=(
                    f"Account age: {facts.age_days} days",
                    f"Only {total} transaction(s)",
                    "May have been created by a bot as part of a scam campaign",
                ),
            ),
        )
    return ()


def address_similarity(addr1: str, addr2: str) -> float:
    """
    Percentage of matching positions across the first and last 10 characters.

    Returns 0 when either address is empty.
    """
    if not addr1 or not addr2:
        return 0.0
    n = SIMILARITY_PREFIX_LEN
    start1, start2 = addr1[:n], addr2[:n]
    end1, end2 = addr1[-n:], addr2[-n:]
    matches = 0
    for i in range(n):
        if i < len(start1) and i < len(start2) and start1[i] == start2[i]:
            matches += 1
        if i < len(end1) and i < len(end2) and end1[i] == end2[i]:
            matches += 1
    return matches / (2 * n) * 100


def detect_address_similarity(
    facts: AccountFacts, reputation: ReputationSignal | None, reference: ReferenceData
) -> tuple[ThreatFinding, ...]:
    """Look-alike of a known high-value address (typosquat)."""
    findings: list[ThreatFinding] = []
    for known in reference.known_addresses:
        if facts.address == known.address:
            continue
        similarity = address_similarity(facts.address, known.address)
        if similarity < SIMILARITY_THRESHOLD:
            continue
        findings.append(
            ThreatFinding(
                name="ADDRESS_SIMILARITY",
                severity=Severity.CRITICAL,
                description=f"Resembles the {known.name} address (phishing)",
                confidence=95,
                evidence=(
                    f"Original: {known.address[:20]}...",
                    f"This address: {facts.address[:20]}...",
                    f"Similarity: {similarity:.0f}%",
                    f"WARNING: this is NOT {known.name}",
                ),
            )
        )
    return tuple(findings)


DETECTORS: tuple[Detector, ...] = (
    detect_drain_wallet,
    detect_phishing_airdrop,
    detect_ponzi_scheme,
    detect_fake_exchange,
    detect_honeypot_token,
    detect_rapid_creation,
    detect_address_similarity,
)


def composite_confidence(findings: tuple[ThreatFinding, ...] | list[ThreatFinding]) -> float:
    """Severity-weighted average of finding confidences, clamped to [0, 100]."""
    if not findings:
        return 0.0
    total = sum(f.confidence * SEVERITY_WEIGHTS[f.severity] for f in findings)
    return max(0.0, min(100.0, total / len(findings)))


def recommendation_for(confidence: float) -> Recommendation:
    if confidence > BLOCK_THRESHOLD:
        return Recommendation.BLOCK
    if confidence > WARN_THRESHOLD:
        return Recommendation.WARN
    if confidence > CAUTION_THRESHOLD:
        return Recommendation.CAUTION
    return Recommendation.PROCEED


class FraudDetector:
    """Runs the detector battery with injected reference data."""

    def __init__(self, reference: ReferenceData, detectors: tuple[Detector, ...] = DETECTORS) -> None:
        self._reference = reference
        self._detectors = detectors

    def assess(self, facts: AccountFacts, reputation: ReputationSignal | None = None) -> FraudAssessment:
        findings: list[ThreatFinding] = []
        for detector in self._detectors:
            findings.extend(detector(facts, reputation, self._reference))
        confidence = composite_confidence(findings)
        assessment = FraudAssessment(
            findings=tuple(findings),
            confidence=confidence,
            is_fraud=confidence > FRAUD_DETECTED_THRESHOLD,
            recommendation=recommendation_for(confidence),
        )
        if findings:
            logger.info(
                "fraud_patterns_detected",
                address=short_address(facts.address),
                threats=[f.name for f in findings],
                confidence=round(confidence, 2),
                recommendation=assessment.recommendation.value,
            )
        return assessment


def rule_findings(facts: AccountFacts) -> tuple[ThreatFinding, ...]:
    """
    Explanatory findings for basic account facts.

    These do not feed the score; the scorer weighs the same facts itself.
    """
    findings: list[ThreatFinding] = []
    age = facts.age_days
    if age == 0:
        findings.append(
            ThreatFinding("NEW_ACCOUNT", Severity.CRITICAL, "Account was just created (0 days)", 40)
        )
    elif age < 7:
        findings.append(
            ThreatFinding("VERY_NEW_ACCOUNT", Severity.HIGH, f"Account is very new ({age} days)", 25)
        )
    elif age < 30:
        findings.append(
            ThreatFinding("YOUNG_ACCOUNT", Severity.MEDIUM, f"Young account ({age} days)", 15)
        )

    tx_count = facts.activity.total_transactions
    if tx_count == 0:
        findings.append(ThreatFinding("NO_HISTORY", Severity.HIGH, "No transaction history", 20))
    elif tx_count < 5:
        findings.append(
            ThreatFinding("LOW_ACTIVITY", Severity.MEDIUM, f"Few transactions ({tx_count})", 10)
        )

    if facts.native_balance == 0:
        findings.append(ThreatFinding("ZERO_BALANCE", Severity.MEDIUM, "Account holds no XLM", 10))
    return tuple(findings)
