"""
Tests for the pattern detectors (fraud_detector): trigger boundaries,
composite confidence, pre-screen tiers, and basic rule findings.
"""

from __future__ import annotations

import pytest

from backend_riskguard.analytics.fraud_detector import (
    FraudDetector,
    address_similarity,
    composite_confidence,
    detect_address_similarity,
    detect_drain_wallet,
    detect_fake_exchange,
    detect_honeypot_token,
    detect_phishing_airdrop,
    detect_ponzi_scheme,
    detect_rapid_creation,
    recommendation_for,
    rule_findings,
)
from backend_riskguard.analytics.models import Recommendation, Severity, ThreatFinding
from backend_riskguard.ledger.models import FLAG_AUTH_CLAWBACK, FLAG_AUTH_REQUIRED, FLAG_AUTH_REVOCABLE
from backend_riskguard.reputation.models import ReputationSignal

from conftest import BINANCE, KRAKEN, TARGET, addr, make_facts, payment


def _mutate(address: str, positions: list[int]) -> str:
    chars = list(address)
    for i in positions:
        chars[i] = "X" if chars[i] != "X" else "Y"
    return "".join(chars)


# -----------------------------------------------------------------------------
# Drain wallet
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    "incoming,outgoing,balance,fires",
    [
        (10, 10, 0.5, True),
        (9, 10, 0.5, False),
        (10, 9, 0.5, False),
        (10, 10, 0.999, True),
        (10, 10, 1.0, False),
        (25, 30, 0.0, True),
    ],
)
def test_drain_wallet_boundaries(reference, incoming, outgoing, balance, fires):
    """Fires iff incoming >= 10 and outgoing >= 10 and native balance < 1."""
    facts = make_facts(incoming=incoming, outgoing=outgoing, native_balance=balance)
    findings = detect_drain_wallet(facts, None, reference)
    assert bool(findings) is fires
    if fires:
        assert findings[0].name == "DRAIN_WALLET"
        assert findings[0].severity == Severity.CRITICAL
        assert findings[0].confidence == 85


def test_drain_wallet_no_native_balance_line_counts_as_zero(reference):
    """An account without a native balance line is treated as empty."""
    facts = make_facts(incoming=12, outgoing=12, native_balance=None)
    assert detect_drain_wallet(facts, None, reference)


# -----------------------------------------------------------------------------
# Phishing / airdrop
# -----------------------------------------------------------------------------


def test_phishing_airdrop_fires_on_young_account_with_giveaway_asset(reference):
    facts = make_facts(age_days=10, trustlines=("USDC", "FreeXLM", "AIRDROP1"))
    findings = detect_phishing_airdrop(facts, None, reference)
    assert len(findings) == 1
    finding = findings[0]
    assert finding.name == "PHISHING_AIRDROP"
    assert finding.severity == Severity.CRITICAL
    assert finding.confidence == 90
    assert "2 suspicious token(s)" in finding.evidence
    assert "FreeXLM, AIRDROP1" in finding.evidence


def test_phishing_airdrop_requires_age_below_30(reference):
    facts = make_facts(age_days=30, trustlines=("BONUS",))
    assert detect_phishing_airdrop(facts, None, reference) == ()


def test_phishing_airdrop_ignores_plain_assets(reference):
    facts = make_facts(age_days=1, trustlines=("USDC", "EURT"))
    assert detect_phishing_airdrop(facts, None, reference) == ()


# -----------------------------------------------------------------------------
# Ponzi
# -----------------------------------------------------------------------------


def _ponzi_payments(senders: int, recipients: int) -> tuple:
    incoming = [payment(addr(i), TARGET) for i in range(senders)]
    outgoing = [payment(TARGET, addr(1000 + i)) for i in range(recipients)]
    return tuple(incoming + outgoing)


def test_ponzi_fires_with_many_senders_few_recipients(reference):
    facts = make_facts(age_days=60, payments=_ponzi_payments(20, 4))
    findings = detect_ponzi_scheme(facts, None, reference)
    assert [f.name for f in findings] == ["PONZI_SCHEME"]
    assert findings[0].confidence == 75


@pytest.mark.parametrize(
    "senders,recipients,age",
    [(19, 1, 10), (20, 5, 10), (30, 0, 90)],
)
def test_ponzi_boundaries_not_triggered(reference, senders, recipients, age):
    facts = make_facts(age_days=age, payments=_ponzi_payments(senders, recipients))
    assert detect_ponzi_scheme(facts, None, reference) == ()


def test_ponzi_counts_distinct_senders(reference):
    """Repeated payments from the same sender count once."""
    repeated = tuple(payment(addr(1), TARGET) for _ in range(40))
    facts = make_facts(age_days=5, payments=repeated)
    assert detect_ponzi_scheme(facts, None, reference) == ()


# -----------------------------------------------------------------------------
# Fake exchange
# -----------------------------------------------------------------------------


def test_fake_exchange_fires_for_young_unverified_brand_domain(reference):
    facts = make_facts(age_days=20, home_domain="Binance-Support.io")
    findings = detect_fake_exchange(facts, None, reference)
    assert len(findings) == 1
    assert findings[0].name == "FAKE_EXCHANGE"
    assert findings[0].confidence == 80
    assert "binance" in findings[0].evidence[2]


def test_fake_exchange_suppressed_for_verified_organization(reference):
    facts = make_facts(age_days=20, home_domain="kraken.com")
    rep = ReputationSignal(trust_score=95, is_verified_organization=True, has_account_reputation=True)
    assert detect_fake_exchange(facts, rep, reference) == ()


def test_fake_exchange_domain_verification_alone_does_not_suppress(reference):
    """Only the directory's verified-organization signal suppresses the detector."""
    facts = make_facts(age_days=20, home_domain="my-exchange.io")
    rep = ReputationSignal(domain_ownership_verified=True, domain="my-exchange.io", has_domain_verification=True)
    assert detect_fake_exchange(facts, rep, reference)


@pytest.mark.parametrize("age,domain", [(180, "coinbase.pro"), (20, "stellar.org"), (20, None)])
def test_fake_exchange_not_triggered(reference, age, domain):
    facts = make_facts(age_days=age, home_domain=domain)
    assert detect_fake_exchange(facts, None, reference) == ()


# -----------------------------------------------------------------------------
# Honeypot
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("flags", [(FLAG_AUTH_REVOCABLE,), (FLAG_AUTH_CLAWBACK,), (FLAG_AUTH_REVOCABLE, FLAG_AUTH_CLAWBACK)])
def test_honeypot_fires_on_freeze_or_clawback(reference, flags):
    """Scenario C: the freeze flag alone is enough, regardless of other facts."""
    facts = make_facts(age_days=2000, tx_count=100, signer_count=3, flags=flags, home_domain="stellar.org")
    findings = detect_honeypot_token(facts, None, reference)
    assert len(findings) == 1
    assert findings[0].name == "HONEYPOT_TOKEN"
    assert findings[0].severity == Severity.CRITICAL
    assert findings[0].confidence == 95


def test_honeypot_ignores_auth_required(reference):
    facts = make_facts(flags=(FLAG_AUTH_REQUIRED,))
    assert detect_honeypot_token(facts, None, reference) == ()


# -----------------------------------------------------------------------------
# Rapid creation
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("age,tx,fires", [(0, 0, True), (2, 1, True), (3, 0, False), (1, 2, False)])
def test_rapid_creation(reference, age, tx, fires):
    findings = detect_rapid_creation(make_facts(age_days=age, tx_count=tx), None, reference)
    assert bool(findings) is fires
    if fires:
        assert findings[0].severity == Severity.HIGH
        assert findings[0].confidence == 70


# -----------------------------------------------------------------------------
# Address similarity
# -----------------------------------------------------------------------------


def test_address_similarity_identical_and_empty():
    assert address_similarity(BINANCE, BINANCE) == 100.0
    assert address_similarity("", BINANCE) == 0.0


def test_address_similarity_lookalike_fires():
    """Scenario D: same first/last 10 characters, different middle."""
    lookalike = _mutate(BINANCE, [20, 21, 22])
    assert address_similarity(lookalike, BINANCE) == 100.0


def test_address_similarity_detector_scenario(reference):
    lookalike = _mutate(BINANCE, [20, 21, 22])
    findings = detect_address_similarity(make_facts(address=lookalike), None, reference)
    assert len(findings) == 1
    assert findings[0].name == "ADDRESS_SIMILARITY"
    assert findings[0].severity == Severity.CRITICAL
    assert findings[0].confidence == 95
    assert "Binance" in findings[0].description


def test_address_similarity_threshold_is_inclusive(reference):
    """14 of 20 positions (70%) fires; 13 of 20 (65%) does not."""
    at_70 = _mutate(BINANCE, [1, 2, 3, 50, 51, 52])
    at_65 = _mutate(BINANCE, [1, 2, 3, 4, 50, 51, 52])
    assert address_similarity(at_70, BINANCE) == 70.0
    assert address_similarity(at_65, BINANCE) == 65.0
    assert detect_address_similarity(make_facts(address=at_70), None, reference)
    assert detect_address_similarity(make_facts(address=at_65), None, reference) == ()


def test_address_similarity_exact_match_is_not_flagged(reference):
    assert detect_address_similarity(make_facts(address=KRAKEN), None, reference) == ()


# -----------------------------------------------------------------------------
# Composite and detector battery
# -----------------------------------------------------------------------------


def test_composite_confidence_weighted_average():
    findings = [
        ThreatFinding("A", Severity.HIGH, "a", 70),
        ThreatFinding("B", Severity.LOW, "b", 50),
    ]
    # (70*1.2 + 50*0.7) / 2 = (84 + 35) / 2
    assert composite_confidence(findings) == pytest.approx(59.5)


def test_composite_confidence_clamped_and_empty():
    assert composite_confidence([ThreatFinding("X", Severity.CRITICAL, "x", 95)]) == 100.0
    assert composite_confidence([]) == 0.0


@pytest.mark.parametrize(
    "confidence,tier",
    [(81, Recommendation.BLOCK), (80, Recommendation.WARN), (61, Recommendation.WARN),
     (60, Recommendation.CAUTION), (41, Recommendation.CAUTION), (40, Recommendation.PROCEED)],
)
def test_recommendation_tiers(confidence, tier):
    assert recommendation_for(confidence) == tier


def test_fraud_detector_clean_account(reference):
    assessment = FraudDetector(reference).assess(make_facts(age_days=400, tx_count=80))
    assert assessment.findings == ()
    assert assessment.is_fraud is False
    assert assessment.recommendation == Recommendation.PROCEED


def test_fraud_detector_rapid_creation_only_is_fraud(reference):
    """A single HIGH/70 finding weighs 84 > 60."""
    assessment = FraudDetector(reference).assess(make_facts(age_days=0, tx_count=0))
    assert [f.name for f in assessment.findings] == ["RAPID_CREATION"]
    assert assessment.confidence == pytest.approx(84.0)
    assert assessment.is_fraud is True
    assert assessment.recommendation == Recommendation.BLOCK


def test_fraud_detector_uses_injected_reference_data():
    from backend_riskguard.analytics.reference_data import KnownAddress, ReferenceData

    custom = ReferenceData(known_addresses=(KnownAddress("Anchor", TARGET),), exchange_brands=("lumenswap",))
    lookalike = _mutate(TARGET, [25])
    facts = make_facts(address=lookalike, age_days=10, home_domain="lumenswap.exchange.io")
    names = [f.name for f in FraudDetector(custom).assess(facts).findings]
    assert "ADDRESS_SIMILARITY" in names
    assert "FAKE_EXCHANGE" in names


# -----------------------------------------------------------------------------
# Basic rule findings
# -----------------------------------------------------------------------------


def test_rule_findings_brand_new_empty_account():
    names = {f.name: f for f in rule_findings(make_facts(age_days=0, tx_count=0, native_balance=0.0))}
    assert set(names) == {"NEW_ACCOUNT", "NO_HISTORY", "ZERO_BALANCE"}
    assert names["NEW_ACCOUNT"].severity == Severity.CRITICAL
    assert names["NEW_ACCOUNT"].confidence == 40


@pytest.mark.parametrize(
    "age,tx,expected",
    [
        (3, 3, {"VERY_NEW_ACCOUNT", "LOW_ACTIVITY"}),
        (15, 10, {"YOUNG_ACCOUNT"}),
        (30, 5, set()),
    ],
)
def test_rule_findings_steps(age, tx, expected):
    assert {f.name for f in rule_findings(make_facts(age_days=age, tx_count=tx))} == expected
