"""
Tests for the additive risk scorer: step tables, clamping, level thresholds,
trust-score absence vs zero, and the end-to-end scoring scenarios.
"""

from __future__ import annotations

import pytest

from backend_riskguard.analytics.models import FraudAssessment, Recommendation, RiskLevel, Severity, ThreatFinding
from backend_riskguard.analytics.risk_scorer import (
    ScoringWeights,
    age_factor,
    balance_factor,
    clamp_score,
    history_factor,
    risk_level_for,
    score_account,
)
from backend_riskguard.reputation.models import ReputationSignal

from conftest import make_facts


def _points(factor):
    return factor.points if factor is not None else 0


@pytest.mark.parametrize(
    "age,points",
    [(0, 20), (1, 18), (2, 18), (3, 15), (6, 15), (7, 10), (29, 10), (30, 0), (365, 0), (366, -10), (400, -10)],
)
def test_age_contribution_steps(age, points):
    assert _points(age_factor(age)) == points


def test_age_contribution_never_increases_with_age():
    values = [_points(age_factor(age)) for age in range(0, 401)]
    assert all(later <= earlier for earlier, later in zip(values, values[1:]))


@pytest.mark.parametrize(
    "tx,points",
    [(0, 15), (1, 12), (4, 12), (5, 8), (19, 8), (20, 0), (100, 0), (101, -5), (150, -5)],
)
def test_history_contribution_steps(tx, points):
    assert _points(history_factor(tx)) == points


@pytest.mark.parametrize("balance,points", [(0.0, 10), (0.5, 5), (0.999, 5), (1.0, 0), (50.0, 0)])
def test_balance_contribution(balance, points):
    assert _points(balance_factor(balance)) == points


@pytest.mark.parametrize(
    "score,level",
    [(0, RiskLevel.SAFE), (20, RiskLevel.SAFE), (21, RiskLevel.LOW), (40, RiskLevel.LOW),
     (41, RiskLevel.MEDIUM), (60, RiskLevel.MEDIUM), (61, RiskLevel.HIGH), (80, RiskLevel.HIGH),
     (81, RiskLevel.CRITICAL), (100, RiskLevel.CRITICAL)],
)
def test_risk_level_thresholds_are_strict(score, level):
    assert risk_level_for(score) == level


def test_clamp_score_bounds():
    assert clamp_score(-45) == 0
    assert clamp_score(180.4) == 100
    assert clamp_score(55.6) == 56


def test_absent_trust_score_is_neutral_and_zero_is_not():
    facts = make_facts(age_days=200, tx_count=50)
    absent = score_account(facts, None)
    omitted = score_account(facts, ReputationSignal(trust_score=None, has_domain_verification=True, domain="x.io"))
    zero = score_account(facts, ReputationSignal(trust_score=0, has_account_reputation=True))
    assert absent.score == 0
    assert omitted.score == 0
    assert zero.score == 10
    assert [f.name for f in zero.factors] == ["Trust Score"]


def test_high_trust_and_verified_entity_reduce_score():
    facts = make_facts(age_days=0, tx_count=0, native_balance=0.0)
    rep = ReputationSignal(
        trust_score=95,
        is_verified_organization=True,
        organization_name="Example Anchor",
        has_account_reputation=True,
    )
    breakdown = score_account(facts, rep)
    # 20 + 15 + 10 - 15 - 20
    assert breakdown.raw_total == 10
    assert breakdown.score == 10
    assert any(f.reason == "Verified: Example Anchor" for f in breakdown.factors)


def test_toml_verified_domain_counts_as_verified_entity():
    facts = make_facts(age_days=200, tx_count=50, home_domain="anchor.example")
    rep = ReputationSignal(domain_ownership_verified=True, domain="anchor.example", has_domain_verification=True)
    breakdown = score_account(facts, rep)
    # home domain -5, verified entity -20, clamped at 0
    assert breakdown.raw_total == -25
    assert breakdown.score == 0


def test_fraud_confidence_added_only_when_detected():
    facts = make_facts(age_days=200, tx_count=50)
    finding = ThreatFinding("HONEYPOT_TOKEN", Severity.CRITICAL, "trap", 95)
    detected = FraudAssessment((finding,), 100.0, True, Recommendation.BLOCK)
    not_detected = FraudAssessment((), 50.0, False, Recommendation.CAUTION)
    assert score_account(facts, None, detected).score == 100
    assert score_account(facts, None, not_detected).score == 0


def test_payment_ratio_and_large_payment_factors():
    facts = make_facts(age_days=200, tx_count=50, incoming=11, outgoing=1, largest=1001.0, average=10.0)
    names = [f.name for f in score_account(facts).factors]
    assert names == ["Payment Pattern", "Transaction Size"]
    assert score_account(facts).score == 20


def test_payment_ratio_uses_one_when_no_outgoing():
    assert [f.name for f in score_account(make_facts(incoming=11, outgoing=0)).factors] == ["Payment Pattern"]
    assert score_account(make_facts(incoming=10, outgoing=0)).factors == ()


def test_large_payment_requires_positive_average():
    facts = make_facts(largest=500.0, average=0.0)
    assert score_account(facts).factors == ()


def test_score_always_within_bounds():
    worst = make_facts(age_days=0, tx_count=0, native_balance=0.0, incoming=50, outgoing=0, largest=1e6, average=1.0)
    finding = ThreatFinding("DRAIN_WALLET", Severity.CRITICAL, "d", 85)
    fraud = FraudAssessment((finding,), 100.0, True, Recommendation.BLOCK)
    best = make_facts(age_days=5000, tx_count=150, signer_count=3, home_domain="x.org")
    rep = ReputationSignal(trust_score=99, is_verified_organization=True, domain_ownership_verified=True)
    assert score_account(worst, ReputationSignal(trust_score=0), fraud).score == 100
    assert score_account(best, rep).score == 0


def test_scenario_brand_new_account():
    """Age 0, no history, zero balance, no enrichment: at least 45 and MEDIUM or higher."""
    breakdown = score_account(make_facts(age_days=0, tx_count=0, native_balance=0.0))
    assert breakdown.score >= 45
    assert breakdown.risk_level in (RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL)


def test_scenario_established_verified_account():
    """400 days, 150 tx, multisig, home domain, trust 90: at most 10 and SAFE."""
    facts = make_facts(age_days=400, tx_count=150, signer_count=2, home_domain="example.org")
    rep = ReputationSignal(trust_score=90, has_account_reputation=True)
    breakdown = score_account(facts, rep)
    assert breakdown.score <= 10
    assert breakdown.risk_level == RiskLevel.SAFE


def test_custom_weights_table():
    weights = ScoringWeights(zero_balance_points=30)
    facts = make_facts(age_days=200, tx_count=50, native_balance=0.0)
    assert score_account(facts, weights=weights).score == 30
