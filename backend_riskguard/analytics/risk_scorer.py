"""
Risk scorer: additive 0-100 score from account facts, enrichment, and the
fraud-detector composite.

The whole policy lives in ScoringWeights (one declarative table) and is
applied by score_account(); every contribution is returned as a ScoreFactor
so it can be audited and tested in isolation. The sum may go negative before
clamping; flooring at 0 is intended.

Risk levels here (>80 / >60 / >40 / >20) are the final scale and differ from
the detector pre-screen tiers in fraud_detector.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_riskguard.analytics.models import FraudAssessment, RiskLevel, ScoreFactor
from backend_riskguard.ledger.models import AccountFacts
from backend_riskguard.reputation.models import ReputationSignal
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

SCORE_MIN = 0
SCORE_MAX = 100


@dataclass(frozen=True)
class ScoringWeights:
    """
    Scoring policy. Step tables are (exclusive upper bound, points), checked
    in order; the first bound the value is below wins.
    """

    age_steps: tuple[tuple[int, float], ...] = ((1, 20), (3, 18), (7, 15), (30, 10))
    age_established_days: int = 365
    age_established_points: float = -10

    tx_steps: tuple[tuple[int, float], ...] = ((1, 15), (5, 12), (20, 8))
    tx_active_count: int = 100
    tx_active_points: float = -5

    zero_balance_points: float = 10
    low_balance_threshold: float = 1.0
    low_balance_points: float = 5

    multisig_points: float = -10
    home_domain_points: float = -5

    high_trust_threshold: int = 80
    high_trust_points: float = -15
    uninformative_trust_points: float = 10

    verified_entity_points: float = -20

    inflow_ratio_threshold: float = 10.0
    inflow_ratio_points: float = 12

    large_payment_multiple: float = 100.0
    large_payment_points: float = 8


DEFAULT_WEIGHTS = ScoringWeights()

# Strict lower bounds: score > bound
RISK_LEVEL_THRESHOLDS = (
    (80, RiskLevel.CRITICAL),
    (60, RiskLevel.HIGH),
    (40, RiskLevel.MEDIUM),
    (20, RiskLevel.LOW),
)


@dataclass(frozen=True)
class ScoreBreakdown:
    score: int
    risk_level: RiskLevel
    factors: tuple[ScoreFactor, ...]
    raw_total: float


def risk_level_for(score: int | float) -> RiskLevel:
    for bound, level in RISK_LEVEL_THRESHOLDS:
        if score > bound:
            return level
    return RiskLevel.SAFE


def clamp_score(value: float) -> int:
    return int(round(max(SCORE_MIN, min(SCORE_MAX, value))))


def _step_points(value: int, steps: tuple[tuple[int, float], ...]) -> float | None:
    for bound, points in steps:
        if value < bound:
            return points
    return None


def age_factor(age_days: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> ScoreFactor | None:
    points = _step_points(age_days, weights.age_steps)
    if points is not None:
        if age_days == 0:
            reason = "Brand new account (0 days)"
        elif age_days < 3:
            reason = f"Very new ({age_days} days)"
        elif age_days < 7:
            reason = f"New account ({age_days} days)"
        else:
            reason = f"Young account ({age_days} days)"
        return ScoreFactor("Account Age", points, reason)
    if age_days > weights.age_established_days:
        return ScoreFactor("Account Age", weights.age_established_points, f"Established account ({age_days} days)")
    return None


def history_factor(tx_count: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> ScoreFactor | None:
    points = _step_points(tx_count, weights.tx_steps)
    if points is not None:
        reason = "No transaction history" if tx_count == 0 else f"Limited history ({tx_count} tx)"
        return ScoreFactor("History", points, reason)
    if tx_count > weights.tx_active_count:
        return ScoreFactor("History", weights.tx_active_points, f"Active history ({tx_count} tx)")
    return None


def balance_factor(native_balance: float, weights: ScoringWeights = DEFAULT_WEIGHTS) -> ScoreFactor | None:
    if native_balance == 0:
        return ScoreFactor("Balance", weights.zero_balance_points, "Zero balance")
    if native_balance < weights.low_balance_threshold:
        return ScoreFactor("Balance", weights.low_balance_points, "Very low balance")
    return None


def trust_factor(reputation: ReputationSignal | None, weights: ScoringWeights = DEFAULT_WEIGHTS) -> ScoreFactor | None:
    """Absent trust score is neutral; a known-but-uninformative score (0) is not."""
    trust = reputation.trust_score if reputation is not None else None
    if trust is None:
        return None
    if trust > weights.high_trust_threshold:
        return ScoreFactor("Trust Score", weights.high_trust_points, f"High trust ({trust}/100)")
    if trust == 0:
        return ScoreFactor("Trust Score", weights.uninformative_trust_points, "No trust score")
    return None


def verified_entity_factor(
    reputation: ReputationSignal | None, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> ScoreFactor | None:
    if reputation is None or not reputation.is_verified_entity:
        return None
    name = reputation.organization_name or reputation.domain_org_name or reputation.domain or "organization"
    return ScoreFactor("Verified", weights.verified_entity_points, f"Verified: {name}")


def score_account(
    facts: AccountFacts,
    reputation: ReputationSignal | None = None,
    fraud: FraudAssessment | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> ScoreBreakdown:
    """Apply the weight table. Pure: same inputs, same breakdown."""
    factors: list[ScoreFactor] = []

    def add(factor: ScoreFactor | None) -> None:
        if factor is not None:
            factors.append(factor)

    activity = facts.activity
    add(age_factor(facts.age_days, weights))
    add(history_factor(activity.total_transactions, weights))
    add(balance_factor(facts.native_balance, weights))
    if facts.is_multi_signature:
        add(ScoreFactor("Security", weights.multisig_points, "Multi-signature enabled"))
    if facts.has_verified_domain:
        add(ScoreFactor("Domain", weights.home_domain_points, "Has home domain"))
    add(trust_factor(reputation, weights))
    add(verified_entity_factor(reputation, weights))
    if fraud is not None and fraud.is_fraud:
        add(
            ScoreFactor(
                "Fraud Patterns",
                round(fraud.confidence, 2),
                f"{len(fraud.findings)} fraud pattern(s) detected",
            )
        )
    ratio = activity.incoming_payments / max(activity.outgoing_payments, 1)
    if ratio > weights.inflow_ratio_threshold:
        add(ScoreFactor("Payment Pattern", weights.inflow_ratio_points, "Unusual incoming/outgoing ratio"))
    average = activity.average_payment
    if average > 0 and activity.largest_payment > average * weights.large_payment_multiple:
        add(ScoreFactor("Transaction Size", weights.large_payment_points, "Unusually large transactions detected"))

    raw_total = sum(f.points for f in factors)
    score = clamp_score(raw_total)
    level = risk_level_for(score)
    logger.debug(
        "risk_score_computed",
        address=short_address(facts.address),
        score=score,
        raw_total=raw_total,
        factors=[f.name for f in factors],
    )
    return ScoreBreakdown(score=score, risk_level=level, factors=tuple(factors), raw_total=raw_total)
