"""
Risk analytics: pattern detectors, connection scanner, risk scorer,
explanation generator, and the analyze() pipeline.
"""

from backend_riskguard.analytics.analytics_pipeline import RiskAnalyzer, analyze
from backend_riskguard.analytics.fraud_detector import FraudDetector
from backend_riskguard.analytics.models import (
    AnalysisResult,
    ConnectionRecord,
    RiskLevel,
    Severity,
    ThreatFinding,
    TransactionContext,
)
from backend_riskguard.analytics.reference_data import ReferenceData
from backend_riskguard.analytics.risk_scorer import risk_level_for, score_account

__all__ = [
    "RiskAnalyzer",
    "analyze",
    "FraudDetector",
    "AnalysisResult",
    "ConnectionRecord",
    "RiskLevel",
    "Severity",
    "ThreatFinding",
    "TransactionContext",
    "ReferenceData",
    "risk_level_for",
    "score_account",
]
