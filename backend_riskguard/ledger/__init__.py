"""
Ledger data collection: typed AccountFacts built from the Horizon read API.
"""

from backend_riskguard.ledger.collector import LedgerDataCollector
from backend_riskguard.ledger.models import AccountFacts, ActivityMetrics, Balance, PaymentRecord

__all__ = [
    "LedgerDataCollector",
    "AccountFacts",
    "ActivityMetrics",
    "Balance",
    "PaymentRecord",
]
