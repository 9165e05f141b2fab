"""
Core utilities: exception taxonomy shared by the ledger, reputation,
analytics, database, and API layers.
"""

from backend_riskguard.core.exceptions import (
    AccountNotFound,
    EnrichmentUnavailable,
    ExplanationGenerationFailed,
    InvalidAddress,
    RiskGuardError,
    StoreUnavailable,
    UpstreamUnavailable,
)

__all__ = [
    "RiskGuardError",
    "InvalidAddress",
    "AccountNotFound",
    "UpstreamUnavailable",
    "EnrichmentUnavailable",
    "StoreUnavailable",
    "ExplanationGenerationFailed",
]
