"""
Reputation enrichment: account rating / directory lookups and stellar.toml
domain ownership. Both enrichers fail soft (return None).
"""

from backend_riskguard.reputation.expert_client import StellarExpertClient, calculate_trust_score
from backend_riskguard.reputation.models import (
    AccountReputation,
    DomainVerification,
    ReputationSignal,
)
from backend_riskguard.reputation.toml_verifier import TomlVerifier

__all__ = [
    "StellarExpertClient",
    "TomlVerifier",
    "calculate_trust_score",
    "AccountReputation",
    "DomainVerification",
    "ReputationSignal",
]
