"""
Application-level exceptions.

Only AccountNotFound and UpstreamUnavailable are observable by callers of
analyze(); the enrichment, store, and explanation errors are absorbed where
they occur and downgraded to an absent signal plus a log event.
"""

from __future__ import annotations


class RiskGuardError(Exception):
    """Base error with a stable code for API responses and logs."""

    code = "RISKGUARD_ERROR"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class InvalidAddress(RiskGuardError):
    code = "INVALID_ADDRESS"


class AccountNotFound(RiskGuardError):
    """The address has no ledger presence (never funded). Not retryable."""

    code = "ACCOUNT_NOT_FOUND"

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Account not found: {address}")


class UpstreamUnavailable(RiskGuardError):
    """Ledger API transient failure or timeout. Fatal to the analysis."""

    code = "UPSTREAM_UNAVAILABLE"


class EnrichmentUnavailable(RiskGuardError):
    """Reputation or domain lookup failed. Never fatal."""

    code = "ENRICHMENT_UNAVAILABLE"


class StoreUnavailable(RiskGuardError):
    """Blacklist / community report store failed. Never fatal."""

    code = "STORE_UNAVAILABLE"


class ExplanationGenerationFailed(RiskGuardError):
    """Generative-text call failed; callers fall back to templates."""

    code = "EXPLANATION_GENERATION_FAILED"
