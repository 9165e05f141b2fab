"""
Reputation enrichment records.

Each enricher yields its own optional record; ReputationSignal.combine merges
them into the single optional signal consumed by detectors and the scorer.
Absence is neutral: a missing record never counts against an account.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

ORG_CATEGORIES = ("exchange", "validator", "anchor")


@dataclass(frozen=True)
class AccountRatings:
    """Sub-ratings reported by the reputation directory (each 0-10)."""

    age: float = 0.0
    volume: float = 0.0
    trust: float = 0.0

    @classmethod
    def from_api(cls, raw: Any) -> "AccountRatings | None":
        if not isinstance(raw, dict) or not raw:
            return None

        def _num(key: str) -> float:
            try:
                return float(raw.get(key) or 0)
            except (TypeError, ValueError):
                return 0.0

        return cls(age=_num("age"), volume=_num("volume"), trust=_num("trust"))


@dataclass(frozen=True)
class ExpertAccount:
    """Account record from the reputation service's account endpoint."""

    address: str
    payments: int = 0
    trades: int = 0
    trustlines: int = 0
    offers: int = 0
    ratings: AccountRatings | None = None
    tags: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, address: str, data: dict[str, Any]) -> "ExpertAccount":
        return cls(
            address=str(data.get("address") or address),
            payments=int(data.get("payments") or 0),
            trades=int(data.get("trades") or 0),
            trustlines=int(data.get("trustlines") or 0),
            offers=int(data.get("offers") or 0),
            ratings=AccountRatings.from_api(data.get("ratings")),
            tags=tuple(str(t).lower() for t in data.get("tags") or []),
        )


@dataclass(frozen=True)
class DirectoryEntry:
    """Directory listing; being listed means the organization is verified."""

    address: str
    name: str | None = None
    domain: str | None = None
    tags: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, address: str, data: dict[str, Any]) -> "DirectoryEntry":
        return cls(
            address=str(data.get("address") or address),
            name=data.get("name"),
            domain=data.get("domain"),
            tags=tuple(str(t).lower() for t in data.get("tags") or []),
        )


@dataclass(frozen=True)
class AccountReputation:
    """Output of the account-reputation enricher."""

    trust_score: int | None
    is_verified_organization: bool
    organization_category: str | None = None
    organization_name: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class DomainVerification:
    """Output of the domain-ownership enricher."""

    verified: bool
    domain: str
    org_name: str | None = None
    org_email: str | None = None


@dataclass(frozen=True)
class ReputationSignal:
    """
    Combined optional enrichment.

    trust_score None means "no score available" (neutral); 0 is a reported
    zero score, which the scorer treats as uninformative.
    """

    trust_score: int | None = None
    is_verified_organization: bool = False
    organization_category: str | None = None
    organization_name: str | None = None
    tags: tuple[str, ...] = ()
    domain_ownership_verified: bool = False
    domain: str | None = None
    domain_org_name: str | None = None
    domain_org_email: str | None = None
    has_account_reputation: bool = False
    has_domain_verification: bool = False

    @property
    def is_verified_entity(self) -> bool:
        """Verified by the directory or by a domain manifest listing the account."""
        return self.is_verified_organization or self.domain_ownership_verified

    @classmethod
    def combine(
        cls,
        account: AccountReputation | None,
        domain: DomainVerification | None,
    ) -> "ReputationSignal | None":
        if account is None and domain is None:
            return None
        return cls(
            trust_score=account.trust_score if account else None,
            is_verified_organization=account.is_verified_organization if account else False,
            organization_category=account.organization_category if account else None,
            organization_name=account.organization_name if account else None,
            tags=account.tags if account else (),
            domain_ownership_verified=bool(domain and domain.verified),
            domain=domain.domain if domain else None,
            domain_org_name=domain.org_name if domain else None,
            domain_org_email=domain.org_email if domain else None,
            has_account_reputation=account is not None,
            has_domain_verification=domain is not None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.has_account_reputation:
            out["account_reputation"] = {
                "trust_score": self.trust_score,
                "is_verified_organization": self.is_verified_organization,
                "organization_category": self.organization_category,
                "organization_name": self.organization_name,
                "tags": list(self.tags),
            }
        if self.has_domain_verification:
            out["domain_verification"] = {
                "verified": self.domain_ownership_verified,
                "domain": self.domain,
                "org_name": self.domain_org_name,
                "org_email": self.domain_org_email,
            }
        return out
