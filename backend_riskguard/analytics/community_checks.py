"""
Store checks on the analyzed address itself: blacklist membership and
community reports (verified or pending).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from backend_riskguard.analytics.connection_scanner import BlacklistLookup
from backend_riskguard.analytics.models import CommunityInfo, Severity, ThreatFinding
from backend_riskguard.core.exceptions import StoreUnavailable
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

MAX_REPORTS = 10
LATEST_REPORTS_SHOWN = 3
REPORT_STATUS_VERIFIED = "verified"


class _Report(Protocol):
    title: str | None
    scam_type: str | None
    status: str
    upvotes: int

    def to_dict(self) -> dict[str, Any]: ...


class AddressReportLookup(Protocol):
    def find_for_address(self, address: str, limit: int = MAX_REPORTS) -> list[_Report]: ...


@dataclass(frozen=True)
class CommunityCheck:
    info: CommunityInfo
    findings: tuple[ThreatFinding, ...]

    @property
    def is_blacklisted(self) -> bool:
        return self.info.is_blacklisted


def _report_finding(reports: list[_Report]) -> ThreatFinding:
    verified = sum(1 for r in reports if r.status == REPORT_STATUS_VERIFIED)
    upvotes = sum(r.upvotes or 0 for r in reports)
    if verified:
        severity, confidence = Severity.CRITICAL, 50
        description = f"{verified} verified community report(s)"
    else:
        severity, confidence = Severity.HIGH, 30
        description = f"{len(reports)} pending community report(s)"
    if upvotes:
        description += f" ({upvotes} upvotes)"
    if reports[0].title:
        description += f'. Latest report: "{reports[0].title}"'
    evidence = tuple(
        f"{r.title or 'Untitled'} [{r.status}, {r.upvotes or 0} upvotes]" for r in reports
    )
    return ThreatFinding(
        name="COMMUNITY_REPORTS",
        severity=severity,
        description=description,
        confidence=confidence,
        evidence=evidence,
    )


def check_address(
    address: str,
    blacklist: BlacklistLookup,
    reports: AddressReportLookup,
) -> CommunityCheck | None:
    """
    Look the address up in both stores. None (logged) when a store fails;
    the result then has no community block and no store findings.
    """
    try:
        blacklisted = blacklist.find_active([address])
        found_reports = reports.find_for_address(address, limit=MAX_REPORTS)
    except StoreUnavailable as e:
        logger.warning("community_check_store_unavailable", address=short_address(address), error=str(e))
        return None

    findings: list[ThreatFinding] = []
    reason: str | None = None
    if blacklisted:
        reason = blacklisted[0].reason or "Known scam address"
        findings.append(
            ThreatFinding(
                name="BLACKLISTED",
                severity=Severity.CRITICAL,
                description=f"BLACKLISTED: {reason}",
                confidence=100,
                evidence=(reason,),
            )
        )
        logger.info("address_blacklisted", address=short_address(address))
    if found_reports:
        findings.append(_report_finding(found_reports))

    verified = sum(1 for r in found_reports if r.status == REPORT_STATUS_VERIFIED)
    info = CommunityInfo(
        is_blacklisted=bool(blacklisted),
        blacklist_reason=reason,
        report_count=len(found_reports),
        verified_report_count=verified,
        pending_report_count=len(found_reports) - verified,
        latest_reports=tuple(r.to_dict() for r in found_reports[:LATEST_REPORTS_SHOWN]),
    )
    return CommunityCheck(info=info, findings=tuple(findings))
