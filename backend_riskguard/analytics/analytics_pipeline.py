"""
Analytics pipeline: analyze(address, network, context) -> AnalysisResult.

Ledger facts first (hard dependency), then the two reputation enrichers and
both store checks concurrently, then the detector battery, scoring, and the
explanation. Only AccountNotFound (converted to a labeled unfunded-account
result) and UpstreamUnavailable (propagated) are observable; every other
failure leaves its optional block absent.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

import httpx

from backend_riskguard.analytics.community_checks import AddressReportLookup, CommunityCheck, check_address
from backend_riskguard.analytics.connection_scanner import (
    BlacklistLookup,
    ConnectionScanner,
    VerifiedReportLookup,
    connection_finding,
)
from backend_riskguard.analytics.explanation import (
    ExplanationContext,
    ExplanationGenerator,
    recommendations_for,
    short_recommendation,
    verification_badges,
)
from backend_riskguard.analytics.fraud_detector import FraudDetector, rule_findings
from backend_riskguard.analytics.models import (
    AnalysisResult,
    ConnectionScanResult,
    RiskLevel,
    Severity,
    ThreatFinding,
    TransactionContext,
    merge_findings,
)
from backend_riskguard.analytics.reference_data import ReferenceData
from backend_riskguard.analytics.risk_scorer import SCORE_MAX, score_account
from backend_riskguard.config import Settings, get_settings
from backend_riskguard.config.env import normalize_network
from backend_riskguard.core.concurrency import gather_or_cancel
from backend_riskguard.core.exceptions import AccountNotFound
from backend_riskguard.database import BlacklistStore, ReportStore
from backend_riskguard.ledger.collector import LedgerDataCollector
from backend_riskguard.ledger.models import AccountFacts
from backend_riskguard.reputation.expert_client import StellarExpertClient
from backend_riskguard.reputation.models import AccountReputation, DomainVerification, ReputationSignal
from backend_riskguard.reputation.toml_verifier import TomlVerifier
from backend_riskguard.riskguard_logging import bind_address

UNFUNDED_SCORE = 50
UNFUNDED_EXPLANATION = (
    "This address has never been funded and does not exist on the ledger yet. "
    "Funds sent here will create the account, so a typo cannot be undone. "
    "Verify the address before sending."
)
UNFUNDED_RECOMMENDATIONS = ("Verify the address", "Test with a small amount first")


class _ReportStore(VerifiedReportLookup, AddressReportLookup, Protocol):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RiskAnalyzer:
    """
    Wires the pipeline stages. Every collaborator is injectable; defaults are
    built from Settings. Pass blacklist/reports=None to skip the store checks.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        reference: ReferenceData | None = None,
        client: httpx.AsyncClient | None = None,
        blacklist: BlacklistLookup | None = None,
        reports: _ReportStore | None = None,
        explainer: ExplanationGenerator | None = None,
        collector_factory: Callable[[str], LedgerDataCollector] | None = None,
        reputation_factory: Callable[[str], StellarExpertClient] | None = None,
        toml_verifier: TomlVerifier | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock
        self._detector = FraudDetector(reference or ReferenceData.load(self._settings))
        self._blacklist = blacklist
        self._reports = reports
        self._explainer = explainer or ExplanationGenerator.from_settings(self._settings, client=client)
        self._collector_factory = collector_factory or (
            lambda network: LedgerDataCollector.for_network(network, self._settings, client=client, clock=clock)
        )
        self._reputation_factory = reputation_factory or (
            lambda network: StellarExpertClient.for_network(network, self._settings, client=client)
        )
        self._toml_verifier = toml_verifier or TomlVerifier.from_settings(self._settings, client=client)

    async def analyze(
        self,
        address: str,
        network: str | None = None,
        context: TransactionContext | None = None,
    ) -> AnalysisResult:
        network = normalize_network(network or self._settings.network)
        log = bind_address(address)
        log.info("analysis_start", network=network)

        try:
            facts = await self._collector_factory(network).collect(address)
        except AccountNotFound:
            log.info("analysis_account_not_found", network=network)
            return self._unfunded_result(address, network, context)

        account_rep, domain, community, scan = await gather_or_cancel(
            self._reputation_factory(network).lookup(address),
            self._toml_verifier.verify(address, facts.home_domain),
            self._check_community(address),
            self._scan_connections(facts),
        )
        result = await self._assemble(facts, network, context, account_rep, domain, community, scan)
        log.info(
            "analysis_done",
            network=network,
            score=result.risk_score,
            risk_level=result.risk_level.value,
            threats=[t.name for t in result.threats],
        )
        return result

    async def _check_community(self, address: str) -> CommunityCheck | None:
        if self._blacklist is None or self._reports is None:
            return None
        return await asyncio.to_thread(check_address, address, self._blacklist, self._reports)

    async def _scan_connections(self, facts: AccountFacts) -> ConnectionScanResult | None:
        if self._blacklist is None or self._reports is None:
            return None
        scanner = ConnectionScanner(self._blacklist, self._reports)
        return await asyncio.to_thread(scanner.scan, facts.address, facts.payments)

    async def _assemble(
        self,
        facts: AccountFacts,
        network: str,
        context: TransactionContext | None,
        account_rep: AccountReputation | None,
        domain: DomainVerification | None,
        community: CommunityCheck | None,
        scan: ConnectionScanResult | None,
    ) -> AnalysisResult:
        reputation = ReputationSignal.combine(account_rep, domain)
        fraud = self._detector.assess(facts, reputation)
        breakdown = score_account(facts, reputation, fraud)
        score, level = breakdown.score, breakdown.risk_level
        if community is not None and community.is_blacklisted:
            score, level = SCORE_MAX, RiskLevel.CRITICAL

        scan_finding = connection_finding(scan) if scan is not None else None
        threats = tuple(
            merge_findings(
                fraud.findings,
                rule_findings(facts),
                community.findings if community is not None else (),
                (scan_finding,) if scan_finding is not None else (),
            )
        )

        explanation, source = await self._explainer.explain(
            ExplanationContext(
                facts=facts,
                risk_score=score,
                risk_level=level,
                threats=threats,
                reputation=reputation,
                connection_scan=scan,
                transaction=context,
            )
        )
        reputation_block: dict[str, Any] | None = reputation.to_dict() if reputation is not None else None
        return AnalysisResult(
            address=facts.address,
            network=network,
            risk_score=score,
            risk_level=level,
            threats=threats,
            connections=scan.connections if scan is not None else (),
            recommendation=short_recommendation(level, reputation),
            recommendations=recommendations_for(level, facts.age_days, facts.activity.total_transactions),
            explanation=explanation,
            explanation_source=source,
            timestamp=self._clock(),
            factors=breakdown.factors,
            fraud=fraud,
            verification_badges=verification_badges(reputation),
            account=facts.to_dict(),
            reputation=reputation_block,
            connection_scan=scan,
            community=community.info if community is not None else None,
            context=context,
        )

    def _unfunded_result(
        self, address: str, network: str, context: TransactionContext | None
    ) -> AnalysisResult:
        finding = ThreatFinding(
            name="ACCOUNT_NOT_FOUND",
            severity=Severity.HIGH,
            description="Account does not exist on the ledger (never funded)",
            confidence=50,
            evidence=(f"Network: {network}",),
        )
        return AnalysisResult(
            address=address,
            network=network,
            account_found=False,
            risk_score=UNFUNDED_SCORE,
            risk_level=RiskLevel.MEDIUM,
            threats=(finding,),
            connections=(),
            recommendation=short_recommendation(RiskLevel.MEDIUM, None),
            recommendations=UNFUNDED_RECOMMENDATIONS,
            explanation=UNFUNDED_EXPLANATION,
            timestamp=self._clock(),
            context=context,
        )


async def analyze(
    address: str,
    network: str | None = None,
    context: TransactionContext | None = None,
    *,
    analyzer: RiskAnalyzer | None = None,
) -> AnalysisResult:
    """
    Analyze one address. Without an explicit analyzer, one is built from
    Settings with the SQLAlchemy-backed stores.
    """
    if analyzer is None:
        analyzer = RiskAnalyzer(blacklist=BlacklistStore(), reports=ReportStore())
    return await analyzer.analyze(address, network, context)
