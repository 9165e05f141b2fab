"""
Explanation generator.

Deterministic templates keyed by risk level are the primary source. When an
OpenAI API key is configured, a chat-completion call receives the full
structured context and its text replaces the template; any failure falls back
to the template.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

from backend_riskguard.analytics.models import (
    ConnectionScanResult,
    RiskLevel,
    ThreatFinding,
    TransactionContext,
)
from backend_riskguard.config import Settings, get_settings
from backend_riskguard.core.exceptions import ExplanationGenerationFailed
from backend_riskguard.ledger.models import AccountFacts
from backend_riskguard.reputation.models import ReputationSignal
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

SOURCE_TEMPLATE = "template"
SOURCE_GENERATED = "generated"

SYSTEM_PROMPT = (
    "You are an expert blockchain security analyst specializing in Stellar network fraud detection. "
    "Analyze transaction recipients for scam/fraud indicators. "
    "Provide clear, actionable security assessments in 2-3 sentences. "
    "Focus on practical risk factors that users can understand."
)
TEMPERATURE = 0.7
MAX_TOKENS = 200


@dataclass(frozen=True)
class ExplanationContext:
    """Everything the explanation may reference."""

    facts: AccountFacts
    risk_score: int
    risk_level: RiskLevel
    threats: tuple[ThreatFinding, ...]
    reputation: ReputationSignal | None = None
    connection_scan: ConnectionScanResult | None = None
    transaction: TransactionContext | None = None


def template_explanation(ctx: ExplanationContext) -> str:
    age = ctx.facts.age_days
    tx_count = ctx.facts.activity.total_transactions
    level = ctx.risk_level
    if level == RiskLevel.CRITICAL:
        lead = ctx.threats[0].description if ctx.threats else "Suspicious activity detected."
        if not lead.endswith("."):
            lead += "."
        return (
            "CRITICAL RISK: This address shows multiple red flags and should be avoided. "
            f"{lead} Do NOT proceed with this transaction."
        )
    if level == RiskLevel.HIGH:
        parts = ["HIGH RISK: This address exhibits concerning patterns."]
        if age < 7:
            parts.append(f"Account is only {age} days old.")
        if tx_count < 5:
            parts.append("Very limited transaction history.")
        parts.append("Proceed with extreme caution.")
        return " ".join(parts)
    if level == RiskLevel.MEDIUM:
        parts = ["MODERATE RISK: This address requires caution."]
        if age < 30:
            parts.append(f"Account is {age} days old.")
        if tx_count < 20:
            parts.append("Limited transaction history.")
        parts.append("Consider a test transaction first.")
        return " ".join(parts)
    if level == RiskLevel.LOW:
        return (
            f"LOW RISK: This address appears relatively safe with {tx_count} transactions "
            f"over {age} days. Standard security practices apply."
        )
    return f"SAFE: Good security profile with {age} days of history and {tx_count} transactions."


def recommendations_for(risk_level: RiskLevel, age_days: int, tx_count: int) -> tuple[str, ...]:
    """Ordered recommendation list for the risk level."""
    if risk_level == RiskLevel.CRITICAL:
        return (
            "DO NOT send funds to this address",
            "Report this address if suspected scam",
            "Double-check address source",
        )
    if risk_level == RiskLevel.HIGH:
        return (
            "Verify recipient through independent channels",
            "Start with small test transaction",
            "Contact recipient to confirm address",
        )
    if risk_level == RiskLevel.MEDIUM:
        return (
            "Send test transaction first",
            "Verify address is correct",
            "Check for typos",
        )
    recs: list[str] = []
    if age_days < 30:
        recs.append("Relatively new account - verify identity")
    if tx_count < 10:
        recs.append("Limited history - proceed cautiously")
    recs.append("Double-check recipient address")
    recs.append("Ensure correct amount")
    return tuple(recs)


_LEVEL_RECOMMENDATION = {
    RiskLevel.CRITICAL: "WARNING: Do NOT send to this address. Very high risk detected.",
    RiskLevel.HIGH: "CAUTION: High-risk address. Only send to people you trust.",
    RiskLevel.MEDIUM: "Moderate risk. Verify the address and test with a small amount.",
    RiskLevel.LOW: "Low risk. Looks like a normal address, but stay careful.",
    RiskLevel.SAFE: "Safe address. You can proceed with the transfer.",
}


def short_recommendation(risk_level: RiskLevel, reputation: ReputationSignal | None) -> str:
    """One-line imperative; verification outcomes take precedence over the level."""
    if reputation is not None:
        if reputation.is_verified_organization and reputation.domain_ownership_verified:
            return "Verified and trusted organization. Safe to send."
        if reputation.is_verified_organization:
            return "Organization verified by the reputation directory. Appears trustworthy."
        if reputation.domain_ownership_verified:
            return "Domain ownership verified. Appears trustworthy."
    return _LEVEL_RECOMMENDATION[risk_level]


_ORG_BADGES = {
    "exchange": "Verified Exchange",
    "validator": "Verified Validator",
    "anchor": "Verified Anchor",
}
HIGH_TRUST_BADGE_THRESHOLD = 70


def verification_badges(reputation: ReputationSignal | None) -> tuple[str, ...]:
    if reputation is None:
        return ()
    badges: list[str] = []
    if reputation.is_verified_organization:
        badges.append(_ORG_BADGES.get(reputation.organization_category or "", "Verified Organization"))
    if reputation.domain_ownership_verified:
        badges.append(f"Domain verified: {reputation.domain_org_name or reputation.domain}")
    if reputation.trust_score is not None and reputation.trust_score > HIGH_TRUST_BADGE_THRESHOLD:
        badges.append(f"High trust score ({reputation.trust_score}/100)")
    return tuple(badges)


def _fmt(value: float | None) -> str:
    return f"{value:.2f}" if value else "N/A"


def build_prompt(ctx: ExplanationContext) -> str:
    """User prompt carrying the full structured context."""
    facts = ctx.facts
    activity = facts.activity
    rep = ctx.reputation
    lines = [
        "Analyze this Stellar address for potential fraud/scam:",
        "",
        "ACCOUNT BASICS:",
        f"- Address: {facts.address}",
        f"- Age: {facts.age_days} days",
        f"- Balance: {facts.native_balance} XLM",
        "",
        "ACTIVITY METRICS (recent window):",
        f"- Total Transactions: {activity.total_transactions}",
        f"- Total Payments: {activity.total_payments}",
        f"- Incoming Payments: {activity.incoming_payments}",
        f"- Outgoing Payments: {activity.outgoing_payments}",
        f"- Average Transaction: {_fmt(activity.average_payment)} XLM",
        f"- Largest Transaction: {_fmt(activity.largest_payment)} XLM",
        f"- Last Activity: {activity.last_activity.isoformat() if activity.last_activity else 'Unknown'}",
        f"- Transactions last 24h: {activity.transactions_last_24h}",
        f"- Transactions last 7d: {activity.transactions_last_7d}",
        "",
        "SECURITY:",
        f"- Multi-signature: {'Yes' if facts.is_multi_signature else 'No'}",
        f"- Signer Count: {facts.signer_count}",
        f"- Home Domain: {facts.home_domain or 'No'}",
        f"- Flags: {', '.join(sorted(facts.flags)) or 'None'}",
        f"- Active Offers: {activity.open_offer_count}",
        "",
        "REPUTATION:",
    ]
    if rep is None:
        lines.append("- Unavailable")
    else:
        lines.append(f"- Trust Score: {rep.trust_score if rep.trust_score is not None else 'N/A'}/100")
        lines.append(f"- Verified Entity: {'Yes' if rep.is_verified_entity else 'No'}")
        if rep.organization_name:
            lines.append(f"- Name: {rep.organization_name}")
        if rep.organization_category:
            lines.append(f"- Category: {rep.organization_category}")
        if rep.has_domain_verification:
            lines.append(f"- Domain Ownership Verified: {'Yes' if rep.domain_ownership_verified else 'No'}")
    if ctx.connection_scan is not None:
        lines += [
            "",
            "SCAM CONNECTIONS:",
            f"- Flagged counterparties: {ctx.connection_scan.connection_count}",
            f"- Connection Risk: {ctx.connection_scan.risk_level.value}",
        ]
    lines += ["", "DETECTED THREATS:"]
    lines += [f"- {t.severity.value}: {t.description}" for t in ctx.threats] or ["- None"]
    if ctx.transaction is not None:
        tx = ctx.transaction
        lines += [
            "",
            "PENDING TRANSACTION:",
            f"- Sender: {tx.sender_address or 'Unknown'}",
            f"- Amount: {tx.amount or 'Unknown'} {tx.asset_code or 'XLM'}",
        ]
    lines += [
        "",
        "RISK ASSESSMENT:",
        f"- Overall Risk Score: {ctx.risk_score}/100",
        f"- Risk Level: {ctx.risk_level.value}",
        "",
        "Provide a security assessment for someone about to send crypto to this address. "
        "Be specific about the risks and give practical advice.",
    ]
    return "\n".join(lines)


class ExplanationGenerator:
    """Template explanations with an optional generative-text override."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gpt-4",
        api_url: str = "https://api.openai.com/v1/chat/completions",
        timeout_sec: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._api_url = api_url
        self._timeout = timeout_sec
        self._client = client

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, client: httpx.AsyncClient | None = None
    ) -> "ExplanationGenerator":
        cfg = settings or get_settings()
        return cls(
            api_key=cfg.openai_api_key,
            model=cfg.openai_model,
            api_url=cfg.openai_api_url,
            timeout_sec=cfg.ai_timeout_sec,
            client=client,
        )

    @property
    def generative_enabled(self) -> bool:
        return bool(self._api_key)

    async def explain(self, ctx: ExplanationContext) -> tuple[str, str]:
        """Return (explanation, source) where source is "template" or "generated"."""
        if not self.generative_enabled:
            return template_explanation(ctx), SOURCE_TEMPLATE
        try:
            text = await asyncio.wait_for(self._generate(build_prompt(ctx)), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("explanation_timeout", address=short_address(ctx.facts.address), timeout_sec=self._timeout)
            return template_explanation(ctx), SOURCE_TEMPLATE
        except ExplanationGenerationFailed as e:
            logger.warning("explanation_failed", address=short_address(ctx.facts.address), error=str(e))
            return template_explanation(ctx), SOURCE_TEMPLATE
        return text, SOURCE_GENERATED

    async def _generate(self, prompt: str) -> str:
        if self._client is not None:
            return await self._post(self._client, prompt)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._post(client, prompt)

    async def _post(self, client: httpx.AsyncClient, prompt: str) -> str:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }
        try:
            resp = await client.post(
                self._api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise ExplanationGenerationFailed(f"Generative request failed: {e}") from e
        if resp.status_code >= 400:
            raise ExplanationGenerationFailed(f"Generative API error {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ExplanationGenerationFailed("Generative API returned invalid JSON") from e
        if not isinstance(data, dict):
            raise ExplanationGenerationFailed("Generative API returned unexpected payload")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ExplanationGenerationFailed(f"Generative API error: {message}")
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExplanationGenerationFailed("Generative API response missing content") from e
        if not isinstance(text, str) or not text.strip():
            raise ExplanationGenerationFailed("Generative API returned empty content")
        return text.strip()
