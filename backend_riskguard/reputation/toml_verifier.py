"""
Domain ownership verifier (stellar.toml).

Fetches https://<home_domain>/.well-known/stellar.toml and checks whether the
account appears in ACCOUNTS, as a PRINCIPALS signing key, or as a CURRENCIES
issuer. Verified only if listed in at least one section. Best effort: any
failure is logged and reported as absent (None).
"""

from __future__ import annotations

import asyncio
import re
import tomllib
from typing import Any

import httpx

from backend_riskguard.config import Settings, get_settings
from backend_riskguard.core.exceptions import EnrichmentUnavailable
from backend_riskguard.reputation.models import DomainVerification
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

WELL_KNOWN_PATH = "/.well-known/stellar.toml"
# stellar.toml files are capped at 100KB by the standard
MAX_TOML_BYTES = 100 * 1024
_DOMAIN_RE = re.compile(r"^(?=.{1,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


def normalize_domain(raw: str | None) -> str | None:
    """Lowercased hostname, or None if raw is not a plausible public domain."""
    domain = (raw or "").strip().lower().rstrip(".")
    if not domain or not _DOMAIN_RE.match(domain):
        return None
    return domain


def account_listed_in_toml(address: str, document: dict[str, Any]) -> bool:
    """True if address is in ACCOUNTS, a principal key, or a currency issuer."""
    accounts = document.get("ACCOUNTS") or []
    if isinstance(accounts, list) and address in accounts:
        return True
    for principal in document.get("PRINCIPALS") or []:
        if isinstance(principal, dict) and address in (principal.get("signing_key"), principal.get("public_key")):
            return True
    for currency in document.get("CURRENCIES") or []:
        if isinstance(currency, dict) and currency.get("issuer") == address:
            return True
    return False


class TomlVerifier:
    """Resolve and check a home domain's stellar.toml."""

    def __init__(self, *, timeout_sec: float = 8.0, client: httpx.AsyncClient | None = None) -> None:
        self._timeout = timeout_sec
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings | None = None, client: httpx.AsyncClient | None = None) -> "TomlVerifier":
        cfg = settings or get_settings()
        return cls(timeout_sec=cfg.enrichment_timeout_sec, client=client)

    async def verify(self, address: str, home_domain: str | None) -> DomainVerification | None:
        """
        Return DomainVerification for a declared domain.

        None when no domain is declared, the manifest is missing (404), or
        the lookup fails; verified=False when the manifest exists but does not
        list the account.
        """
        domain = normalize_domain(home_domain)
        if domain is None:
            if home_domain:
                logger.info("toml_domain_invalid", address=short_address(address), domain=home_domain)
            return None
        try:
            document = await asyncio.wait_for(self._fetch(domain), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("toml_fetch_timeout", address=short_address(address), domain=domain)
            return None
        except EnrichmentUnavailable as e:
            logger.warning("toml_fetch_failed", address=short_address(address), domain=domain, error=str(e))
            return None
        if document is None:
            logger.debug("toml_not_found", address=short_address(address), domain=domain)
            return None

        if not account_listed_in_toml(address, document):
            return DomainVerification(verified=False, domain=domain)
        documentation = document.get("DOCUMENTATION") or {}
        if not isinstance(documentation, dict):
            documentation = {}
        logger.info("toml_verified", address=short_address(address), domain=domain)
        return DomainVerification(
            verified=True,
            domain=domain,
            org_name=documentation.get("ORG_NAME"),
            org_email=documentation.get("ORG_OFFICIAL_EMAIL"),
        )

    async def _fetch(self, domain: str) -> dict[str, Any] | None:
        if self._client is not None:
            return await self._fetch_with(self._client, domain)
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=False) as client:
            return await self._fetch_with(client, domain)

    async def _fetch_with(self, client: httpx.AsyncClient, domain: str) -> dict[str, Any] | None:
        url = f"https://{domain}{WELL_KNOWN_PATH}"
        try:
            resp = await client.get(url, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise EnrichmentUnavailable(f"stellar.toml request failed: {e}") from e
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise EnrichmentUnavailable(f"stellar.toml HTTP {resp.status_code}")
        if len(resp.content) > MAX_TOML_BYTES:
            raise EnrichmentUnavailable("stellar.toml exceeds size limit")
        try:
            return tomllib.loads(resp.text)
        except tomllib.TOMLDecodeError as e:
            raise EnrichmentUnavailable(f"stellar.toml parse error: {e}") from e
