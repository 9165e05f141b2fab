"""
Account reputation enricher backed by a directory-style reputation service.

Looks up the account record (ratings, tags, activity) and the verified
directory concurrently and derives a 0-100 trust score. Best effort: a 404 is
"not known", any other failure or timeout is logged and treated as absent.
"""

from __future__ import annotations

import asyncio

import httpx

from backend_riskguard.config import Settings, get_settings
from backend_riskguard.config.env import NETWORK_MAINNET, normalize_network
from backend_riskguard.core.concurrency import gather_or_cancel
from backend_riskguard.core.exceptions import EnrichmentUnavailable
from backend_riskguard.reputation.models import (
    ORG_CATEGORIES,
    AccountReputation,
    DirectoryEntry,
    ExpertAccount,
)
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

BASE_TRUST_SCORE = 50
AGE_RATING_MULTIPLIER = 2.0  # max +20
VOLUME_RATING_MULTIPLIER = 1.5  # max +15
TRUST_RATING_MULTIPLIER = 1.5  # max +15
TAG_BONUSES = {"exchange": 10, "validator": 10, "anchor": 5}
ACTIVE_PAYMENTS_THRESHOLD = 100
ACTIVE_TRADES_THRESHOLD = 50
ACTIVITY_BONUS = 5


def calculate_trust_score(account: ExpertAccount) -> int:
    """
    Trust score 0-100 from sub-ratings, tags, and activity.

    Any known account starts from the neutral baseline of 50; missing or
    empty ratings add nothing.
    """
    score = float(BASE_TRUST_SCORE)
    if account.ratings is not None:
        score += account.ratings.age * AGE_RATING_MULTIPLIER
        score += account.ratings.volume * VOLUME_RATING_MULTIPLIER
        score += account.ratings.trust * TRUST_RATING_MULTIPLIER
    for tag, bonus in TAG_BONUSES.items():
        if tag in account.tags:
            score += bonus
    if account.payments > ACTIVE_PAYMENTS_THRESHOLD:
        score += ACTIVITY_BONUS
    if account.trades > ACTIVE_TRADES_THRESHOLD:
        score += ACTIVITY_BONUS
    return int(round(min(100.0, max(0.0, score))))


def is_verified_organization(directory: DirectoryEntry | None, account: ExpertAccount | None) -> bool:
    if directory is not None:
        return True
    if account is not None:
        return any(tag in account.tags for tag in ORG_CATEGORIES)
    return False


def organization_category(directory: DirectoryEntry | None, account: ExpertAccount | None) -> str | None:
    if directory is not None and directory.tags:
        return directory.tags[0]
    if account is not None and account.tags:
        return account.tags[0]
    return None


class StellarExpertClient:
    """Reputation API client for one network (public or testnet)."""

    def __init__(
        self,
        network: str,
        *,
        base_url: str = "https://api.stellar.expert/explorer",
        timeout_sec: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        segment = "public" if normalize_network(network) == NETWORK_MAINNET else "testnet"
        self._base_url = f"{base_url.rstrip('/')}/{segment}"
        self._timeout = timeout_sec
        self._client = client

    @classmethod
    def for_network(
        cls,
        network: str,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "StellarExpertClient":
        cfg = settings or get_settings()
        return cls(
            network,
            base_url=cfg.stellar_expert_api_url,
            timeout_sec=cfg.enrichment_timeout_sec,
            client=client,
        )

    async def lookup(self, address: str) -> AccountReputation | None:
        """Return the account's reputation, or None when unknown or unavailable."""
        try:
            return await asyncio.wait_for(self._lookup(address), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("reputation_lookup_timeout", address=short_address(address), timeout_sec=self._timeout)
        except EnrichmentUnavailable as e:
            logger.warning("reputation_lookup_failed", address=short_address(address), error=str(e))
        return None

    async def _lookup(self, address: str) -> AccountReputation | None:
        if self._client is not None:
            account, directory = await self._fetch_both(self._client, address)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                account, directory = await self._fetch_both(client, address)
        if account is None and directory is None:
            logger.debug("reputation_not_found", address=short_address(address))
            return None
        return AccountReputation(
            trust_score=calculate_trust_score(account) if account is not None else None,
            is_verified_organization=is_verified_organization(directory, account),
            organization_category=organization_category(directory, account),
            organization_name=directory.name if directory is not None else None,
            tags=account.tags if account is not None else (directory.tags if directory else ()),
        )

    async def _fetch_both(
        self, client: httpx.AsyncClient, address: str
    ) -> tuple[ExpertAccount | None, DirectoryEntry | None]:
        account_data, directory_data = await gather_or_cancel(
            self._get(client, f"/account/{address}"),
            self._get(client, f"/directory/{address}"),
        )
        try:
            account = ExpertAccount.from_api(address, account_data) if account_data is not None else None
            directory = DirectoryEntry.from_api(address, directory_data) if directory_data is not None else None
        except (TypeError, ValueError) as e:
            raise EnrichmentUnavailable(f"Reputation API returned malformed record: {e}") from e
        return account, directory

    async def _get(self, client: httpx.AsyncClient, path: str) -> dict | None:
        url = f"{self._base_url}{path}"
        try:
            resp = await client.get(url, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise EnrichmentUnavailable(f"Reputation request failed: {path}: {e}") from e
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise EnrichmentUnavailable(f"Reputation API error {resp.status_code}: {path}")
        try:
            data = resp.json()
        except ValueError as e:
            raise EnrichmentUnavailable(f"Reputation API returned invalid JSON: {path}") from e
        if not isinstance(data, dict):
            raise EnrichmentUnavailable(f"Reputation API returned unexpected payload: {path}")
        return data
