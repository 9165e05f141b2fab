"""
Tests for the reputation enrichers: trust score derivation, directory lookup
and stellar.toml domain ownership. Both enrichers must fail soft.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from backend_riskguard.analytics.risk_scorer import score_account
from backend_riskguard.reputation import (
    AccountReputation,
    DomainVerification,
    ReputationSignal,
    StellarExpertClient,
    TomlVerifier,
    calculate_trust_score,
)
from backend_riskguard.reputation.models import AccountRatings, ExpertAccount
from backend_riskguard.reputation.toml_verifier import account_listed_in_toml, normalize_domain

from conftest import OTHER, TARGET, make_facts

EXPERT = "https://expert.test/explorer"


def _run(coro_factory, handler):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)

    return asyncio.run(run())


# -----------------------------------------------------------------------------
# Trust score
# -----------------------------------------------------------------------------


def test_known_account_without_ratings_starts_at_baseline():
    assert calculate_trust_score(ExpertAccount(TARGET)) == 50
    account = ExpertAccount.from_api(TARGET, {"payments": 3, "ratings": {}})
    assert account.ratings is None
    assert calculate_trust_score(account) == 50


def test_empty_ratings_lookup_does_not_raise_score():
    handler = _expert_handler(account={"payments": 3, "ratings": {}})
    rep = _lookup(handler)
    assert rep.trust_score == 50
    facts = make_facts()
    signal = ReputationSignal.combine(rep, None)
    assert score_account(facts, signal).score == score_account(facts, None).score == 0


def test_trust_score_components():
    account = ExpertAccount(
        TARGET,
        payments=101,
        trades=10,
        ratings=AccountRatings(age=5, volume=4, trust=2),
        tags=("anchor",),
    )
    # 50 + 10 + 6 + 3 + 5 (anchor) + 5 (payments)
    assert calculate_trust_score(account) == 79


def test_trust_score_clamped_to_100():
    account = ExpertAccount(
        TARGET,
        payments=500,
        trades=500,
        ratings=AccountRatings(age=10, volume=10, trust=10),
        tags=("exchange", "validator"),
    )
    assert calculate_trust_score(account) == 100


def test_tags_without_ratings_start_from_baseline():
    assert calculate_trust_score(ExpertAccount(TARGET, tags=("exchange",))) == 60


# -----------------------------------------------------------------------------
# Account reputation lookup
# -----------------------------------------------------------------------------


def _expert_handler(account=None, directory=None, status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if status != 200:
            return httpx.Response(status, json={})
        if path.endswith(f"/account/{TARGET}"):
            return httpx.Response(200, json=account) if account is not None else httpx.Response(404, json={})
        if path.endswith(f"/directory/{TARGET}"):
            return httpx.Response(200, json=directory) if directory is not None else httpx.Response(404, json={})
        return httpx.Response(404, json={})

    return handler


def _lookup(handler, network="testnet"):
    return _run(lambda c: StellarExpertClient(network, base_url=EXPERT, client=c).lookup(TARGET), handler)


def test_lookup_combines_account_and_directory():
    handler = _expert_handler(
        account={"payments": 10, "ratings": {"age": 5, "volume": 0, "trust": 0}, "tags": ["Exchange"]},
        directory={"name": "Example Exchange", "domain": "ex.example", "tags": ["exchange"]},
    )
    rep = _lookup(handler)
    assert rep == AccountReputation(
        trust_score=70,
        is_verified_organization=True,
        organization_category="exchange",
        organization_name="Example Exchange",
        tags=("exchange",),
    )


def test_lookup_account_tags_mark_verified_organization():
    rep = _lookup(_expert_handler(account={"tags": ["validator"]}))
    assert rep.is_verified_organization
    assert rep.organization_name is None


def test_lookup_unknown_account_is_none():
    assert _lookup(_expert_handler()) is None


def test_lookup_server_error_is_none():
    assert _lookup(_expert_handler(status=500)) is None


def test_lookup_transport_error_is_none():
    def handler(request):
        raise httpx.ConnectError("refused")

    assert _lookup(handler) is None


def test_lookup_uses_public_segment_on_mainnet():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(404, json={})

    _lookup(handler, network="public")
    assert all(p.startswith("/explorer/public/") for p in paths)
    assert len(paths) == 2


# -----------------------------------------------------------------------------
# Domain ownership
# -----------------------------------------------------------------------------

TOML_LISTED = f"""
ACCOUNTS = ["{TARGET}"]

[DOCUMENTATION]
ORG_NAME = "Anchor Inc"
ORG_OFFICIAL_EMAIL = "ops@anchor.example"
"""

TOML_UNLISTED = f"""
ACCOUNTS = ["{OTHER}"]
"""


def _toml_handler(body=None, status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/.well-known/stellar.toml"
        if body is None:
            return httpx.Response(404)
        return httpx.Response(status, text=body)

    return handler


def _verify(handler, domain="anchor.example"):
    return _run(lambda c: TomlVerifier(client=c).verify(TARGET, domain), handler)


def test_verify_listed_account():
    result = _verify(_toml_handler(TOML_LISTED))
    assert result == DomainVerification(
        verified=True, domain="anchor.example", org_name="Anchor Inc", org_email="ops@anchor.example"
    )


def test_verify_unlisted_account():
    assert _verify(_toml_handler(TOML_UNLISTED)) == DomainVerification(verified=False, domain="anchor.example")


def test_verify_missing_manifest_is_none():
    assert _verify(_toml_handler()) is None


def test_verify_parse_error_is_none():
    assert _verify(_toml_handler("ACCOUNTS = [unterminated")) is None


def test_verify_without_domain_skips_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert _verify(handler, domain=None) is None
    assert _verify(handler, domain="not a domain") is None


@pytest.mark.parametrize(
    "document",
    [
        {"ACCOUNTS": [TARGET]},
        {"PRINCIPALS": [{"name": "ops", "signing_key": TARGET}]},
        {"CURRENCIES": [{"code": "USDX", "issuer": TARGET}]},
    ],
)
def test_account_listed_in_any_section(document):
    assert account_listed_in_toml(TARGET, document)


def test_account_not_listed():
    assert not account_listed_in_toml(TARGET, {"ACCOUNTS": [OTHER], "CURRENCIES": [{"issuer": OTHER}]})


def test_normalize_domain():
    assert normalize_domain(" Anchor.Example. ") == "anchor.example"
    assert normalize_domain("localhost") is None
    assert normalize_domain("") is None


# -----------------------------------------------------------------------------
# Combined signal
# -----------------------------------------------------------------------------


def test_combine_absent_when_both_missing():
    assert ReputationSignal.combine(None, None) is None


def test_combine_domain_only():
    signal = ReputationSignal.combine(None, DomainVerification(True, "anchor.example", "Anchor Inc"))
    assert signal.trust_score is None
    assert signal.is_verified_entity
    assert not signal.is_verified_organization
    assert signal.to_dict() == {
        "domain_verification": {
            "verified": True,
            "domain": "anchor.example",
            "org_name": "Anchor Inc",
            "org_email": None,
        }
    }
