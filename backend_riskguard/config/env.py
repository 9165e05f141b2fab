"""
Environment variable loading for RiskGuard.

- STELLAR_NETWORK: testnet | mainnet (public accepted; default: testnet)
- HORIZON_TESTNET_URL / HORIZON_MAINNET_URL: ledger read API roots
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_riskguard/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

NETWORK_TESTNET = "testnet"
NETWORK_MAINNET = "mainnet"

HORIZON_TESTNET_URL = "https://horizon-testnet.stellar.org"
HORIZON_MAINNET_URL = "https://horizon.stellar.org"


def load_riskguard_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    load_dotenv(_ENV_PATH, override=False)


def normalize_network(raw: str | None) -> str:
    """
    Map user/env input to testnet | mainnet.

    "public" and "pubnet" aliases resolve to mainnet; anything
    unrecognised raises ValueError so the API can reject it.
    """
    value = (raw or NETWORK_TESTNET).strip().lower()
    if value in ("testnet", "test"):
        return NETWORK_TESTNET
    if value in ("mainnet", "public", "pubnet"):
        return NETWORK_MAINNET
    raise ValueError(f"Unknown network: {raw!r} (expected testnet or mainnet)")


def get_stellar_network() -> str:
    """Return STELLAR_NETWORK from env: testnet | mainnet. Default: testnet."""
    load_riskguard_env()
    try:
        return normalize_network(os.getenv("STELLAR_NETWORK"))
    except ValueError:
        return NETWORK_TESTNET


def get_horizon_url(network: str) -> str:
    """Resolve the Horizon root for a network; env overrides the public SDF endpoints."""
    load_riskguard_env()
    if normalize_network(network) == NETWORK_MAINNET:
        return (os.getenv("HORIZON_MAINNET_URL") or "").strip() or HORIZON_MAINNET_URL
    return (os.getenv("HORIZON_TESTNET_URL") or "").strip() or HORIZON_TESTNET_URL


def get_package_data_dir() -> Path:
    """Return path to the packaged reference data directory."""
    return _PACKAGE_DIR / "data"
