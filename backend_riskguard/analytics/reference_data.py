"""
Reference data for the pattern detectors.

Known high-value addresses (address-similarity detector) and exchange brand
substrings (fake-exchange detector) are loaded from JSON files so the lists can
grow without code changes. Paths come from KNOWN_ADDRESSES_PATH /
EXCHANGE_BRANDS_PATH; missing or invalid files fall back to the packaged seeds.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from backend_riskguard.config import Settings, get_settings
from backend_riskguard.config.env import get_package_data_dir
from backend_riskguard.riskguard_logging import get_logger

logger = get_logger(__name__)

KNOWN_ADDRESSES_FILE = "known_addresses.json"
EXCHANGE_BRANDS_FILE = "exchange_brands.json"


@dataclass(frozen=True)
class KnownAddress:
    name: str
    address: str


@dataclass(frozen=True)
class ReferenceData:
    """Immutable lookup lists injected into FraudDetector."""

    known_addresses: tuple[KnownAddress, ...] = ()
    exchange_brands: tuple[str, ...] = ()

    @classmethod
    def load(cls, settings: Settings | None = None) -> "ReferenceData":
        cfg = settings or get_settings()
        data_dir = get_package_data_dir()
        known = _load_known_addresses(cfg.known_addresses_path, data_dir / KNOWN_ADDRESSES_FILE)
        brands = _load_brands(cfg.exchange_brands_path, data_dir / EXCHANGE_BRANDS_FILE)
        logger.debug("reference_data_loaded", known_addresses=len(known), exchange_brands=len(brands))
        return cls(known_addresses=known, exchange_brands=brands)


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _load_with_fallback(override: str | None, default_path: Path, parse) -> tuple:
    if override:
        path = Path(override)
        try:
            return parse(_read_json(path))
        except (OSError, ValueError) as e:
            logger.warning("reference_data_load_failed", path=str(path), error=str(e))
    return parse(_read_json(default_path))


def _parse_known_addresses(data: Any) -> tuple[KnownAddress, ...]:
    if not isinstance(data, list):
        raise ValueError("known addresses file must contain a list")
    out: list[KnownAddress] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        address = str(item.get("address") or "").strip()
        if address:
            out.append(KnownAddress(name=str(item.get("name") or address[:8]), address=address))
    return tuple(out)


def _parse_brands(data: Any) -> tuple[str, ...]:
    if not isinstance(data, list):
        raise ValueError("exchange brands file must contain a list")
    return tuple(str(b).strip().lower() for b in data if str(b).strip())


def _load_known_addresses(override: str | None, default_path: Path) -> tuple[KnownAddress, ...]:
    return _load_with_fallback(override, default_path, _parse_known_addresses)


def _load_brands(override: str | None, default_path: Path) -> tuple[str, ...]:
    return _load_with_fallback(override, default_path, _parse_brands)
