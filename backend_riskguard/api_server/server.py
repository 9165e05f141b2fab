"""
FastAPI server: address risk analysis over HTTP.

POST /v1/analyze/address runs the analysis pipeline and appends an audit row;
GET /v1/history/{address} reads the audit log; GET /v1/health is liveness.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from backend_riskguard.analytics import RiskAnalyzer, TransactionContext
from backend_riskguard.config.env import normalize_network
from backend_riskguard.core.exceptions import InvalidAddress, RiskGuardError, UpstreamUnavailable
from backend_riskguard.database import (
    BlacklistStore,
    ReportStore,
    get_analysis_history,
    init_db,
    record_analysis,
)
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

ADDRESS_PREFIX = "G"
ADDRESS_LENGTH = 56


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class TransactionContextModel(BaseModel):
    """Optional details of the transfer about to be made."""

    sender_address: str | None = Field(None, max_length=64)
    amount: str | None = Field(None, max_length=64)
    asset_code: str | None = Field(None, max_length=12)


class AnalyzeAddressRequest(BaseModel):
    """POST /v1/analyze/address body."""

    address: str = Field(..., description="Stellar account address (G..., 56 chars)")
    network: str | None = Field(None, description="testnet | mainnet (public accepted)")
    context: TransactionContextModel | None = None


class AnalyzeAddressResponse(BaseModel):
    """Serialized AnalysisResult plus processing time; extra blocks pass through."""

    model_config = ConfigDict(extra="allow")

    address: str
    network: str
    risk_score: int = Field(..., ge=0, le=100)
    risk_level: str
    threats: list[dict[str, Any]] = Field(default_factory=list)
    recommendation: str
    explanation: str
    timestamp: str
    processing_ms: int


class HistoryEntry(BaseModel):
    address: str
    network: str
    risk_score: int
    risk_level: str
    threats: list[str] = Field(default_factory=list)
    timestamp: int


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------

_analyzer: RiskAnalyzer | None = None


def get_analyzer() -> RiskAnalyzer:
    """Dependency: process-wide analyzer backed by the SQLAlchemy stores."""
    global _analyzer
    if _analyzer is None:
        _analyzer = RiskAnalyzer(blacklist=BlacklistStore(), reports=ReportStore())
    return _analyzer


def validate_address(address: str) -> str:
    address = (address or "").strip()
    if not address.startswith(ADDRESS_PREFIX) or len(address) != ADDRESS_LENGTH:
        raise InvalidAddress("Invalid Stellar address: must start with G and be 56 characters")
    return address


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create store tables on startup."""
    init_db()
    logger.info("api_started")
    yield
    logger.info("api_stopped")


app = FastAPI(
    title="RiskGuard API",
    description="Address risk scoring for Stellar accounts",
    version="1.0.0",
    lifespan=lifespan,
)


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@app.post("/v1/analyze/address", response_model=AnalyzeAddressResponse)
async def analyze_address(
    body: AnalyzeAddressRequest,
    analyzer: RiskAnalyzer = Depends(get_analyzer),
) -> dict[str, Any]:
    """Analyze one address and return the risk result."""
    address = validate_address(body.address)
    try:
        network = normalize_network(body.network) if body.network else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    context = TransactionContext(**body.context.model_dump()) if body.context else None

    started = time.perf_counter()
    result = await analyzer.analyze(address, network, context)
    processing_ms = int((time.perf_counter() - started) * 1000)

    await asyncio.to_thread(
        record_analysis,
        result.address,
        result.network,
        result.risk_score,
        result.risk_level.value,
        [t.name for t in result.threats],
        int(result.timestamp.timestamp()),
    )
    logger.info(
        "api_analyze_done",
        address=short_address(address),
        score=result.risk_score,
        risk_level=result.risk_level.value,
        processing_ms=processing_ms,
    )
    return {**result.to_dict(), "processing_ms": processing_ms}


@app.get("/v1/history/{address}", response_model=list[HistoryEntry])
def analysis_history(address: str, limit: int = 20) -> list[dict[str, Any]]:
    """Most recent analyses recorded for an address."""
    address = validate_address(address)
    return get_analysis_history(address, limit=max(1, min(limit, 100)))


@app.get("/v1/health")
def health() -> dict[str, str]:
    """Liveness probe: API is up."""
    return {"status": "ok"}


# -----------------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------------


@app.exception_handler(InvalidAddress)
def invalid_address_handler(request: Any, exc: InvalidAddress) -> JSONResponse:
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(UpstreamUnavailable)
def upstream_unavailable_handler(request: Any, exc: UpstreamUnavailable) -> JSONResponse:
    logger.warning("api_upstream_unavailable", error=exc.message)
    return JSONResponse(status_code=503, content=exc.to_dict())


@app.exception_handler(RiskGuardError)
def riskguard_error_handler(request: Any, exc: RiskGuardError) -> JSONResponse:
    logger.error("api_unhandled_riskguard_error", code=exc.code, error=exc.message)
    return JSONResponse(status_code=500, content=exc.to_dict())


@app.exception_handler(HTTPException)
def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )
