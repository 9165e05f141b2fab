"""
Blacklist and community report stores, plus the analysis audit log.

Engine comes from Settings.database_url (RISKGUARD_DB_URL / DATABASE_URL for
Postgres, else SQLite). Store lookups return plain records, never ORM rows,
and wrap database errors as StoreUnavailable so callers can degrade.
"""

from __future__ import annotations

import json
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from backend_riskguard.config import get_settings
from backend_riskguard.core.exceptions import StoreUnavailable
from backend_riskguard.database.models import (
    REPORT_STATUS_PENDING,
    REPORT_STATUS_VERIFIED,
    AnalysisHistory,
    Base,
    BlacklistEntry,
    ScamReport,
)
from backend_riskguard.riskguard_logging import get_logger, short_address

logger = get_logger(__name__)

_engine = None
_SessionLocal: sessionmaker | None = None
_engine_lock = threading.Lock()

# A URL whose DBAPI driver is not installed fails with ImportError at engine creation.
_STORE_ERRORS = (SQLAlchemyError, ImportError)


def _create_engine_locked():
    global _engine
    if _engine is None:
        url = get_settings().database_url
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        _engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        logger.info("store_engine", url=url.split("?")[0].split("//")[-1])
    return _engine


def _get_engine():
    # Store lookups run in worker threads; only one of them may build the engine.
    if _engine is not None:
        return _engine
    with _engine_lock:
        return _create_engine_locked()


def _get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is not None:
        return _SessionLocal
    with _engine_lock:
        if _SessionLocal is None:
            _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_create_engine_locked())
        return _SessionLocal


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Context manager for a single session. Commits on success, rolls back on error."""
    factory = _get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine_for_test() -> None:
    """Drop the cached engine so the next call picks up a new database URL."""
    global _engine, _SessionLocal
    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _SessionLocal = None


def init_db() -> None:
    """Create tables if they do not exist. Safe to call on every startup."""
    try:
        Base.metadata.create_all(bind=_get_engine())
        logger.info("store_init_db", url=get_settings().database_url.split("?")[0].split("//")[-1])
    except SQLAlchemyError as e:
        logger.exception("store_init_db_failed", error=str(e))
        raise


@dataclass(frozen=True)
class BlacklistRecord:
    address: str
    scam_type: str | None
    reason: str | None


@dataclass(frozen=True)
class ReportRecord:
    address: str
    scam_type: str | None
    title: str | None
    status: str
    upvotes: int
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "scam_type": self.scam_type,
            "status": self.status,
            "upvotes": self.upvotes,
            "reported_at": self.created_at,
        }


def _blacklist_record(row: BlacklistEntry) -> BlacklistRecord:
    return BlacklistRecord(address=row.address, scam_type=row.scam_type, reason=row.reason)


def _report_record(row: ScamReport) -> ReportRecord:
    return ReportRecord(
        address=row.address,
        scam_type=row.scam_type,
        title=row.title,
        status=row.status,
        upvotes=row.upvotes or 0,
        created_at=row.created_at,
    )


class BlacklistStore:
    """Lookups against active blacklist entries."""

    def find_active(self, addresses: list[str]) -> list[BlacklistRecord]:
        if not addresses:
            return []
        try:
            with _session_scope() as session:
                rows = (
                    session.query(BlacklistEntry)
                    .filter(BlacklistEntry.address.in_(addresses), BlacklistEntry.is_active.is_(True))
                    .order_by(BlacklistEntry.id)
                    .all()
                )
                return [_blacklist_record(r) for r in rows]
        except _STORE_ERRORS as e:
            raise StoreUnavailable(f"Blacklist lookup failed: {e}") from e


class ReportStore:
    """Lookups against community scam reports."""

    def find_verified(self, addresses: list[str]) -> list[ReportRecord]:
        if not addresses:
            return []
        try:
            with _session_scope() as session:
                rows = (
                    session.query(ScamReport)
                    .filter(ScamReport.address.in_(addresses), ScamReport.status == REPORT_STATUS_VERIFIED)
                    .order_by(ScamReport.id)
                    .all()
                )
                return [_report_record(r) for r in rows]
        except _STORE_ERRORS as e:
            raise StoreUnavailable(f"Report lookup failed: {e}") from e

    def find_for_address(self, address: str, limit: int = 10) -> list[ReportRecord]:
        """Verified and pending reports for one address, newest first."""
        try:
            with _session_scope() as session:
                rows = (
                    session.query(ScamReport)
                    .filter(
                        ScamReport.address == address,
                        ScamReport.status.in_((REPORT_STATUS_VERIFIED, REPORT_STATUS_PENDING)),
                    )
                    .order_by(ScamReport.created_at.desc(), ScamReport.id.desc())
                    .limit(limit)
                    .all()
                )
                return [_report_record(r) for r in rows]
        except _STORE_ERRORS as e:
            raise StoreUnavailable(f"Report lookup failed: {e}") from e


def add_blacklist_entry(
    address: str,
    reason: str | None = None,
    scam_type: str | None = None,
    is_active: bool = True,
) -> int:
    """Insert a blacklist entry. Returns its id."""
    with _session_scope() as session:
        row = BlacklistEntry(
            address=address.strip(),
            reason=reason,
            scam_type=scam_type,
            is_active=is_active,
            created_at=int(time.time()),
        )
        session.add(row)
        session.flush()
        entry_id = row.id
    logger.info("blacklist_entry_added", address=short_address(address), scam_type=scam_type)
    return entry_id


def add_report(
    address: str,
    title: str | None = None,
    scam_type: str | None = None,
    status: str = REPORT_STATUS_PENDING,
    upvotes: int = 0,
    description: str | None = None,
    created_at: int | None = None,
) -> int:
    """Insert a community report. Returns its id."""
    with _session_scope() as session:
        row = ScamReport(
            address=address.strip(),
            title=title,
            scam_type=scam_type,
            status=status,
            upvotes=upvotes,
            description=description,
            created_at=created_at if created_at is not None else int(time.time()),
        )
        session.add(row)
        session.flush()
        report_id = row.id
    logger.info("scam_report_added", address=short_address(address), status=status)
    return report_id


def record_analysis(
    address: str,
    network: str,
    risk_score: int,
    risk_level: str,
    threat_names: list[str],
    timestamp: int | None = None,
) -> None:
    """Append one audit row. Failures are logged, not raised."""
    try:
        with _session_scope() as session:
            session.add(
                AnalysisHistory(
                    address=address,
                    network=network,
                    risk_score=risk_score,
                    risk_level=risk_level,
                    threats=json.dumps(threat_names),
                    timestamp=timestamp if timestamp is not None else int(time.time()),
                )
            )
    except _STORE_ERRORS as e:
        logger.warning("analysis_history_write_failed", address=short_address(address), error=str(e))


def get_analysis_history(address: str, limit: int = 20) -> list[dict[str, Any]]:
    """Most recent audit rows for an address, newest first."""
    with _session_scope() as session:
        rows = (
            session.query(AnalysisHistory)
            .filter(AnalysisHistory.address == address)
            .order_by(AnalysisHistory.timestamp.desc(), AnalysisHistory.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "address": r.address,
                "network": r.network,
                "risk_score": r.risk_score,
                "risk_level": r.risk_level,
                "threats": json.loads(r.threats or "[]"),
                "timestamp": r.timestamp,
            }
            for r in rows
        ]
