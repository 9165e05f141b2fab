"""
SQLAlchemy models for the blacklist, community reports, and analysis audit log.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

REPORT_STATUS_PENDING = "pending"
REPORT_STATUS_VERIFIED = "verified"


class BlacklistEntry(Base):
    """Known scam address. Only active entries are matched."""

    __tablename__ = "blacklist"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(64), nullable=False, index=True)
    scam_type = Column(String(64), nullable=True)
    reason = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(Integer, nullable=False)  # Unix seconds


class ScamReport(Base):
    """
    Community scam report. status moves pending -> verified | rejected;
    only verified reports count as counterparty hits.
    """

    __tablename__ = "scam_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(64), nullable=False, index=True)
    scam_type = Column(String(64), nullable=True)
    title = Column(String(256), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default=REPORT_STATUS_PENDING, index=True)
    upvotes = Column(Integer, nullable=False, default=0)
    created_at = Column(Integer, nullable=False, index=True)  # Unix seconds


class AnalysisHistory(Base):
    """Append-only audit row per completed analysis."""

    __tablename__ = "analysis_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(64), nullable=False, index=True)
    network = Column(String(16), nullable=False)
    risk_score = Column(Integer, nullable=False)
    risk_level = Column(String(16), nullable=False)
    threats = Column(String(1024), nullable=True)  # JSON array of threat names
    timestamp = Column(Integer, nullable=False, index=True)  # Unix seconds
