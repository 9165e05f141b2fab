"""
Blacklist / community report stores and the analysis audit log (SQLAlchemy).
"""

from backend_riskguard.database.repositories import (
    BlacklistRecord,
    BlacklistStore,
    ReportRecord,
    ReportStore,
    add_blacklist_entry,
    add_report,
    get_analysis_history,
    init_db,
    record_analysis,
    reset_engine_for_test,
)

__all__ = [
    "BlacklistRecord",
    "BlacklistStore",
    "ReportRecord",
    "ReportStore",
    "add_blacklist_entry",
    "add_report",
    "get_analysis_history",
    "init_db",
    "record_analysis",
    "reset_engine_for_test",
]
