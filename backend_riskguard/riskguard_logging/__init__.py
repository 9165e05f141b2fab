"""
Structured logging for Backend RiskGuard (structlog, JSON lines by default).
"""

from backend_riskguard.riskguard_logging.logger import (
    bind_address,
    configure_logging,
    get_logger,
    short_address,
)

__all__ = ["get_logger", "bind_address", "short_address", "configure_logging"]
