"""
Main entrypoint: RiskGuard FastAPI server.

Env: STELLAR_NETWORK, HORIZON_*_URL, RISKGUARD_DB_URL / DATABASE_URL, API_HOST, API_PORT, LOG_LEVEL, etc.
(see backend_riskguard.config.settings).

Equivalent: uvicorn backend_riskguard.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_riskguard.riskguard_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    from backend_riskguard.api_server.app import app
    from backend_riskguard.config import get_settings
    import uvicorn

    settings = get_settings()
    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port, network=settings.network)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
