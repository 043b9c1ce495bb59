# config.py  ──  all configuration and environment variables live here.
# No hardcoded values anywhere in api_server.py, broker.py or scheduler.py

import logging
import os

# ── API ───────────────────────────────────────────────────────────────────────
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "3001"))

# ── Tick Scheduler ────────────────────────────────────────────────────────────
TICK_INTERVAL_SECONDS: float = float(os.getenv("TICK_INTERVAL_SECONDS", "1.0"))

# ── Position Estimator ────────────────────────────────────────────────────────
SERVICE_SECONDS_PER_CUSTOMER: int = int(os.getenv("SERVICE_SECONDS_PER_CUSTOMER", "90"))

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
