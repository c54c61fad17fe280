"""
Database Configuration
Connection pool sizing, timeouts and database log locations, read from the environment
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# Pool sizing
DB_POOL_MIN_CONN = int(os.getenv("DB_POOL_MIN_CONN", "2"))
DB_POOL_MAX_CONN = int(os.getenv("DB_POOL_MAX_CONN", "15"))

# Connection behaviour
DB_CONNECT_TIMEOUT = int(os.getenv("DB_CONNECT_TIMEOUT", "10"))  # seconds
DB_HEALTH_CHECK_INTERVAL = int(os.getenv("DB_HEALTH_CHECK_INTERVAL", "60"))  # seconds

# Logging
DB_LOG_DIR = Path(os.getenv("DB_LOG_DIR", "logs"))


def get_database_url(database_url: Optional[str] = None) -> str:
    """Return the configured database URL, raising if none is set"""
    url = database_url or os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise ValueError("database_url must be provided or set in DATABASE_URL environment variable")
    return url


def query_logging_enabled() -> bool:
    """Query logging is opt-in; read on every call so tests can toggle it"""
    return os.getenv("DB_QUERY_LOGGING_ENABLED", "false").lower() == "true"
