"""
Database Connection Logger
JSON-lines logging for connection attempts, errors, queries and health checks
"""

import json
import logging
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List
from psycopg2 import OperationalError, InterfaceError, ProgrammingError, DatabaseError

from promptana.config import database_config

logger = logging.getLogger(__name__)

# Log file names (relative to database_config.DB_LOG_DIR)
DB_CONNECTION_LOG = "database_connections.log"
DB_ERROR_LOG = "database_errors.log"
DB_QUERY_LOG = "database_queries.log"
DB_HEALTH_LOG = "database_health.log"


def mask_database_url(database_url: str) -> str:
    """Drop credentials from a database URL before it is logged"""
    return database_url.split('@', 1)[1] if '@' in database_url else "masked"


class DatabaseLogger:
    """Centralized database logging system"""

    @staticmethod
    def _log_path(name: str) -> Path:
        log_dir = Path(database_config.DB_LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir / name

    @staticmethod
    def _write_log(name: str, entry: Dict[str, Any]):
        """Append one JSON entry to a log file"""
        try:
            with open(DatabaseLogger._log_path(name), 'a', encoding='utf-8') as f:
                f.write(json.dumps(entry, default=str) + '\n')
        except OSError as e:
            logger.warning(f"⚠️ Failed to write to {name}: {e}")

    @staticmethod
    def _read_log(name: str, limit: int) -> List[Dict[str, Any]]:
        path = Path(database_config.DB_LOG_DIR) / name
        if not path.exists():
            return []
        entries = []
        with open(path, 'r', encoding='utf-8') as f:
            lines = f.readlines()
        for line in lines[-limit:]:
            try:
                entries.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                continue
        return entries

    @staticmethod
    def log_connection_attempt(
        database_url: str,
        success: bool,
        error: Optional[str] = None,
        duration_ms: Optional[float] = None
    ):
        """Log database connection attempts"""
        entry = {
            "timestamp": datetime.now().isoformat(),
            "event": "connection_attempt",
            "success": success,
            "database_url": mask_database_url(database_url),
            "duration_ms": duration_ms,
            "error": error
        }
        DatabaseLogger._write_log(DB_CONNECTION_LOG, entry)

        if not success:
            DatabaseLogger.log_error("connection", error or "Unknown connection error", {
                "database_url": mask_database_url(database_url)
            })

    @staticmethod
    def log_error(
        operation: str,
        error_message: str,
        context: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None
    ):
        """Log database errors with full context"""
        entry = {
            "timestamp": datetime.now().isoformat(),
            "event": "error",
            "operation": operation,
            "error": error_message,
            "error_type": type(exception).__name__ if exception else "Unknown",
            "context": context or {},
        }

        if exception:
            entry["traceback"] = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
            entry["error_code"] = getattr(exception, 'pgcode', None)
            entry["error_detail"] = getattr(exception, 'pgerror', None)

        DatabaseLogger._write_log(DB_ERROR_LOG, entry)
        logger.error(f"❌ Database Error [{operation}]: {error_message}")

    @staticmethod
    def log_query(
        operation: str,
        query: Optional[str] = None,
        params: Optional[Any] = None,
        success: bool = True,
        duration_ms: Optional[float] = None,
        rows_affected: Optional[int] = None,
        error: Optional[str] = None
    ):
        """Log database queries (only when DB_QUERY_LOGGING_ENABLED=true)"""
        if not database_config.query_logging_enabled():
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "event": "query",
            "operation": operation,
            "query": query[:500] if query else None,
            "params": str(params)[:200] if params else None,
            "success": success,
            "duration_ms": duration_ms,
            "rows_affected": rows_affected,
            "error": error
        }
        DatabaseLogger._write_log(DB_QUERY_LOG, entry)

    @staticmethod
    def log_health_check(
        status: str,
        details: Dict[str, Any],
        error: Optional[str] = None
    ):
        """Log database health check results"""
        entry = {
            "timestamp": datetime.now().isoformat(),
            "event": "health_check",
            "status": status,  # "healthy", "unhealthy"
            "details": details,
            "error": error
        }
        DatabaseLogger._write_log(DB_HEALTH_LOG, entry)

    @staticmethod
    def categorize_error(exception: BaseException) -> Dict[str, Any]:
        """Categorize database errors for better debugging"""
        error_type = type(exception).__name__
        error_msg = str(exception).lower()

        category = "unknown"
        severity = "medium"
        suggested_fix = "Check database connection and logs"

        if isinstance(exception, OperationalError):
            category = "connection"
            severity = "high"
            if "could not translate hostname" in error_msg:
                suggested_fix = "DATABASE_URL contains invalid hostname. Check .env file."
            elif "connection refused" in error_msg:
                suggested_fix = "PostgreSQL server not running or not reachable."
            elif "timeout" in error_msg:
                suggested_fix = "Connection timeout. Check network/firewall settings."
            elif "authentication failed" in error_msg or "password" in error_msg:
                suggested_fix = "Invalid credentials. Check DATABASE_URL username/password."
            else:
                suggested_fix = "Check PostgreSQL service status and DATABASE_URL"

        elif isinstance(exception, InterfaceError):
            category = "interface"
            severity = "high"
            suggested_fix = "Database connection lost. Check if PostgreSQL server restarted."

        elif isinstance(exception, ProgrammingError):
            category = "query"
            if "relation" in error_msg and "does not exist" in error_msg:
                suggested_fix = "Table missing. Apply the schema: python3 api/scripts/database/init_database.py"
            elif "column" in error_msg and "does not exist" in error_msg:
                suggested_fix = "Column missing. Check database schema matches code."
            elif "tsquery" in error_msg or "text search" in error_msg:
                suggested_fix = "Full-text search failed. Check SEARCH_TEXT_CONFIG and the query text."
            else:
                suggested_fix = "SQL syntax error. Check query and parameters."

        elif isinstance(exception, DatabaseError):
            category = "database"
            severity = "high"
            suggested_fix = "Database error. Check PostgreSQL logs."

        return {
            "category": category,
            "severity": severity,
            "error_type": error_type,
            "suggested_fix": suggested_fix,
            "postgresql_code": getattr(exception, 'pgcode', None),
            "postgresql_detail": getattr(exception, 'pgerror', None)
        }

    @staticmethod
    def get_recent_errors(limit: int = 10) -> List[Dict[str, Any]]:
        """Get recent database errors"""
        return DatabaseLogger._read_log(DB_ERROR_LOG, limit)

    @staticmethod
    def get_connection_history(limit: int = 20) -> List[Dict[str, Any]]:
        """Get recent connection attempts"""
        return DatabaseLogger._read_log(DB_CONNECTION_LOG, limit)
