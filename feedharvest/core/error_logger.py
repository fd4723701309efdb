"""
Centralized error logging system with Supabase integration.

This module provides a fail-safe error logger that:
- Logs errors to Supabase with structured schema
- Falls back to local file logging on database failures
- Uses Pydantic validation for type safety
- Follows singleton pattern for global access
"""

import os
import json
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime, timezone

from feedharvest.core.logging import get_logger
from feedharvest.core.error_models import (
    ErrorRecord,
    ErrorComponent,
    ErrorSeverity,
    ErrorType,
)

logger = get_logger(__name__)

ERROR_LOG_TABLE = os.getenv("ERROR_LOG_TABLE", "error_logs")
ERROR_LOG_FALLBACK_DIR = Path(os.getenv("ERROR_LOG_FALLBACK_DIR", "logs/errors"))

_error_logger: Optional["ErrorLogger"] = None


class ErrorLogger:
    """
    Centralized error logger with database and file fallback.

    Usage:
        >>> error_logger = get_error_logger()
        >>> error_logger.log_error(
        ...     component=ErrorComponent.CRAWLER,
        ...     stage=ErrorStage.DETECT_RATE_LIMIT,
        ...     error_type=ErrorType.RATE_LIMIT,
        ...     domain="twitter.com",
        ...     message="Rate limit banner detected",
        ...     severity=ErrorSeverity.WARNING,
        ... )
    """

    def __init__(self, client: Any = None, fallback_dir: Optional[Path] = None):
        """
        Args:
            client: Supabase client; when None one is looked up from the environment
            fallback_dir: Directory for JSONL fallback files
        """
        self._client = client
        self._fallback_dir = fallback_dir or ERROR_LOG_FALLBACK_DIR
        self._fallback_dir.mkdir(exist_ok=True, parents=True)

        if self._client is None:
            self._init_database()
        self._db_available = self._client is not None

    def _init_database(self) -> None:
        """Initialize Supabase client for error logging."""
        from feedharvest.db.supabase_client import get_supabase

        try:
            self._client = get_supabase()
        except Exception as e:
            logger.warning(f"Error logging: Database init failed ({e}), using file fallback")
            self._client = None

        if self._client is None:
            logger.debug("Error logging: Supabase not configured, using file fallback")

    def log_error(
        self,
        component: ErrorComponent,
        stage: str,
        error_type: ErrorType,
        domain: str,
        message: str,
        url: Optional[str] = None,
        item_id: Optional[str] = None,
        round: Optional[int] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Log an error record.

        This method never raises exceptions - it will fall back to file logging
        if database write fails.

        Returns:
            True if logged successfully, False otherwise
        """
        try:
            record = ErrorRecord(
                component=component,
                stage=stage,
                error_type=error_type,
                severity=severity,
                domain=domain,
                url=url,
                item_id=item_id,
                round=round,
                message=message,
                metadata=metadata or {},
            )
            return self._write(record)
        except Exception as e:
            logger.error(f"Error logger failed: {e} - Original error: {message}")
            return False

    def log_exception(
        self,
        exc: Exception,
        component: ErrorComponent,
        stage: str,
        domain: str,
        url: Optional[str] = None,
        item_id: Optional[str] = None,
        round: Optional[int] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        error_type: Optional[ErrorType] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Log an exception with automatic classification.

        Example:
            >>> try:
            ...     await browser.navigate(feed_url)
            ... except Exception as e:
            ...     error_logger.log_exception(
            ...         e,
            ...         component=ErrorComponent.CRAWLER,
            ...         stage=ErrorStage.NAVIGATE_FEED,
            ...         domain="twitter.com",
            ...         url=feed_url,
            ...     )
        """
        try:
            record = ErrorRecord.from_exception(
                exc=exc,
                component=component,
                stage=stage,
                domain=domain,
                url=url,
                item_id=item_id,
                round=round,
                severity=severity,
                error_type=error_type,
                metadata=metadata,
            )
            return self._write(record)
        except Exception as e:
            logger.error(f"Error logger failed: {e} - Original exception: {type(exc).__name__}")
            return False

    def _write(self, record: ErrorRecord) -> bool:
        if self._db_available and self._client:
            return self._write_to_database(record)
        return self._write_to_file(record)

    def _write_to_database(self, record: ErrorRecord) -> bool:
        """Write error record to Supabase."""
        try:
            row = record.model_dump(exclude_none=False)
            self._client.table(ERROR_LOG_TABLE).insert(row).execute()
            return True
        except Exception as e:
            logger.warning(f"Database error write failed: {e}, falling back to file")
            return self._write_to_file(record)

    def _write_to_file(self, record: ErrorRecord) -> bool:
        """Write error record to local JSON file (fallback)."""
        try:
            date_str = datetime.now(timezone.utc).strftime("%Y%m%d")
            file_path = self._fallback_dir / f"errors_{date_str}.jsonl"

            with open(file_path, "a", encoding="utf-8") as f:
                json.dump(record.model_dump(), f)
                f.write("\n")

            return True
        except Exception as e:
            logger.error(f"File error write failed: {e}")
            return False


def get_error_logger() -> ErrorLogger:
    """
    Get the global ErrorLogger instance.

    Returns:
        Global ErrorLogger singleton
    """
    global _error_logger
    if _error_logger is None:
        _error_logger = ErrorLogger()
    return _error_logger
