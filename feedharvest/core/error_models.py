"""
Pydantic models for structured error logging.

This module defines type-safe error record models with automatic validation
and classification so every component reports failures the same way.
"""

import json
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict


class ErrorComponent(str, Enum):
    """System components that can generate errors."""
    SESSION = "session"
    CRAWLER = "crawler"
    EXTRACTOR = "extractor"
    ARCHIVE = "archive"
    MANIFEST = "manifest"
    STORE = "store"
    CONFIG = "config"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """Error severity levels matching logging standards."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorType(str, Enum):
    """
    Categorized error types for classification.

    New error types should be added here to maintain consistency.
    """
    # Validation errors
    VALIDATION_ERROR = "validation_error"

    # Network/API errors
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    HTTP_ERROR = "http_error"
    RATE_LIMIT = "rate_limit"

    # Parsing errors
    PARSE_ERROR = "parse_error"
    JSON_ERROR = "json_error"
    MALFORMED_ITEM = "malformed_item"

    # Storage errors
    UPLOAD_ERROR = "upload_error"
    STORE_ERROR = "store_error"

    # Browser/session errors
    BROWSER_ERROR = "browser_error"
    NAVIGATION_ERROR = "navigation_error"
    AUTH_ERROR = "auth_error"

    # Configuration errors
    CONFIG_ERROR = "config_error"

    UNKNOWN = "unknown"


class ErrorStage:
    """
    Standardized stage names for error logging.

    Use these constants to ensure consistency across the codebase.
    """
    # Session stages
    NEGOTIATE_SESSION = "negotiate_session"
    CLOSE_SESSION = "close_session"
    LOGIN = "login"

    # Crawler stages
    NAVIGATE_FEED = "navigate_feed"
    DETECT_RATE_LIMIT = "detect_rate_limit"
    COLLECT_ITEMS = "collect_items"
    SCROLL = "scroll"
    RESOLVE_ROUND = "resolve_round"

    # Pipeline stages
    EXTRACT_ITEM = "extract_item"
    CHECK_EXISTING = "check_existing"
    UPLOAD_ITEM = "upload_item"
    SAVE_CID = "save_cid"
    BUILD_MANIFEST = "build_manifest"
    SAVE_PROOF = "save_proof"

    # Config stages
    LOAD_CONFIG = "load_config"
    VALIDATE_CONFIG = "validate_config"


class ErrorRecord(BaseModel):
    """
    Structured error record for database insertion.

    This model validates all error data before logging to ensure consistency
    and prevent logging errors from causing additional failures.
    """
    # Required fields
    component: ErrorComponent = Field(..., description="System component")
    stage: str = Field(..., min_length=1, max_length=100, description="Processing stage")
    error_type: ErrorType = Field(..., description="Error category")
    severity: ErrorSeverity = Field(default=ErrorSeverity.ERROR, description="Severity level")
    domain: str = Field(..., min_length=1, max_length=255, description="Feed domain")
    message: str = Field(..., min_length=1, description="Human-readable error message")

    # Optional context
    url: Optional[str] = Field(None, max_length=2048, description="Specific URL if applicable")
    item_id: Optional[str] = Field(None, max_length=255, description="Natural key of the item")
    round: Optional[int] = Field(None, description="Round current when the error occurred")
    exception_type: Optional[str] = Field(None, max_length=255, description="Exception class name")
    stack_trace: Optional[str] = Field(None, description="Stack trace for unexpected errors")

    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional context")

    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="Error timestamp"
    )

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=True,
    )

    @field_validator("stage")
    @classmethod
    def validate_stage(cls, v: str) -> str:
        """Ensure stage is not empty and normalized."""
        if not v or not v.strip():
            return "unknown"
        return v.strip().lower().replace(" ", "_")

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        """Ensure message is not empty."""
        if not v or not v.strip():
            return "No error message provided"
        return v.strip()[:5000]

    @field_validator("metadata")
    @classmethod
    def sanitize_metadata(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Convert non-JSON-serializable metadata values to strings."""
        sanitized = {}
        for key, value in v.items():
            try:
                json.dumps(value)
                sanitized[key] = value
            except (TypeError, ValueError):
                sanitized[key] = str(value)
        return sanitized

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        component: ErrorComponent,
        stage: str,
        domain: str,
        url: Optional[str] = None,
        item_id: Optional[str] = None,
        round: Optional[int] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        error_type: Optional[ErrorType] = None,
        include_stack_trace: Optional[bool] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ErrorRecord":
        """
        Create ErrorRecord from an exception with automatic classification.

        Args:
            exc: The exception that occurred
            component: System component where error occurred
            stage: Processing stage
            domain: Feed domain
            url: Optional specific URL
            item_id: Optional natural key of the item being processed
            round: Optional round number
            severity: Error severity (default: ERROR)
            error_type: Optional explicit error type (auto-detected if None)
            include_stack_trace: Whether to include full stack trace (auto if None)
            metadata: Additional context

        Returns:
            ErrorRecord instance ready for logging

        Example:
            >>> try:
            ...     await pipeline.archive(record, markup, round=7)
            ... except BlobStoreError as e:
            ...     rec = ErrorRecord.from_exception(
            ...         e,
            ...         component=ErrorComponent.ARCHIVE,
            ...         stage=ErrorStage.UPLOAD_ITEM,
            ...         domain="twitter.com",
            ...         item_id=record.tweets_id,
            ...     )
        """
        if error_type is None:
            error_type = cls._classify_exception(exc)

        message = str(exc) or f"{type(exc).__name__} occurred"
        exception_type = f"{type(exc).__module__}.{type(exc).__name__}"

        if include_stack_trace is None:
            include_stack_trace = cls._should_include_stack(exc, severity)

        stack_trace = None
        if include_stack_trace:
            stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            if len(stack_trace) > 10000:
                stack_trace = stack_trace[:10000] + "\n... (truncated)"

        return cls(
            component=component,
            stage=stage,
            error_type=error_type,
            severity=severity,
            domain=domain,
            url=url,
            item_id=item_id,
            round=round,
            message=message,
            exception_type=exception_type,
            stack_trace=stack_trace,
            metadata=metadata or {},
        )

    @staticmethod
    def _classify_exception(exc: Exception) -> ErrorType:
        """
        Automatically classify exception into ErrorType.

        Uses exception type and message patterns to determine category.
        """
        exc_name = type(exc).__name__.lower()
        exc_msg = str(exc).lower()

        if "validation" in exc_name:
            return ErrorType.VALIDATION_ERROR

        if "timeout" in exc_name or "timeout" in exc_msg:
            return ErrorType.TIMEOUT
        if "429" in exc_msg or "rate limit" in exc_msg:
            return ErrorType.RATE_LIMIT
        if "blobstore" in exc_name:
            return ErrorType.UPLOAD_ERROR
        if "recordstore" in exc_name:
            return ErrorType.STORE_ERROR
        if "connect" in exc_name:
            return ErrorType.CONNECTION_ERROR
        if "http" in exc_name or "status" in exc_msg:
            return ErrorType.HTTP_ERROR

        if "json" in exc_name:
            return ErrorType.JSON_ERROR
        if "parse" in exc_name:
            return ErrorType.PARSE_ERROR

        if "playwright" in exc_name or "browser" in exc_name or "target" in exc_name:
            return ErrorType.BROWSER_ERROR
        if "navigation" in exc_msg or "net::" in exc_msg:
            return ErrorType.NAVIGATION_ERROR

        return ErrorType.UNKNOWN

    @staticmethod
    def _should_include_stack(exc: Exception, severity: ErrorSeverity) -> bool:
        """
        Expected errors (validation, timeouts, upload failures) don't need stacks.
        Unexpected errors do.
        """
        if severity == ErrorSeverity.CRITICAL:
            return True

        if severity in (ErrorSeverity.WARNING, ErrorSeverity.INFO, ErrorSeverity.DEBUG):
            return False

        EXPECTED_ERRORS = (
            'ValidationError',
            'ValueError',
            'TimeoutError',
            'BlobStoreError',
            'RecordStoreError',
        )

        return type(exc).__name__ not in EXPECTED_ERRORS
