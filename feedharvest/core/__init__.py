"""
Core utilities for feedharvest.

This module contains shared utilities used across all components:
- Configuration management
- Structured logging
- Error logging and tracking
- Domain exceptions
"""

from feedharvest.core.logging import get_logger, setup_logging
from feedharvest.core.config import get_config, validate_config, Config
from feedharvest.core.error_logger import get_error_logger
from feedharvest.core.error_models import (
    ErrorComponent,
    ErrorSeverity,
    ErrorType,
    ErrorStage,
    ErrorRecord,
)
from feedharvest.core.errors import (
    HarvestError,
    BlobStoreError,
    RecordStoreError,
    SessionUnavailableError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "get_config",
    "validate_config",
    "Config",
    "get_error_logger",
    "ErrorComponent",
    "ErrorSeverity",
    "ErrorType",
    "ErrorStage",
    "ErrorRecord",
    "HarvestError",
    "BlobStoreError",
    "RecordStoreError",
    "SessionUnavailableError",
]
