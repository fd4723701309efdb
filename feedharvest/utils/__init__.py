"""
Shared utility functions for feedharvest.

This module contains reusable utilities used across components:
- URL parsing and outbound-link filtering
- Datetime parsing into epoch seconds
- Retry logic with exponential backoff
"""

from feedharvest.utils.url_utils import domain_of, item_id_from_href, absolute_url, is_outbound_link
from feedharvest.utils.date_utils import now_epoch, parse_iso_datetime, to_epoch_seconds
from feedharvest.utils.retry import retry_async_with_backoff, RetryConfig

__all__ = [
    # URL utilities
    "domain_of",
    "item_id_from_href",
    "absolute_url",
    "is_outbound_link",
    # Date utilities
    "now_epoch",
    "parse_iso_datetime",
    "to_epoch_seconds",
    # Retry utilities
    "retry_async_with_backoff",
    "RetryConfig",
]
