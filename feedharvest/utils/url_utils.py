"""
URL utility functions for feedharvest.

This module provides the URL handling the extractor and crawl loop need:
item ids from status links, absolute profile URLs and outbound-link filtering.
"""

from typing import Iterable, Optional
from urllib.parse import urljoin, urlparse
from feedharvest.core.logging import get_logger

logger = get_logger(__name__)

# Path/query fragments that mark a link as pointing back into the feed itself
INTERNAL_LINK_MARKERS = ("/search?q=", "/hashtag/")


def domain_of(url: str) -> str:
    """
    Extract domain from URL.

    Example:
        >>> domain_of("https://Twitter.com/search?q=python")
        'twitter.com'
    """
    return urlparse(url).netloc.lower()


def item_id_from_href(href: Optional[str]) -> Optional[str]:
    """
    Return the trailing path segment of a status link.

    Query strings and fragments are ignored.

    Examples:
        >>> item_id_from_href("/alice/status/1652687845612933120")
        '1652687845612933120'

        >>> item_id_from_href("https://twitter.com/alice/status/42?s=20")
        '42'

        >>> item_id_from_href(None) is None
        True
    """
    if not href:
        return None
    path = urlparse(href.strip()).path
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    return segment or None


def absolute_url(origin: str, href: Optional[str]) -> str:
    """
    Join a site-relative href onto the site origin.

    Examples:
        >>> absolute_url("https://twitter.com", "/alice")
        'https://twitter.com/alice'

        >>> absolute_url("https://twitter.com", None)
        ''
    """
    if not href:
        return ""
    href = href.strip()
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(origin.rstrip("/") + "/", href.lstrip("/"))


def is_outbound_link(href: Optional[str], internal_domains: Iterable[str]) -> bool:
    """
    Decide whether a link inside an item body points outside the feed.

    Search links, hashtag links, site-relative links and links on any of the
    feed's own domains are internal.

    Examples:
        >>> is_outbound_link("https://t.co/abc", ["twitter.com"])
        True

        >>> is_outbound_link("/hashtag/python?src=hashtag_click", ["twitter.com"])
        False

        >>> is_outbound_link("https://mobile.twitter.com/alice", ["twitter.com"])
        False
    """
    if not href:
        return False
    href = href.strip()
    if any(marker in href for marker in INTERNAL_LINK_MARKERS):
        return False
    if not href.startswith(("http://", "https://")):
        return False

    host = domain_of(href)
    for domain in internal_domains:
        domain = domain.lower()
        if host == domain or host.endswith("." + domain):
            return False
    return True
