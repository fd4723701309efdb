"""
Record extraction from raw feed item markup.

``extract`` turns the outerHTML of one rendered feed item into a ``Record``
or a ``Skip``. It never raises: promoted items, ads and anything else missing
the expected structure come back as ``Skip`` so the crawl loop can move on.
"""

import re
from typing import Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag
from pydantic import ValidationError

from feedharvest.core.logging import get_logger
from feedharvest.db.models import ExtractResult, Record, Skip
from feedharvest.utils.date_utils import now_epoch, to_epoch_seconds
from feedharvest.utils.url_utils import absolute_url, is_outbound_link, item_id_from_href

logger = get_logger(__name__)

DEFAULT_SITE_ORIGIN = "https://twitter.com"
DEFAULT_INTERNAL_DOMAINS = ("twitter.com", "x.com")

ARTICLE_SELECTOR = 'article[data-testid="tweet"]'
STATUS_LINK_SELECTOR = 'a[href*="/status/"]'
HANDLE_SELECTOR = 'a[tabindex="-1"]'
NAME_LINK_SELECTOR = 'a[role="link"]'
AVATAR_SELECTOR = 'img[draggable="true"]'
BODY_SELECTOR = 'div[data-testid="tweetText"]'
COUNTER_SELECTOR = 'span[data-testid="app-text-transition-container"]'

# Positional order of the engagement counters
COUNTER_FIELDS = ("comment", "like", "share", "view")

LINE_BREAK_MARKER = "<br>"
_WHITESPACE_RE = re.compile(r"\s")


def _text(tag: Optional[Tag]) -> str:
    return tag.get_text() if tag is not None else ""


def _handle(article: Tag) -> str:
    """First handle-looking link text; the first candidate link otherwise."""
    candidates = [a.get_text().strip() for a in article.select(HANDLE_SELECTOR)]
    for text in candidates:
        if text.startswith("@"):
            return text
    return candidates[0] if candidates else ""


def _display_name(article: Tag) -> str:
    """Display name precedes the first '@' in the concatenated link text."""
    all_text = "".join(a.get_text() for a in article.select(NAME_LINK_SELECTOR))
    return all_text.split("@")[0].strip()


def _outbound_links(body: Tag, internal_domains: Iterable[str]) -> Tuple[List[str], List[str]]:
    """(urls, display texts) of outbound links in DOM order."""
    urls: List[str] = []
    short_urls: List[str] = []
    for a in body.select("a"):
        href = a.get("href")
        if not is_outbound_link(href, internal_domains):
            continue
        urls.append(href.strip())
        short_urls.append(_WHITESPACE_RE.sub("", a.get_text()))
    return urls, short_urls


def _counters(article: Tag) -> dict:
    spans = article.select(COUNTER_SELECTOR)
    return {
        field: (spans[idx].get_text().strip() if idx < len(spans) else "")
        for idx, field in enumerate(COUNTER_FIELDS)
    }


def _extract(
    markup: str,
    site_origin: str,
    internal_domains: Iterable[str],
    observed_at: Optional[int],
) -> ExtractResult:
    soup = BeautifulSoup(markup, "lxml")

    article = soup.select_one(ARTICLE_SELECTOR)
    if article is None:
        return Skip(reason="no item article")

    status_link = article.select_one(STATUS_LINK_SELECTOR)
    item_id = item_id_from_href(status_link.get("href") if status_link is not None else None)
    if not item_id:
        return Skip(reason="no status link")

    screen_name = _handle(article)
    body = article.select_one(BODY_SELECTOR)
    content = _text(body)
    if not screen_name or not content.strip():
        return Skip(reason="missing handle or body text")

    name_link = article.select_one(NAME_LINK_SELECTOR)
    avatar = article.select_one(AVATAR_SELECTOR)
    time_el = article.select_one("time")
    urls, short_urls = _outbound_links(body, internal_domains)

    return Record(
        tweets_id=item_id,
        user_name=_display_name(article),
        screen_name=screen_name,
        user_url=absolute_url(site_origin, name_link.get("href") if name_link is not None else None),
        user_img=avatar.get("src") if avatar is not None else None,
        tweets_content=content.replace("\n", LINE_BREAK_MARKER),
        time_post=to_epoch_seconds(time_el.get("datetime") if time_el is not None else None),
        time_read=observed_at if observed_at is not None else now_epoch(),
        outer_media_url=urls,
        outer_media_short_url=short_urls,
        **_counters(article),
    )


def extract(
    markup: str,
    site_origin: str = DEFAULT_SITE_ORIGIN,
    internal_domains: Iterable[str] = DEFAULT_INTERNAL_DOMAINS,
    observed_at: Optional[int] = None,
) -> ExtractResult:
    """
    Extract a structured record from one feed item's markup.

    Args:
        markup: outerHTML of the rendered item
        site_origin: Origin prepended to site-relative profile links
        internal_domains: Domains whose links are not outbound
        observed_at: Observation time in Unix seconds (default: now)

    Returns:
        Record, or Skip when the item lacks a status link, handle or body

    Example:
        >>> result = extract(item_html)
        >>> if isinstance(result, Record):
        ...     print(result.tweets_id, result.like)
    """
    if not isinstance(markup, str) or not markup.strip():
        return Skip(reason="empty markup")

    try:
        return _extract(markup, site_origin, tuple(internal_domains), observed_at)
    except ValidationError as e:
        logger.debug(f"Item failed record validation: {e.error_count()} error(s)")
        return Skip(reason="record validation failed")
    except Exception as e:
        logger.debug(f"Filtering malformed item: {type(e).__name__}: {e}")
        return Skip(reason=f"{type(e).__name__}: {e}")
