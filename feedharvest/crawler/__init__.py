"""
Crawler module for session-gated feed harvesting.

This module drives one browser session over an infinite-scroll feed,
archives every newly seen item and builds per-round submission proofs.

Module Structure:
- detection: Text patterns for banners and verification prompts
- page_scripts: In-page JavaScript evaluated by the crawl loop
- extractor: Item markup -> Record | Skip
- archive: Dedup / upload / CID bookkeeping
- manifest: Per-round proof manifests
- rounds: Current-round sources
- browser: BrowserSession capability and Playwright adapter (requires playwright)
- session: Session manager and login flow (requires playwright)
- harvester: Crawl loop (entry point, requires playwright)
"""

# Export playwright-free pieces directly
from feedharvest.crawler.detection import (
    TextPattern,
    ExactTextPattern,
    SubstringPattern,
    RegexPattern,
    any_match,
)
from feedharvest.crawler.extractor import extract
from feedharvest.crawler.archive import ArchivePipeline, package_item
from feedharvest.crawler.manifest import ManifestBuilder
from feedharvest.crawler.rounds import (
    RoundSource,
    FixedRoundSource,
    IntervalRoundSource,
    CallableRoundSource,
    make_round_source,
)


# Lazy loading for playwright-dependent names
def __getattr__(name):
    """Lazy loading for playwright-dependent names."""
    if name in ("BrowserSession", "PlaywrightBrowserSession"):
        from feedharvest.crawler import browser
        return getattr(browser, name)

    if name in (
        "SessionManager",
        "SessionState",
        "Credentials",
        "LoginFlow",
        "LoginSettings",
        "LoginState",
        "make_session_manager",
    ):
        from feedharvest.crawler import session
        return getattr(session, name)

    if name in ("FeedHarvester", "Harvester", "HarvestSettings", "PassResult"):
        from feedharvest.crawler import harvester
        return getattr(harvester, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Detection
    "TextPattern",
    "ExactTextPattern",
    "SubstringPattern",
    "RegexPattern",
    "any_match",
    # Extraction / archiving
    "extract",
    "ArchivePipeline",
    "package_item",
    "ManifestBuilder",
    # Rounds
    "RoundSource",
    "FixedRoundSource",
    "IntervalRoundSource",
    "CallableRoundSource",
    "make_round_source",
    # Playwright-dependent (lazy)
    "BrowserSession",
    "PlaywrightBrowserSession",
    "SessionManager",
    "SessionState",
    "Credentials",
    "LoginFlow",
    "LoginSettings",
    "LoginState",
    "make_session_manager",
    "FeedHarvester",
    "Harvester",
    "HarvestSettings",
    "PassResult",
]
