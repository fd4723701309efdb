"""
Crawl loop for a session-gated infinite-scroll feed.

``FeedHarvester`` runs until stopped. Each outer iteration makes sure a
session exists, runs one harvest pass and then waits out the pass cooldown.
A harvest pass navigates to the feed and repeatedly scans for the rate-limit
banner, harvests every rendered item, scrolls one viewport and settles. The
banner ends the pass and tears the session down; the outer loop renegotiates.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from feedharvest.core.config import Config, DEFAULT_RATE_LIMIT_TEXT
from feedharvest.core.error_logger import ErrorLogger, get_error_logger
from feedharvest.core.error_models import ErrorComponent, ErrorSeverity, ErrorStage, ErrorType
from feedharvest.core.errors import HarvestError
from feedharvest.core.logging import get_logger
from feedharvest.crawler.archive import ArchivePipeline
from feedharvest.crawler.detection import ExactTextPattern, TextPattern, any_match
from feedharvest.crawler.extractor import DEFAULT_INTERNAL_DOMAINS, DEFAULT_SITE_ORIGIN, extract
from feedharvest.crawler.manifest import ManifestBuilder
from feedharvest.crawler.page_scripts import BANNER_TEXTS_JS, COLLECT_ITEMS_JS
from feedharvest.crawler.rounds import RoundSource
from feedharvest.crawler.session import SessionManager
from feedharvest.db.models import Skip
from feedharvest.utils.retry import RetryConfig, retry_async_with_backoff
from feedharvest.utils.url_utils import domain_of

logger = get_logger(__name__)


class Harvester(Protocol):
    """What a node needs from any feed crawler."""

    async def check_session(self) -> bool:
        ...

    async def crawl(self) -> None:
        ...

    async def get_submission_cid(self, round: int) -> Optional[str]:
        ...

    async def stop(self) -> bool:
        ...


@dataclass
class HarvestSettings:
    """Pacing and detection knobs for the crawl loop."""
    feed_url: str
    site_origin: str = DEFAULT_SITE_ORIGIN
    internal_domains: Tuple[str, ...] = DEFAULT_INTERNAL_DOMAINS
    pass_cooldown_s: float = 300.0
    session_retry_s: float = 10.0
    nav_timeout_ms: int = 45_000
    render_settle_ms: int = 5_000
    scroll_settle_ms: int = 1_000
    viewport: Tuple[int, int] = (1024, 4000)
    rate_limit: TextPattern = field(
        default_factory=lambda: ExactTextPattern(DEFAULT_RATE_LIMIT_TEXT)
    )
    archive_retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_config(cls, config: Config) -> "HarvestSettings":
        return cls(
            feed_url=config.feed_url,
            site_origin=config.site_origin,
            internal_domains=config.internal_domains,
            pass_cooldown_s=config.pass_cooldown_s,
            session_retry_s=config.session_retry_s,
            nav_timeout_ms=config.nav_timeout_ms,
            render_settle_ms=config.render_settle_ms,
            scroll_settle_ms=config.scroll_settle_ms,
            viewport=config.harvest_viewport,
            rate_limit=ExactTextPattern(config.rate_limit_text),
            archive_retry=RetryConfig(
                max_retries=config.archive_max_retries,
                base_delay=config.archive_retry_base_sleep,
            ),
        )


@dataclass
class PassResult:
    """Counters for one harvest pass."""
    iterations: int = 0
    items_seen: int = 0
    skipped: int = 0
    archived: int = 0
    duplicates: int = 0
    failures: int = 0
    rounds: List[int] = field(default_factory=list)
    rate_limited: bool = False
    aborted: bool = False
    stopped: bool = False


class FeedHarvester:
    """
    Harvester for one feed URL over one browser session.

    Single logical worker: passes never overlap and the session manager is
    only driven from this loop (plus explicit login calls).
    """

    def __init__(
        self,
        session: SessionManager,
        pipeline: ArchivePipeline,
        manifest: ManifestBuilder,
        rounds: RoundSource,
        settings: HarvestSettings,
        error_logger: Optional[ErrorLogger] = None,
    ):
        self.session = session
        self.pipeline = pipeline
        self.manifest = manifest
        self.rounds = rounds
        self.settings = settings
        self._error_logger = error_logger
        self._domain = domain_of(settings.feed_url) or "unknown"
        self._stopped = False
        self._stop_event = asyncio.Event()
        self._archive = retry_async_with_backoff(
            pipeline.archive,
            config=settings.archive_retry,
            retry_on=(HarvestError,),
        )
        self.passes = 0

    def _errors(self) -> ErrorLogger:
        if self._error_logger is None:
            self._error_logger = get_error_logger()
        return self._error_logger

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def check_session(self) -> bool:
        return await self.session.ensure_session()

    async def stop(self) -> bool:
        """Ask the loop to finish; honored at the next iteration boundary."""
        logger.info("Stop requested")
        self._stopped = True
        self._stop_event.set()
        return True

    async def get_submission_cid(self, round: int) -> Optional[str]:
        return await self.manifest.build_proof(round)

    async def _pause(self, seconds: float) -> None:
        """Sleep that wakes early when stop() is called."""
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def crawl(self) -> None:
        """Run harvest passes until stopped."""
        logger.info(f"Crawl started for {self.settings.feed_url}")
        while not self._stopped:
            if not self.session.is_valid:
                if not await self.session.ensure_session():
                    await self._pause(self.settings.session_retry_s)
                    continue
                if self._stopped:
                    break

            result = await self.harvest_pass()
            logger.info(
                f"Pass {self.passes} finished: archived={result.archived} duplicates={result.duplicates} "
                f"skipped={result.skipped} failures={result.failures} rate_limited={result.rate_limited}"
            )
            if self._stopped:
                break
            await self._pause(self.settings.pass_cooldown_s)
        logger.info("Crawl stopped")

    async def harvest_pass(self) -> PassResult:
        """
        One navigate -> (scan, harvest, scroll, settle)* sequence.

        Returns:
            PassResult describing why and after how much work the pass ended
        """
        self.passes += 1
        result = PassResult()
        s = self.settings
        browser = self.session.browser

        logger.info(f"Harvest pass {self.passes}: {s.feed_url}")
        try:
            await browser.set_viewport(*s.viewport)
            await browser.navigate(s.feed_url, s.nav_timeout_ms)
            await browser.pause(s.render_settle_ms)
        except Exception as e:
            await self._abort(result, e, ErrorStage.NAVIGATE_FEED)
            return result

        while not self._stopped:
            result.iterations += 1

            try:
                round = await self.rounds.get_current_round()
            except Exception as e:
                # Round source trouble is not the session's fault; keep the browser
                logger.error(f"Could not resolve current round: {e}")
                self._errors().log_exception(
                    e, component=ErrorComponent.CRAWLER, stage=ErrorStage.RESOLVE_ROUND, domain=self._domain,
                )
                result.aborted = True
                return result
            if not result.rounds or result.rounds[-1] != round:
                result.rounds.append(round)

            try:
                banner_texts = await browser.evaluate(BANNER_TEXTS_JS) or []
                items = await browser.evaluate(COLLECT_ITEMS_JS) or []
            except Exception as e:
                await self._abort(result, e, ErrorStage.COLLECT_ITEMS)
                return result

            rate_limited = any_match(s.rate_limit, banner_texts)

            for markup in items:
                await self._process_item(markup, round, result)

            try:
                await browser.scroll_by_viewport()
                await browser.pause(s.scroll_settle_ms)
            except Exception as e:
                await self._abort(result, e, ErrorStage.SCROLL)
                return result

            if rate_limited:
                logger.warning("Rate limit reached, tearing down session")
                self._errors().log_error(
                    component=ErrorComponent.CRAWLER,
                    stage=ErrorStage.DETECT_RATE_LIMIT,
                    error_type=ErrorType.RATE_LIMIT,
                    domain=self._domain,
                    message="Rate limit banner detected",
                    url=s.feed_url,
                    round=round,
                    severity=ErrorSeverity.WARNING,
                    metadata={"iteration": result.iterations},
                )
                await self.session.invalidate("rate limit banner")
                result.rate_limited = True
                return result

        result.stopped = True
        return result

    async def _process_item(self, markup: str, round: int, result: PassResult) -> None:
        result.items_seen += 1
        outcome = extract(
            markup,
            site_origin=self.settings.site_origin,
            internal_domains=self.settings.internal_domains,
        )
        if isinstance(outcome, Skip):
            result.skipped += 1
            logger.debug(f"Skipping item: {outcome.reason}")
            return

        try:
            cid = await self._archive(outcome, markup, round)
        except Exception as e:
            # One failed item never ends the pass
            result.failures += 1
            logger.error(f"Archiving item {outcome.tweets_id} failed: {e}")
            self._errors().log_exception(
                e,
                component=ErrorComponent.ARCHIVE,
                stage=ErrorStage.UPLOAD_ITEM,
                domain=self._domain,
                item_id=outcome.tweets_id,
                round=round,
            )
            return

        if cid is None:
            result.duplicates += 1
        else:
            result.archived += 1

    async def _abort(self, result: PassResult, exc: Exception, stage: str) -> None:
        """Browser-level failure: treat the session as silently expired."""
        logger.error(f"Harvest pass aborted at {stage}: {exc}")
        self._errors().log_exception(
            exc,
            component=ErrorComponent.CRAWLER,
            stage=stage,
            domain=self._domain,
            url=self.settings.feed_url,
            severity=ErrorSeverity.WARNING,
        )
        await self.session.invalidate(f"browser failure at {stage}")
        result.aborted = True
