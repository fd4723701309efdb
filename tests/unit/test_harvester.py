"""
Unit tests for the crawl loop.
"""

import pytest

from feedharvest.core.config import DEFAULT_RATE_LIMIT_TEXT
from feedharvest.crawler.archive import ArchivePipeline
from feedharvest.crawler.harvester import FeedHarvester, HarvestSettings
from feedharvest.crawler.manifest import ManifestBuilder
from feedharvest.crawler.rounds import CallableRoundSource, FixedRoundSource
from feedharvest.crawler.session import SessionManager
from feedharvest.utils.retry import RetryConfig

FEED_URL = "https://twitter.com/search?q=python&f=live"
BANNER = [DEFAULT_RATE_LIMIT_TEXT]


@pytest.fixture
def settings():
    return HarvestSettings(
        feed_url=FEED_URL,
        pass_cooldown_s=0,
        session_retry_s=0,
        archive_retry=RetryConfig(max_retries=0, base_delay=0.001),
    )


@pytest.fixture
def make_harvester(fake_browser_factory, blob_store, stores, settings, error_logger):
    """Build a harvester whose session launches one scripted browser per negotiation."""

    def _make(pages=None, rounds=None, on_launch=None, **browser_kwargs):
        launched = []

        async def launcher():
            browser = fake_browser_factory(pages=pages, **browser_kwargs)
            launched.append(browser)
            if on_launch is not None:
                await on_launch(len(launched))
            return browser

        session = SessionManager(launcher, cooldown_s=0, error_logger=error_logger)
        harvester = FeedHarvester(
            session=session,
            pipeline=ArchivePipeline(blob_store, stores.cids, stores.records),
            manifest=ManifestBuilder(blob_store, stores.cids, stores.proofs),
            rounds=rounds or FixedRoundSource(7),
            settings=settings,
            error_logger=error_logger,
        )
        return harvester, launched

    return _make


class TestHarvestPass:
    """Tests for FeedHarvester.harvest_pass."""

    async def test_archives_items(self, make_harvester, item_factory, stores, blob_store):
        """Test that every item on the page is archived with the current round."""
        harvester, launched = make_harvester(
            pages=[([], [item_factory("1"), item_factory("2")])],
        )
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.archived == 2
        assert result.rounds == [7]
        assert {e["id"] for e in stores.cids.get_list({"round": 7})} == {"1", "2"}
        browser = launched[0]
        assert ("navigate", FEED_URL) in browser.calls
        assert ("viewport", 1024, 4000) in browser.calls
        assert ("scroll",) in browser.calls

    async def test_rate_limit_tears_down_session(self, make_harvester, item_factory, error_logger, mock_supabase_client):
        """Test that the banner ends the pass and invalidates the session without raising."""
        harvester, launched = make_harvester(
            pages=[([], [item_factory("1")]), (BANNER, [item_factory("2")])],
        )
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.rate_limited
        assert result.iterations == 2
        assert result.archived == 2
        assert not harvester.session.is_valid
        assert launched[0].closed
        errors = mock_supabase_client.rows("error_logs")
        assert [e["error_type"] for e in errors] == ["rate_limit"]

    async def test_banner_text_must_match_exactly(self, make_harvester, item_factory):
        """Test that similar banner copy does not trigger the rate limit."""
        harvester, _ = make_harvester(
            pages=[(["Something went wrong, but don't fret"], [item_factory("1")])],
        )
        await harvester.check_session()

        result = await harvester.harvest_pass()

        # The scripted page is followed by the real banner on iteration two
        assert result.iterations == 2

    async def test_duplicate_within_pass(self, make_harvester, item_factory, stores, blob_store):
        """Test that an item rendered on two iterations is archived once."""
        item = item_factory("1")
        harvester, _ = make_harvester(pages=[([], [item]), ([], [item, item_factory("2")])])
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.archived == 2
        assert result.duplicates == 1
        assert blob_store.put_calls == 2
        assert len(stores.cids.get_list({"id": "1"})) == 1

    async def test_skipped_items(self, make_harvester, item_factory, ad_item_html, stores):
        """Test that promoted and malformed items are skipped."""
        harvester, _ = make_harvester(pages=[([], [ad_item_html, "<div></div>", item_factory("1")])])
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.skipped == 2
        assert result.archived == 1
        assert stores.cids.get_item({"id": "999"}) is None

    async def test_archive_failure_continues(self, make_harvester, item_factory, blob_store, stores, mock_supabase_client):
        """Test that a failed upload is logged and the pass continues."""
        blob_store.fail_times = 1
        harvester, _ = make_harvester(pages=[([], [item_factory("1"), item_factory("2")])])
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.failures == 1
        assert result.archived == 1
        assert stores.cids.get_item({"id": "1"}) is None
        assert stores.cids.get_item({"id": "2"}) is not None
        errors = mock_supabase_client.rows("error_logs")
        assert errors[0]["item_id"] == "1"
        assert errors[0]["error_type"] == "upload_error"

    async def test_archive_retried(self, make_harvester, item_factory, blob_store, stores, settings):
        """Test that transient upload failures are retried."""
        settings.archive_retry = RetryConfig(max_retries=2, base_delay=0.001)
        blob_store.fail_times = 1
        harvester, _ = make_harvester(pages=[([], [item_factory("1")])])
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.archived == 1
        assert result.failures == 0
        assert blob_store.put_calls == 2

    async def test_round_resolved_per_iteration(self, make_harvester, item_factory, stores):
        """Test that items are tagged with the round current when they were seen."""
        rounds = iter([7, 8, 8])
        harvester, _ = make_harvester(
            pages=[([], [item_factory("1")]), ([], [item_factory("2")])],
            rounds=CallableRoundSource(lambda: next(rounds)),
        )
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.rounds == [7, 8]
        assert stores.cids.get_item({"id": "1"})["round"] == 7
        assert stores.cids.get_item({"id": "2"})["round"] == 8

    async def test_round_source_failure(self, make_harvester):
        """Test that a broken round source ends the pass but keeps the session."""

        def broken():
            raise ConnectionError("node unreachable")

        harvester, launched = make_harvester(pages=[], rounds=CallableRoundSource(broken))
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.aborted
        assert harvester.session.is_valid
        assert not launched[0].closed

    async def test_navigation_failure(self, make_harvester):
        """Test that a browser failure is treated as an expired session."""
        harvester, launched = make_harvester(fail_navigate=True)
        await harvester.check_session()

        result = await harvester.harvest_pass()

        assert result.aborted
        assert not harvester.session.is_valid
        assert launched[0].closed


class TestCrawl:
    """Tests for FeedHarvester.crawl and stop."""

    async def test_stop_returns_true(self, make_harvester):
        """Test that stop acknowledges the request."""
        harvester, _ = make_harvester()
        assert await harvester.stop() is True
        assert harvester.stopped

    async def test_crawl_recovers_from_rate_limit(self, make_harvester, item_factory, stores):
        """Test that the loop renegotiates after a rate limit and ends on stop."""
        harvester_ref = {}

        async def on_launch(n):
            if n == 2:
                await harvester_ref["h"].stop()

        harvester, launched = make_harvester(
            pages=[([], [item_factory("1")])],
            on_launch=on_launch,
        )
        harvester_ref["h"] = harvester

        await harvester.crawl()

        assert len(launched) == 2
        assert launched[0].closed
        # Stop arrived while renegotiating, so the second browser never loads the feed
        assert harvester.passes == 1
        assert stores.cids.get_item({"id": "1"}) is not None

    async def test_crawl_stopped_before_start(self, make_harvester):
        """Test that a stopped harvester never negotiates a session."""
        harvester, launched = make_harvester()
        await harvester.stop()

        await harvester.crawl()

        assert launched == []

    async def test_stop_during_negotiation_skips_pass(self, make_harvester):
        """Test that a stop requested while negotiating ends the crawl before navigating."""
        harvester_ref = {}

        async def on_launch(n):
            await harvester_ref["h"].stop()

        harvester, launched = make_harvester(on_launch=on_launch)
        harvester_ref["h"] = harvester

        await harvester.crawl()

        assert len(launched) == 1
        assert harvester.passes == 0
        assert not any(call[0] == "navigate" for call in launched[0].calls)

    async def test_submission_cid(self, make_harvester, item_factory, blob_store):
        """Test that the proof for a crawled round covers its archived items."""
        harvester, _ = make_harvester(pages=[([], [item_factory("1"), item_factory("2")])])
        await harvester.check_session()
        await harvester.harvest_pass()

        cid = await harvester.get_submission_cid(7)

        assert [e["id"] for e in blob_store.json_file(cid)] == ["1", "2"]
        assert await harvester.get_submission_cid(8) is None
