"""
Unit tests for the dedup / archive pipeline.
"""

import pytest

from feedharvest.core.errors import BlobStoreError, HarvestError, RecordStoreError
from feedharvest.crawler.archive import ArchivePipeline, package_item
from feedharvest.crawler.extractor import extract
from feedharvest.db.record_store import JsonlRecordStore
from feedharvest.utils.retry import RetryConfig, retry_async_with_backoff


class FlakyRecordStore(JsonlRecordStore):
    """JsonlRecordStore whose first ``fail_times`` writes fail."""

    def __init__(self, fail_times: int = 1):
        super().__init__()
        self.fail_times = fail_times

    def create(self, record):
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RecordStoreError("simulated write failure")
        super().create(record)


@pytest.fixture
def record(sample_item_html):
    return extract(sample_item_html, observed_at=1_700_000_000)


@pytest.fixture
def pipeline(blob_store, stores):
    return ArchivePipeline(blob_store, stores.cids, stores.records)


class TestPackageItem:
    """Tests for the upload unit."""

    def test_files(self, record, sample_item_html):
        """Test that the record JSON and raw markup are packaged together."""
        files = package_item(record, sample_item_html)

        assert [f.name for f in files] == ["data.json", "data.html"]
        assert files[1].data.decode("utf-8") == sample_item_html
        assert b'"tweets_id": "123"' in files[0].data


class TestArchivePipeline:
    """Tests for ArchivePipeline.archive."""

    async def test_archives_new_item(self, pipeline, record, sample_item_html, blob_store, stores):
        """Test that a new item is uploaded and its CID recorded."""
        cid = await pipeline.archive(record, sample_item_html, round=7)

        assert cid == "bafytest1"
        assert stores.cids.get_item({"id": "123"}) == {"id": "123", "round": 7, "cid": cid}
        assert blob_store.json_file(cid)["screen_name"] == "@alice"
        assert stores.records.get_item({"id": "123"})["tweets_content"] == "hello"

    async def test_duplicate_is_not_reuploaded(self, pipeline, record, sample_item_html, blob_store, stores):
        """Test that a natural key is archived once across rounds."""
        first = await pipeline.archive(record, sample_item_html, round=7)
        second = await pipeline.archive(record, sample_item_html, round=8)

        assert first is not None
        assert second is None
        assert blob_store.put_calls == 1
        assert len(stores.cids.get_list({"id": "123"})) == 1
        assert stores.cids.get_item({"id": "123"})["round"] == 7

    async def test_existing_entry_from_store(self, blob_store, stores, record, sample_item_html):
        """Test that entries written by an earlier run count as archived."""
        stores.cids.create({"id": "123", "round": 3, "cid": "bafyold"})
        pipeline = ArchivePipeline(blob_store, stores.cids)

        assert pipeline.is_archived("123")
        assert await pipeline.archive(record, sample_item_html, round=7) is None
        assert blob_store.put_calls == 0

    async def test_upload_failure_propagates(self, pipeline, record, sample_item_html, blob_store, stores):
        """Test that an upload failure raises and leaves no CID entry."""
        blob_store.fail_times = 1

        with pytest.raises(BlobStoreError):
            await pipeline.archive(record, sample_item_html, round=7)

        assert stores.cids.get_item({"id": "123"}) is None
        assert not pipeline.is_archived("123")

    async def test_retry_after_failure(self, pipeline, record, sample_item_html, blob_store):
        """Test that a failed item can be archived on a later attempt."""
        blob_store.fail_times = 1
        with pytest.raises(BlobStoreError):
            await pipeline.archive(record, sample_item_html, round=7)

        assert await pipeline.archive(record, sample_item_html, round=7) == "bafytest1"

    async def test_records_store_optional(self, blob_store, stores, record, sample_item_html):
        """Test that the pipeline works without a records collection."""
        pipeline = ArchivePipeline(blob_store, stores.cids)
        assert await pipeline.archive(record, sample_item_html, round=1) is not None
        assert len(stores.records) == 0

    async def test_records_failure_leaves_item_unarchived(self, blob_store, stores, record, sample_item_html):
        """Test that a failed observation write commits no CID entry."""
        records = FlakyRecordStore(fail_times=1)
        pipeline = ArchivePipeline(blob_store, stores.cids, records)

        with pytest.raises(RecordStoreError):
            await pipeline.archive(record, sample_item_html, round=7)

        assert stores.cids.get_item({"id": "123"}) is None
        assert not pipeline.is_archived("123")

    async def test_records_failure_recovered_by_retry(self, blob_store, stores, record, sample_item_html):
        """Test that a retried archive stores both the observation and the CID entry."""
        records = FlakyRecordStore(fail_times=1)
        pipeline = ArchivePipeline(blob_store, stores.cids, records)
        archive = retry_async_with_backoff(
            pipeline.archive, RetryConfig(max_retries=2, base_delay=0.01), retry_on=(HarvestError,)
        )

        cid = await archive(record, sample_item_html, 7)

        assert cid is not None
        assert stores.cids.get_item({"id": "123"}) == {"id": "123", "round": 7, "cid": cid}
        assert records.get_item({"id": "123"})["tweets_content"] == "hello"
