"""
Dedup / archive pipeline.

Each newly seen item is archived exactly once across the lifetime of the
crawl: its record (``data.json``) and raw markup (``data.html``) are uploaded
together as one unit, and the returned CID is recorded against the item's
natural key and the current round. The observation record is stored before
the CID entry, so a failure anywhere leaves the item retryable.
"""

from typing import Optional, Set

from feedharvest.core.logging import get_logger
from feedharvest.db.models import CidEntry, Record
from feedharvest.db.record_store import RecordStore
from feedharvest.storage.blob_store import BlobStore, NamedFile

logger = get_logger(__name__)

RECORD_FILE_NAME = "data.json"
MARKUP_FILE_NAME = "data.html"


def package_item(record: Record, raw_markup: str) -> list:
    """The upload unit for one item: record JSON plus the raw markup."""
    return [
        NamedFile.json(RECORD_FILE_NAME, record.model_dump()),
        NamedFile.html(MARKUP_FILE_NAME, raw_markup),
    ]


class ArchivePipeline:
    """
    Checks the CID collection for a natural key and archives on a miss.

    Upload and store failures propagate to the caller; retry policy belongs
    to the crawl loop.
    """

    def __init__(self, blob_store: BlobStore, cids: RecordStore, records: Optional[RecordStore] = None):
        """
        Args:
            blob_store: Content-addressed store receiving the item files
            cids: Collection of CID entries (natural key -> round -> CID)
            records: Optional collection receiving the raw observation records
        """
        self._blob_store = blob_store
        self._cids = cids
        self._records = records
        # Keys already known to be archived; saves a store lookup per re-rendered item
        self._seen: Set[str] = set()

    def is_archived(self, item_id: str) -> bool:
        if item_id in self._seen:
            return True
        if self._cids.get_item({"id": item_id}) is not None:
            self._seen.add(item_id)
            return True
        return False

    async def archive(self, record: Record, raw_markup: str, round: int) -> Optional[str]:
        """
        Archive one item unless its natural key was archived before.

        Args:
            record: Extracted record
            raw_markup: Markup the record was extracted from
            round: Round to tag the CID entry with

        Returns:
            The new CID, or None if the item was already archived
        """
        item_id = record.natural_key
        if self.is_archived(item_id):
            logger.debug(f"Item {item_id} already archived, skipping")
            return None

        cid = await self._blob_store.put(package_item(record, raw_markup))

        if self._records is not None:
            self._records.create({"id": item_id, **record.model_dump()})

        # The CID entry marks the item archived, so it is written last
        entry = CidEntry(id=item_id, round=round, cid=cid)
        self._cids.create(entry.model_dump())
        self._seen.add(item_id)

        logger.info(f"Archived item {item_id} in round {round} -> {cid}")
        return cid
