"""
Local record stores.

Three independent append-only collections back the pipeline: raw observation
records, CID entries and round proofs. Each collection is a ``RecordStore``
addressable by natural key (``id``) or by any other field.

``JsonlRecordStore`` keeps one collection in memory and appends every write
to a JSON-lines file so the collection survives restarts.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Protocol

from feedharvest.core.config import Config
from feedharvest.core.errors import RecordStoreError
from feedharvest.core.logging import get_logger

logger = get_logger(__name__)

Row = Dict[str, Any]


class RecordStore(Protocol):
    """Append-only key/value collection."""

    def create(self, record: Row) -> None:
        ...

    def get_item(self, query: Row) -> Optional[Row]:
        ...

    def get_list(self, query: Row) -> List[Row]:
        ...


def _matches(row: Row, query: Row) -> bool:
    return all(row.get(k) == v for k, v in query.items())


class JsonlRecordStore:
    """
    JSON-lines backed collection.

    Writes are create-only; a second write for an existing ``id`` replaces the
    earlier row (last writer wins). Safe for concurrent readers and writers
    within one process.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Args:
            path: File to persist to; None keeps the collection in memory only
        """
        self._path = path
        self._lock = threading.Lock()
        self._rows: Dict[str, Row] = {}
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        for lineno, line in enumerate(self._path.read_text("utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"{self._path}:{lineno}: skipping corrupt line")
                continue
            self._rows[str(row.get("id"))] = row
        logger.debug(f"Loaded {len(self._rows)} rows from {self._path}")

    def create(self, record: Row) -> None:
        if not record.get("id"):
            raise RecordStoreError("record has no id")
        row = dict(record)
        with self._lock:
            if self._path is not None:
                try:
                    with open(self._path, "a", encoding="utf-8") as f:
                        f.write(json.dumps(row, ensure_ascii=False))
                        f.write("\n")
                except OSError as e:
                    raise RecordStoreError(f"write to {self._path} failed: {e}") from e
            # Re-inserting moves the key to the end, keeping list order = write order
            self._rows.pop(str(row["id"]), None)
            self._rows[str(row["id"])] = row

    def get_item(self, query: Row) -> Optional[Row]:
        with self._lock:
            if set(query) == {"id"}:
                row = self._rows.get(str(query["id"]))
                return dict(row) if row is not None else None
            for row in self._rows.values():
                if _matches(row, query):
                    return dict(row)
        return None

    def get_list(self, query: Row) -> List[Row]:
        with self._lock:
            return [dict(row) for row in self._rows.values() if _matches(row, query)]

    def __len__(self) -> int:
        return len(self._rows)


class RecordStores(NamedTuple):
    """The three collections the pipeline persists to."""
    records: RecordStore
    cids: RecordStore
    proofs: RecordStore


def open_record_stores(config: Config) -> RecordStores:
    """
    Open the configured record store backend.

    Args:
        config: Application config (STORE_BACKEND selects local or supabase)

    Returns:
        RecordStores for records, cids and proofs
    """
    if config.store_backend == "supabase":
        from feedharvest.db.supabase_client import get_supabase, SupabaseRecordStore

        client = get_supabase(config.supabase_url, config.supabase_service_role_key)
        if client is None:
            raise RecordStoreError("STORE_BACKEND=supabase but no Supabase client could be created")
        logger.info("Using Supabase record stores")
        return RecordStores(
            records=SupabaseRecordStore(client, config.records_table),
            cids=SupabaseRecordStore(client, config.cids_table),
            proofs=SupabaseRecordStore(client, config.proofs_table),
        )

    root = config.local_store_dir
    logger.info(f"Using local record stores under {root}")
    return RecordStores(
        records=JsonlRecordStore(root / "records.jsonl"),
        cids=JsonlRecordStore(root / "cids.jsonl"),
        proofs=JsonlRecordStore(root / "proofs.jsonl"),
    )
