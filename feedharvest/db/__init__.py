"""
Database module for feedharvest.

This module handles all persistence of harvest bookkeeping:
- Pydantic models for records, CID entries and proofs
- Local JSON-lines record stores
- Supabase-backed record stores
"""

from feedharvest.db.models import (
    Record,
    Skip,
    ExtractResult,
    CidEntry,
    Proof,
)

from feedharvest.db.record_store import (
    RecordStore,
    RecordStores,
    JsonlRecordStore,
    open_record_stores,
)

from feedharvest.db.supabase_client import (
    get_supabase,
    SupabaseRecordStore,
)

__all__ = [
    # Models
    "Record",
    "Skip",
    "ExtractResult",
    "CidEntry",
    "Proof",
    # Stores
    "RecordStore",
    "RecordStores",
    "JsonlRecordStore",
    "open_record_stores",
    # Client functions
    "get_supabase",
    "SupabaseRecordStore",
]
