"""
Submission manifest builder.

At round close every CID entry recorded for the round is bundled into one
``data.json`` manifest, uploaded, and the manifest CID is stored as the
round's proof.
"""

from typing import Optional

from feedharvest.core.logging import get_logger
from feedharvest.db.models import Proof
from feedharvest.db.record_store import RecordStore
from feedharvest.storage.blob_store import BlobStore, NamedFile

logger = get_logger(__name__)

MANIFEST_FILE_NAME = "data.json"


class ManifestBuilder:
    """
    Builds per-round proofs.

    Not cached: every call re-reads the round's entries and re-uploads, and
    the proof row for the round is replaced.
    """

    def __init__(self, blob_store: BlobStore, cids: RecordStore, proofs: RecordStore):
        self._blob_store = blob_store
        self._cids = cids
        self._proofs = proofs

    async def build_proof(self, round: int) -> Optional[str]:
        """
        Upload the manifest for ``round`` and record it as the round's proof.

        Args:
            round: Round number

        Returns:
            Manifest CID, or None when nothing was archived in the round
        """
        entries = self._cids.get_list({"round": round})
        if not entries:
            logger.info(f"No CIDs found for round {round}")
            return None

        manifest = [
            {"id": e["id"], "round": e["round"], "cid": e["cid"]}
            for e in entries
        ]
        cid = await self._blob_store.put([NamedFile.json(MANIFEST_FILE_NAME, manifest)])

        self._proofs.create(Proof.for_round(round, cid).model_dump())
        logger.info(f"Proof for round {round}: {cid} ({len(manifest)} entries)")
        return cid

    def get_proof(self, round: int) -> Optional[str]:
        """Previously stored proof CID for ``round``, if any."""
        row = self._proofs.get_item({"id": Proof.key_for(round)})
        return row["proof_cid"] if row else None
