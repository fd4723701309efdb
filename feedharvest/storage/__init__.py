"""
Content-addressed storage for archived items and round manifests.
"""

from feedharvest.storage.blob_store import (
    BlobStore,
    NamedFile,
    IpfsBlobStore,
    LocalBlobStore,
    make_blob_store,
)

__all__ = [
    "BlobStore",
    "NamedFile",
    "IpfsBlobStore",
    "LocalBlobStore",
    "make_blob_store",
]
