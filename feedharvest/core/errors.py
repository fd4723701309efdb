"""Exception types raised by feedharvest components."""


class HarvestError(Exception):
    """Base class for all feedharvest errors."""


class BlobStoreError(HarvestError):
    """An upload to the blob store failed or returned no content identifier."""


class RecordStoreError(HarvestError):
    """A record store read or write failed."""


class SessionUnavailableError(HarvestError):
    """A harvest pass was started without a live browser session."""
