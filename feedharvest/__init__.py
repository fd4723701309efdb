"""
feedharvest - session-gated feed harvester with content-addressed archival.

Harvests records from an infinite-scroll feed through a browser session,
deduplicates them by item id, archives each new record together with its raw
markup into a content-addressed blob store and bundles each round's archive
identifiers into a manifest ("proof").
"""

__version__ = "0.3.0"
