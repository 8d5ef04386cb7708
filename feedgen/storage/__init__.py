"""Storage module: catalog reads, feed records and feed blobs."""

from feedgen.storage.artifact_store import ArtifactStore, InMemoryArtifactStore, R2ArtifactStore
from feedgen.storage.catalog import CatalogStore, InMemoryCatalogStore, SqlCatalogStore
from feedgen.storage.records import FeedRecordStore, InMemoryFeedRecordStore, SqlFeedRecordStore

__all__ = [
    "ArtifactStore",
    "InMemoryArtifactStore",
    "R2ArtifactStore",
    "CatalogStore",
    "InMemoryCatalogStore",
    "SqlCatalogStore",
    "FeedRecordStore",
    "InMemoryFeedRecordStore",
    "SqlFeedRecordStore",
]
