"""Vector index backends — VectorIndex protocol implementations."""

from seen.search.stores.local import LocalVectorIndex
from seen.search.stores.snapshot import LocalIndexSnapshotStore, SnapshotVectorIndex
from seen.search.stores.vectorize import VectorizeIndex

__all__ = [
    "LocalIndexSnapshotStore",
    "LocalVectorIndex",
    "SnapshotVectorIndex",
    "VectorizeIndex",
]
