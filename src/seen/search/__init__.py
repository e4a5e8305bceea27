"""Vector search layer — query engine, index coordinator, stores, embedding providers."""

from seen.search._coordinator import IndexCoordinator
from seen.search._engine import QueryEngine, group_hits
from seen.search.protocols import EmbeddingProvider, VectorIndex
from seen.search.stores.local import LocalVectorIndex
from seen.search.stores.snapshot import LocalIndexSnapshotStore, SnapshotVectorIndex
from seen.search.stores.vectorize import VectorizeIndex
from seen.search.types import (
    Backend,
    ChunkHit,
    DocumentHit,
    IngestReport,
    MigrationProgress,
    ProcessedDocument,
    ScoreMetric,
    VectorEntry,
    VectorMatch,
    WriteStep,
)

__all__ = [
    "Backend",
    "ChunkHit",
    "DocumentHit",
    "EmbeddingProvider",
    "IndexCoordinator",
    "IngestReport",
    "LocalIndexSnapshotStore",
    "LocalVectorIndex",
    "MigrationProgress",
    "ProcessedDocument",
    "QueryEngine",
    "ScoreMetric",
    "SnapshotVectorIndex",
    "VectorEntry",
    "VectorIndex",
    "VectorMatch",
    "VectorizeIndex",
    "WriteStep",
    "group_hits",
]
