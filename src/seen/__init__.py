"""Seen: semantic retrieval over saved links.

Dual vector indexes (a managed remote index and a local usearch snapshot)
kept in step with a durable embeddings table.
"""

__version__ = "0.1.0"

from seen._seen import Seen
from seen.config import SeenConfig
from seen.exceptions import (
    NotFoundError,
    PartialWriteError,
    RequestError,
    SeenError,
    SerializationError,
    TransientServiceError,
)
from seen.ids import chunk_vector_ids, document_id_of, parse_vector_id, vector_id
from seen.models import Document, Embedding
from seen.search import (
    Backend,
    ChunkHit,
    DocumentHit,
    EmbeddingProvider,
    IndexCoordinator,
    IngestReport,
    LocalIndexSnapshotStore,
    LocalVectorIndex,
    MigrationProgress,
    ProcessedDocument,
    QueryEngine,
    ScoreMetric,
    VectorEntry,
    VectorIndex,
    VectorizeIndex,
    VectorMatch,
    WriteStep,
)
from seen.search.types import CorpusStats
from seen.storage import BlobStore, DocumentRepository, LocalBlobStore

__all__ = [
    "Backend",
    "BlobStore",
    "ChunkHit",
    "CorpusStats",
    "Document",
    "DocumentHit",
    "DocumentRepository",
    "Embedding",
    "EmbeddingProvider",
    "IndexCoordinator",
    "IngestReport",
    "LocalBlobStore",
    "LocalIndexSnapshotStore",
    "LocalVectorIndex",
    "MigrationProgress",
    "NotFoundError",
    "PartialWriteError",
    "ProcessedDocument",
    "QueryEngine",
    "RequestError",
    "ScoreMetric",
    "Seen",
    "SeenConfig",
    "SeenError",
    "SerializationError",
    "TransientServiceError",
    "VectorEntry",
    "VectorIndex",
    "VectorMatch",
    "VectorizeIndex",
    "WriteStep",
    "__version__",
    "chunk_vector_ids",
    "document_id_of",
    "parse_vector_id",
    "vector_id",
]
