"""Search layer data types — value objects for vectors, hits, and write reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from seen.models.documents import Document


class Backend(str, Enum):
    """Vector index backends."""

    REMOTE = "remote"
    LOCAL = "local"


class ScoreMetric(str, Enum):
    """Similarity metrics understood by the local index."""

    COSINE = "cosine"
    INNER_PRODUCT = "ip"
    L2 = "l2sq"


class WriteStep(str, Enum):
    """Individually reported steps of an ingest or delete."""

    CONTENT_BLOB = "content_blob"
    DOCUMENT_ROWS = "document_rows"
    DOCUMENT_ROW = "document_row"
    EMBEDDING_ROWS = "embedding_rows"
    REMOTE_INDEX = "remote_index"
    LOCAL_INDEX = "local_index"


# ------------------------------------------------------------------
# Vector data
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VectorEntry:
    """A vector with its id and metadata.

    Attributes:
        id: Vector id (``"{document_id}-{chunk_index}"``).
        vector: Embedding vector.
        metadata: Arbitrary key-value metadata stored alongside the vector.
    """

    id: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class VectorMatch:
    """A single chunk-level hit from an index query.

    Attributes:
        id: Vector id of the matched chunk.
        score: Similarity score (higher is more similar).
        metadata: Metadata returned by the backend, if any.
    """

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProcessedDocument:
    """Output of the external summarize/chunk step, input to ingestion."""

    title: str
    summary: str
    chunks: list[str]


# ------------------------------------------------------------------
# Results
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ChunkHit:
    """One matching chunk of a document."""

    chunk_index: int
    score: float


@dataclass(slots=True)
class DocumentGroup:
    """Chunk hits of one document, before metadata resolution."""

    document_id: str
    score: float
    chunks: list[ChunkHit] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DocumentHit:
    """A ranked document returned by :meth:`QueryEngine.search`.

    Attributes:
        document: The resolved document row.
        score: Best chunk score of the document.
        chunks: Matching chunks, best first.
    """

    document: Document
    score: float
    chunks: list[ChunkHit]


@dataclass(frozen=True, slots=True)
class IngestReport:
    """Outcome of :meth:`IndexCoordinator.insert_document`.

    Attributes:
        document: The stored (or pre-existing) document.
        completed_steps: Steps that ran, in order. Empty when the URL was
            already ingested.
        created: False when an existing document was returned unchanged.
    """

    document: Document
    completed_steps: list[WriteStep]
    created: bool = True


@dataclass(frozen=True, slots=True)
class MigrationProgress:
    """Progress of the local index rebuild.

    Attributes:
        total: Number of canonical vector ids.
        migrated: Number of ids present in the local index.
    """

    total: int
    migrated: int

    @property
    def done(self) -> bool:
        """Whether the local index has caught up with the durable table."""
        return self.migrated >= self.total


@dataclass(frozen=True, slots=True)
class CorpusStats:
    """Document count plus the most recently ingested documents."""

    total: int
    recent: list[Document]
