"""Seen — async facade wiring storage, embedding, and both index backends."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import create_async_engine

from seen.config import SeenConfig
from seen.search._coordinator import IndexCoordinator
from seen.search._engine import QueryEngine
from seen.search.providers.workers_ai import WorkersAIEmbedding
from seen.search.stores.snapshot import LocalIndexSnapshotStore
from seen.search.stores.vectorize import VectorizeIndex
from seen.search.types import Backend, CorpusStats
from seen.storage.blob import LocalBlobStore
from seen.storage.repository import DocumentRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from seen.models.documents import Document
    from seen.search.protocols import EmbeddingProvider, VectorIndex
    from seen.search.types import DocumentHit, IngestReport, MigrationProgress, ProcessedDocument
    from seen.storage.blob import BlobStore

logger = logging.getLogger(__name__)


class Seen:
    """Programmatic entry point for ingestion, search, deletion and rebuilds.

    Every component can be injected; anything not passed is built from
    *config*::

        async with Seen(SeenConfig.from_env()) as seen:
            await seen.insert_document(url, content, "text/html", processed)
            hits = await seen.search("vector databases")
            progress = await seen.rebuild_local_index()
    """

    def __init__(
        self,
        config: SeenConfig | None = None,
        *,
        engine: AsyncEngine | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        remote_index: VectorIndex | None = None,
        blob_store: BlobStore | None = None,
    ) -> None:
        self._config = config or SeenConfig.from_env()
        cfg = self._config

        self._owns_engine = engine is None
        self._engine = engine or create_async_engine(cfg.database_url, echo=False)
        self._embedding_provider = embedding_provider or WorkersAIEmbedding(
            model=cfg.embedding_model,
            dimensions=cfg.dimensions,
            account_id=cfg.account_id or None,
            api_token=cfg.api_token or None,
            api_base=cfg.api_base,
            timeout=cfg.timeout,
        )
        self._remote = remote_index or VectorizeIndex(
            index_name=cfg.index_name,
            account_id=cfg.account_id or None,
            api_token=cfg.api_token or None,
            api_base=cfg.api_base,
            timeout=cfg.timeout,
        )
        self._blob_store = blob_store or LocalBlobStore(cfg.blob_dir)

        self._repository = DocumentRepository(self._engine)
        self._snapshots = LocalIndexSnapshotStore(
            self._blob_store, dimension=cfg.dimensions, key=cfg.snapshot_key
        )
        self._coordinator = IndexCoordinator(
            self._embedding_provider,
            self._repository,
            self._blob_store,
            remote=self._remote,
            snapshots=self._snapshots,
            write_backends=cfg.write_backends,
        )
        self._query_engine = QueryEngine(
            self._embedding_provider,
            self._repository,
            remote=self._remote,
            snapshots=self._snapshots,
            top_k=cfg.query_top_k,
            max_documents=cfg.max_documents,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Create the durable tables and open the remote index client."""
        await self._repository.ensure_schema()
        connect = getattr(self._remote, "connect", None)
        if connect is not None:
            await connect()

    async def close(self) -> None:
        """Release HTTP clients and, if owned, the database engine."""
        try:
            await self._close_component(self._remote)
        finally:
            try:
                await self._close_component(self._embedding_provider)
            finally:
                if self._owns_engine:
                    await self._engine.dispose()

    @staticmethod
    async def _close_component(component: object) -> None:
        close = getattr(component, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> Seen:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def insert_document(
        self,
        url: str,
        content: bytes,
        content_type: str,
        processed: ProcessedDocument,
    ) -> IngestReport:
        """Ingest a fetched and processed document."""
        return await self._coordinator.insert_document(url, content, content_type, processed)

    async def delete_document(self, document_id: str) -> Document:
        return await self._coordinator.delete_document(document_id)

    async def delete_by_url(self, url: str) -> Document:
        return await self._coordinator.delete_by_url(url)

    async def search(
        self,
        query: str,
        *,
        top_k: int | None = None,
        backend: Backend = Backend.REMOTE,
    ) -> list[DocumentHit]:
        """Return documents ranked by their best-matching chunk."""
        return await self._query_engine.search(query, top_k=top_k, backend=backend)

    async def rebuild_local_index(self) -> MigrationProgress:
        """Run one bounded rebuild step with the configured batch limits."""
        return await self._coordinator.rebuild_local_index(
            batch_size=self._config.rebuild_batch_size,
            max_batches=self._config.rebuild_max_batches,
        )

    async def get_document(self, document_id: str) -> Document:
        return await self._repository.get(document_id)

    async def stats(self, limit: int = 10) -> CorpusStats:
        """Return the document count and the *limit* most recent documents."""
        total = await self._repository.count()
        recent = await self._repository.recent(limit)
        return CorpusStats(total=total, recent=recent)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> SeenConfig:
        return self._config

    @property
    def repository(self) -> DocumentRepository:
        return self._repository

    @property
    def coordinator(self) -> IndexCoordinator:
        return self._coordinator

    @property
    def query_engine(self) -> QueryEngine:
        return self._query_engine

    @property
    def snapshots(self) -> LocalIndexSnapshotStore:
        return self._snapshots
