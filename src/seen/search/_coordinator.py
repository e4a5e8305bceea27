"""IndexCoordinator — keeps the durable table and both index backends in step."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from seen.exceptions import NotFoundError, PartialWriteError
from seen.ids import chunk_vector_ids, document_id_of, iter_canonical_ids
from seen.models.documents import Document, bucket_path_for
from seen.search.stores.snapshot import SnapshotVectorIndex
from seen.search.types import Backend, IngestReport, MigrationProgress, VectorEntry, WriteStep

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from seen.search.protocols import EmbeddingProvider, VectorIndex
    from seen.search.stores.snapshot import LocalIndexSnapshotStore
    from seen.search.types import ProcessedDocument
    from seen.storage.blob import BlobStore
    from seen.storage.repository import DocumentRepository

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20
DEFAULT_MAX_BATCHES = 15

_BACKEND_STEPS: dict[Backend, WriteStep] = {
    Backend.REMOTE: WriteStep.REMOTE_INDEX,
    Backend.LOCAL: WriteStep.LOCAL_INDEX,
}

Step = tuple[WriteStep, "Callable[[], Awaitable[object]]"]


class IndexCoordinator:
    """Dual-write ingestion and deletion, plus the bounded local index rebuild.

    There are no transactions across the blob store, the durable tables and
    the two indexes.  Writes run as an ordered list of steps; a failure after
    the first step raises :class:`~seen.exceptions.PartialWriteError` naming
    the steps that did complete.  Nothing is rolled back.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        repository: DocumentRepository,
        blob_store: BlobStore,
        *,
        remote: VectorIndex,
        snapshots: LocalIndexSnapshotStore,
        write_backends: frozenset[Backend] = frozenset({Backend.REMOTE, Backend.LOCAL}),
    ) -> None:
        if not write_backends:
            msg = "At least one write backend is required"
            raise ValueError(msg)
        self._embedding_provider = embedding_provider
        self._repository = repository
        self._blob_store = blob_store
        self._remote = remote
        self._snapshots = snapshots
        self._indexes: dict[Backend, VectorIndex] = {
            Backend.REMOTE: remote,
            Backend.LOCAL: SnapshotVectorIndex(snapshots),
        }
        self._write_backends = write_backends

    @property
    def write_backends(self) -> frozenset[Backend]:
        return self._write_backends

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def insert_document(
        self,
        url: str,
        content: bytes,
        content_type: str,
        processed: ProcessedDocument,
    ) -> IngestReport:
        """Store a new document, its embeddings, and its index entries.

        A URL that was already ingested returns the existing document
        without writing anything.  All chunks are embedded before the first
        write, so an embedding failure leaves every store untouched.
        """
        existing = await self._repository.find_by_url(url)
        if existing is not None:
            logger.info("Already ingested %s as %s", url, existing.id)
            return IngestReport(document=existing, completed_steps=[], created=False)

        document = Document(
            url=url,
            content_type=content_type,
            size=len(content),
            title=processed.title,
            summary=processed.summary,
            chunk_count=len(processed.chunks),
        )
        document.bucket_path = bucket_path_for(document.id, content_type)

        logger.info("Embedding %d chunks of %s", document.chunk_count, url)
        ids = chunk_vector_ids(document.id, document.chunk_count)
        vectors = [await self._embedding_provider.embed(chunk) for chunk in processed.chunks]
        rows = list(zip(ids, vectors, strict=True))
        entries = [
            VectorEntry(
                id=vid,
                vector=vector,
                metadata={"document_id": document.id, "chunk_index": i},
            )
            for i, (vid, vector) in enumerate(rows)
        ]

        steps: list[Step] = [
            (WriteStep.CONTENT_BLOB, lambda: self._blob_store.put(document.bucket_path, content)),
            (WriteStep.DOCUMENT_ROWS, lambda: self._repository.save_document(document, rows)),
        ]
        steps += [
            (step, lambda backend=backend: self._indexes[backend].insert(entries))
            for backend, step in _BACKEND_STEPS.items()
            if backend in self._write_backends
        ]

        completed = await self._run_steps(f"ingest of {url}", steps)
        logger.info("Ingested %s as %s (%d chunks)", url, document.id, document.chunk_count)
        return IngestReport(document=document, completed_steps=completed)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete_document(self, document_id: str) -> Document:
        """Remove a document from every store.

        Raises :class:`~seen.exceptions.NotFoundError` if the document does
        not exist.
        """
        document = await self._repository.get(document_id)
        ids = chunk_vector_ids(document.id, document.chunk_count)

        # A rebuild fills the local snapshot even when LOCAL is not written.
        steps: list[Step] = [
            (step, lambda backend=backend: self._indexes[backend].delete_by_ids(ids))
            for backend, step in _BACKEND_STEPS.items()
            if backend in self._write_backends or backend is Backend.LOCAL
        ]
        steps += [
            (WriteStep.EMBEDDING_ROWS, lambda: self._repository.delete_embeddings(ids)),
            (WriteStep.DOCUMENT_ROW, lambda: self._repository.delete_document(document.id)),
            (WriteStep.CONTENT_BLOB, lambda: self._blob_store.delete(document.bucket_path)),
        ]

        await self._run_steps(f"delete of {document.id}", steps)
        logger.info("Deleted %s (%s) and %d chunks", document.id, document.url, len(ids))
        return document

    async def delete_by_url(self, url: str) -> Document:
        """Remove the document ingested from *url*."""
        document = await self._repository.find_by_url(url)
        if document is None:
            msg = f"Document not found, url: {url}"
            raise NotFoundError(msg)
        return await self.delete_document(document.id)

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    async def rebuild_local_index(
        self,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_batches: int = DEFAULT_MAX_BATCHES,
    ) -> MigrationProgress:
        """Migrate up to ``batch_size * max_batches`` ids into the local index.

        The local index's live entry count is the watermark: ids past it
        are scanned first.  Only ids not already in the index are migrated,
        and when the tail holds none the whole canonical list is scanned,
        so ids skipped by dual-written entries are still picked up.
        ``migrated`` counts canonical ids present in the index.  Call
        repeatedly until ``progress.done``; a converged call writes nothing.
        """
        if batch_size <= 0 or max_batches <= 0:
            msg = "batch_size and max_batches must be positive"
            raise ValueError(msg)

        index = await self._snapshots.load()
        await self._repository.ensure_schema()

        documents = await self._repository.list_documents()
        canonical = list(iter_canonical_ids(documents))
        total = len(canonical)
        watermark = len(index)
        remaining = [vid for vid in canonical[watermark:] if vid not in index] or [
            vid for vid in canonical if vid not in index
        ]

        if not remaining:
            migrated = sum(vid in index for vid in canonical)
            logger.info("Local index up to date (%d/%d)", migrated, total)
            return MigrationProgress(total=total, migrated=migrated)

        migrated_now = 0
        for start in range(0, min(len(remaining), batch_size * max_batches), batch_size):
            batch = remaining[start : start + batch_size]
            entries = await self._fetch_vectors(batch)
            await self._repository.upsert_embeddings(
                entries, [document_id_of(e.id) for e in entries]
            )
            for entry in entries:
                index.insert(entry.vector, entry.id)
            migrated_now += len(entries)
            logger.debug("Migrated batch of %d ids (%s..%s)", len(batch), batch[0], batch[-1])

        await self._snapshots.save(index)
        progress = MigrationProgress(
            total=total, migrated=sum(vid in index for vid in canonical)
        )
        logger.info(
            "Migrated %d ids into the local index (%d/%d)",
            migrated_now,
            progress.migrated,
            progress.total,
        )
        return progress

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _fetch_vectors(self, batch: list[str]) -> list[VectorEntry]:
        """Return vectors for *batch*, in order.

        Vectors come from the remote index; ids it does not know fall back
        to the durable table.
        """
        wanted = set(batch)
        fetched = {e.id: e for e in await self._remote.get_by_ids(batch) if e.id in wanted}

        missing = [vid for vid in batch if vid not in fetched]
        if missing:
            logger.warning(
                "Remote index is missing %d of %d vectors; using durable rows",
                len(missing),
                len(batch),
            )
            durable = await self._repository.get_embeddings(missing)
            still_missing = [vid for vid in missing if vid not in durable]
            if still_missing:
                msg = f"No stored vector for ids: {', '.join(still_missing)}"
                raise NotFoundError(msg)
            for vid in missing:
                fetched[vid] = VectorEntry(id=vid, vector=durable[vid])

        return [fetched[vid] for vid in batch]

    async def _run_steps(self, action: str, steps: list[Step]) -> list[WriteStep]:
        """Run *steps* in order, reporting which ones completed."""
        completed: list[WriteStep] = []
        for step, run in steps:
            try:
                await run()
            except Exception as e:
                if not completed:
                    raise
                done = ", ".join(s.value for s in completed)
                logger.error("%s failed at %s after [%s]: %s", action, step.value, done, e)
                msg = f"{action} failed at {step.value} after completing [{done}]: {e}"
                raise PartialWriteError(step, completed, msg) from e
            completed.append(step)
            logger.debug("%s: %s done", action, step.value)
        return completed
