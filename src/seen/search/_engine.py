"""QueryEngine — similarity search that ranks documents from chunk hits."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from seen.exceptions import NotFoundError, RequestError
from seen.ids import parse_vector_id
from seen.search.types import Backend, ChunkHit, DocumentGroup, DocumentHit

if TYPE_CHECKING:
    from seen.models.documents import Document
    from seen.search.protocols import EmbeddingProvider, VectorIndex
    from seen.search.stores.snapshot import LocalIndexSnapshotStore
    from seen.search.types import VectorMatch
    from seen.storage.repository import DocumentRepository

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 20
DEFAULT_MAX_DOCUMENTS = 5


def group_hits(
    matches: list[VectorMatch],
    *,
    max_documents: int = DEFAULT_MAX_DOCUMENTS,
) -> list[DocumentGroup]:
    """Collapse chunk hits into documents ranked by their best chunk.

    Hits are re-sorted by score first (stable, so the backend's order
    decides ties).  Documents are ordered by max score; equal scores keep
    first-seen order.  Ids that do not parse are logged and skipped.
    """
    ranked = sorted(matches, key=lambda m: m.score, reverse=True)

    groups: dict[str, DocumentGroup] = {}
    for match in ranked:
        try:
            document_id, chunk_index = parse_vector_id(match.id)
        except ValueError:
            logger.warning("Skipping hit with malformed vector id %r", match.id)
            continue
        group = groups.get(document_id)
        if group is None:
            group = groups[document_id] = DocumentGroup(document_id=document_id, score=match.score)
        group.chunks.append(ChunkHit(chunk_index=chunk_index, score=match.score))
        group.score = max(group.score, match.score)

    top = sorted(groups.values(), key=lambda g: g.score, reverse=True)[:max_documents]
    for group in top:
        group.chunks.sort(key=lambda c: c.score, reverse=True)
    return top


class QueryEngine:
    """Embeds a query, searches one index backend, and returns ranked documents.

    The local backend is read from its snapshot on every call; the snapshot
    load runs concurrently with the query embedding.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        repository: DocumentRepository,
        *,
        remote: VectorIndex,
        snapshots: LocalIndexSnapshotStore,
        top_k: int = DEFAULT_TOP_K,
        max_documents: int = DEFAULT_MAX_DOCUMENTS,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._repository = repository
        self._remote = remote
        self._snapshots = snapshots
        self._top_k = top_k
        self._max_documents = max_documents

    async def search(
        self,
        query: str,
        *,
        top_k: int | None = None,
        backend: Backend = Backend.REMOTE,
    ) -> list[DocumentHit]:
        """Return up to ``max_documents`` documents matching *query*, best first.

        Documents whose metadata cannot be loaded are dropped rather than
        failing the whole query.
        """
        k = top_k if top_k is not None else self._top_k
        logger.info("Searching %s index for %r (top_k=%d)", backend.value, query, k)

        matches = await self._query_backend(query, k, backend)
        if not matches:
            return []

        groups = group_hits(matches, max_documents=self._max_documents)
        documents = await asyncio.gather(*(self._resolve(g.document_id) for g in groups))

        return [
            DocumentHit(document=doc, score=group.score, chunks=group.chunks)
            for group, doc in zip(groups, documents, strict=True)
            if doc is not None
        ]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _query_backend(self, query: str, k: int, backend: Backend) -> list[VectorMatch]:
        if backend is Backend.LOCAL:
            vector, index = await asyncio.gather(
                self._embedding_provider.embed(query),
                self._snapshots.load(),
            )
            return index.search(vector, k, index.metric)

        vector = await self._embedding_provider.embed(query)
        return await self._remote.query(vector, top_k=k, include_metadata=True)

    async def _resolve(self, document_id: str) -> Document | None:
        try:
            return await self._repository.get(document_id)
        except NotFoundError:
            logger.warning("Document not found, id: %s", document_id)
        except RequestError as e:
            logger.warning("Failed to load document %s: %s", document_id, e)
        return None
