"""DocumentRepository — durable document and embedding rows over SQLAlchemy async."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from seen.exceptions import NotFoundError, RequestError
from seen.models.documents import Document
from seen.models.embeddings import Embedding, decode_vector, encode_vector
from seen.storage.dialect import get_dialect, upsert_rows

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from seen.search.types import VectorEntry

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Re-raise database failures as :class:`RequestError`."""
    try:
        yield
    except SQLAlchemyError as e:
        msg = f"Failed to {action}: {e}"
        raise RequestError(msg) from e


class DocumentRepository:
    """Durable store for documents and their chunk embeddings.

    Every method opens its own short-lived session, so calls can run
    concurrently (e.g. metadata lookups fanned out by the query engine).
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._dialect = get_dialect(engine)
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def ensure_schema(self) -> None:
        """Create the document and embedding tables if they do not exist."""
        with _storage_errors("create tables"):
            async with self._engine.begin() as conn:
                await conn.run_sync(
                    lambda c: Document.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )
                await conn.run_sync(
                    lambda c: Embedding.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def get(self, document_id: str) -> Document:
        """Return the document with *document_id*; raise NotFoundError if absent."""
        with _storage_errors(f"load document {document_id}"):
            async with self._session_factory() as session:
                document = await session.get(Document, document_id)
        if document is None:
            msg = f"Document not found, id: {document_id}"
            raise NotFoundError(msg)
        return document

    async def find_by_url(self, url: str) -> Document | None:
        with _storage_errors(f"look up {url}"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Document).where(Document.url == url).limit(1)  # type: ignore[arg-type]
                )
                return result.scalar_one_or_none()

    async def list_documents(self) -> list[Document]:
        """Return every document, oldest first (ties broken by id).

        New documents sort after existing ones, so the canonical vector id
        list only grows at its end between rebuild invocations.
        """
        with _storage_errors("list documents"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Document).order_by(
                        Document.created_at.asc(),  # type: ignore[union-attr]
                        Document.id.asc(),  # type: ignore[union-attr]
                    )
                )
                return list(result.scalars().all())

    async def recent(self, limit: int = 10) -> list[Document]:
        """Return the *limit* most recently created documents."""
        with _storage_errors("list recent documents"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Document)
                    .order_by(Document.created_at.desc())  # type: ignore[union-attr]
                    .limit(limit)
                )
                return list(result.scalars().all())

    async def count(self) -> int:
        with _storage_errors("count documents"):
            async with self._session_factory() as session:
                result = await session.execute(select(func.count()).select_from(Document))
                return int(result.scalar_one())

    async def save_document(
        self,
        document: Document,
        vectors: Sequence[tuple[str, Sequence[float]]],
    ) -> None:
        """Insert *document* and its ``(vector_id, vector)`` rows in one commit."""
        with _storage_errors(f"save document {document.id}"):
            async with self._session_factory() as session:
                session.add(document)
                session.add_all(
                    Embedding(
                        vector_id=vid,
                        vector=encode_vector(vector),
                        document_id=document.id,
                    )
                    for vid, vector in vectors
                )
                await session.commit()
        logger.debug("Saved document %s with %d embeddings", document.id, len(vectors))

    async def delete_document(self, document_id: str) -> int:
        """Delete the document row. Returns the number of rows removed."""
        with _storage_errors(f"delete document {document_id}"):
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(Document).where(Document.id == document_id)  # type: ignore[arg-type]
                )
                await session.commit()
                return result.rowcount  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def upsert_embeddings(
        self,
        entries: Sequence[VectorEntry],
        document_ids: Sequence[str],
    ) -> int:
        """Insert or replace embedding rows for *entries*.

        ``document_ids[i]`` is the owning document of ``entries[i]``.
        """
        rows = [
            {"vector_id": e.id, "vector": encode_vector(e.vector), "document_id": doc_id}
            for e, doc_id in zip(entries, document_ids, strict=True)
        ]
        with _storage_errors("upsert embeddings"):
            async with self._session_factory() as session:
                count = await upsert_rows(session, self._dialect, Embedding, rows, ["vector_id"])
                await session.commit()
        return count

    async def get_embeddings(self, vector_ids: Sequence[str]) -> dict[str, list[float]]:
        """Return ``{vector_id: vector}`` for the ids that have a row."""
        if not vector_ids:
            return {}
        with _storage_errors("load embeddings"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Embedding).where(Embedding.vector_id.in_(vector_ids))  # type: ignore[attr-defined]
                )
                rows = result.scalars().all()
        return {row.vector_id: decode_vector(row.vector) for row in rows}

    async def delete_embeddings(self, vector_ids: Sequence[str]) -> int:
        if not vector_ids:
            return 0
        with _storage_errors("delete embeddings"):
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(Embedding).where(Embedding.vector_id.in_(vector_ids))  # type: ignore[attr-defined]
                )
                await session.commit()
                return result.rowcount  # type: ignore[return-value]

    async def count_embeddings(self) -> int:
        with _storage_errors("count embeddings"):
            async with self._session_factory() as session:
                result = await session.execute(select(func.count()).select_from(Embedding))
                return int(result.scalar_one())
