"""Vector id helpers.

A chunk's vector id is ``"{document_id}-{chunk_index}"``.  Document ids are
uuid strings and therefore contain hyphens themselves, so parsing always
splits on the *last* hyphen.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from seen.models.documents import Document


def vector_id(document_id: str, chunk_index: int) -> str:
    """Return the vector id for chunk *chunk_index* of *document_id*."""
    return f"{document_id}-{chunk_index}"


def parse_vector_id(value: str) -> tuple[str, int]:
    """Split *value* into ``(document_id, chunk_index)``.

    Raises ``ValueError`` when there is no hyphen, the document part is
    empty, or the final token is not a non-negative integer.
    """
    document_id, sep, tail = value.rpartition("-")
    if not sep or not document_id or not tail.isdigit():
        msg = f"Malformed vector id: {value!r}"
        raise ValueError(msg)
    return document_id, int(tail)


def document_id_of(value: str) -> str:
    """Return the document id part of a vector id."""
    return parse_vector_id(value)[0]


def chunk_vector_ids(document_id: str, chunk_count: int) -> list[str]:
    """Return the dense, zero-based vector ids of a document."""
    return [vector_id(document_id, i) for i in range(chunk_count)]


def iter_canonical_ids(documents: Iterable[Document]) -> Iterator[str]:
    """Yield every chunk vector id of *documents*, in listing order."""
    for doc in documents:
        yield from chunk_vector_ids(doc.id, doc.chunk_count)
