"""Embedding model — the durable record of every computed chunk vector."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from sqlalchemy import LargeBinary
from sqlmodel import Field, SQLModel

# Vectors are stored as little-endian float32 regardless of host byte order.
_VECTOR_DTYPE = np.dtype("<f4")


def encode_vector(vector: Sequence[float]) -> bytes:
    """Pack *vector* into the binary column format."""
    return np.asarray(vector, dtype=_VECTOR_DTYPE).tobytes()


def decode_vector(data: bytes) -> list[float]:
    """Unpack a binary column value into a list of floats."""
    return np.frombuffer(data, dtype=_VECTOR_DTYPE).tolist()


class EmbeddingBase(SQLModel):
    """Base fields for an embedding row. Subclass with ``table=True`` for a concrete table."""

    vector_id: str = Field(primary_key=True)
    vector: bytes = Field(sa_type=LargeBinary)  # type: ignore[invalid-argument-type]
    document_id: str = Field(foreign_key="seen_documents.id", index=True)


class Embedding(EmbeddingBase, table=True):
    """Default embedding table — ``seen_embeddings``."""

    __tablename__ = "seen_embeddings"
