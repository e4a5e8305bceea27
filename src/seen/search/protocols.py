"""Search layer protocols — async-first interfaces for embedding and vector indexes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from seen.search.types import VectorEntry, VectorMatch


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Async protocol for text-to-vector embedding.

    One text per call; implementations retry a failed call exactly once and
    then raise :class:`~seen.exceptions.TransientServiceError`.
    """

    async def embed(self, text: str) -> list[float]:
        """Embed a single text string into a vector."""
        ...

    @property
    def dimensions(self) -> int:
        """Number of dimensions in the embedding vectors."""
        ...

    @property
    def model_name(self) -> str:
        """Name of the embedding model."""
        ...


@runtime_checkable
class VectorIndex(Protocol):
    """Capability set shared by the remote and local index backends.

    Callers pick a backend with :class:`~seen.search.types.Backend`; both
    variants satisfy this protocol.
    """

    async def insert(self, entries: list[VectorEntry]) -> None:
        """Insert or replace vectors."""
        ...

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int = 20,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Return up to *top_k* nearest chunks, best first."""
        ...

    async def delete_by_ids(self, ids: list[str]) -> None:
        """Delete vectors by id."""
        ...

    async def get_by_ids(self, ids: list[str]) -> list[VectorEntry]:
        """Fetch stored vectors by id.  Missing ids are omitted."""
        ...
