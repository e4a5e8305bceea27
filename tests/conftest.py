"""Shared fixtures for seen tests."""

from __future__ import annotations

import hashlib
import math
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from seen.exceptions import RequestError, TransientServiceError
from seen.search._coordinator import IndexCoordinator
from seen.search._engine import QueryEngine
from seen.search.stores.snapshot import LocalIndexSnapshotStore
from seen.search.types import Backend, ProcessedDocument, VectorEntry, VectorMatch
from seen.storage.blob import LocalBlobStore
from seen.storage.repository import DocumentRepository

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

DIM = 32


def hash_vector(text: str) -> list[float]:
    """Deterministic unit vector from text hash."""
    h = hashlib.sha256(text.encode()).digest()
    raw = [float(b) - 127.5 for b in h]
    norm = math.sqrt(sum(x * x for x in raw))
    return [x / norm for x in raw]


def make_processed(title: str, n_chunks: int) -> ProcessedDocument:
    return ProcessedDocument(
        title=title,
        summary=f"summary of {title}",
        chunks=[f"{title} chunk {i}" for i in range(n_chunks)],
    )


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------


class FakeProvider:
    """Deterministic async embedding provider for testing."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail = False

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            msg = "embedding service unavailable"
            raise TransientServiceError(msg)
        return hash_vector(text)

    @property
    def dimensions(self) -> int:
        return DIM

    @property
    def model_name(self) -> str:
        return "fake"


class FakeRemoteIndex:
    """In-memory stand-in for the managed remote index (exact cosine search)."""

    def __init__(self) -> None:
        self.vectors: dict[str, list[float]] = {}
        self.calls: list[str] = []
        self.fail_on: set[str] = set()

    def _maybe_fail(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail_on:
            msg = f"remote {op} failed"
            raise RequestError(msg)

    async def insert(self, entries: list[VectorEntry]) -> None:
        self._maybe_fail("insert")
        for entry in entries:
            self.vectors[entry.id] = list(entry.vector)

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int = 20,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        self._maybe_fail("query")
        scored = [
            VectorMatch(id=vid, score=sum(a * b for a, b in zip(vector, stored, strict=True)))
            for vid, stored in self.vectors.items()
        ]
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    async def delete_by_ids(self, ids: list[str]) -> None:
        self._maybe_fail("delete_by_ids")
        for vid in ids:
            self.vectors.pop(vid, None)

    async def get_by_ids(self, ids: list[str]) -> list[VectorEntry]:
        self._maybe_fail("get_by_ids")
        return [VectorEntry(id=vid, vector=self.vectors[vid]) for vid in ids if vid in self.vectors]


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Async SQLite engine on a per-test database file."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'seen.db'}", echo=False)
    yield eng
    await eng.dispose()


@pytest.fixture
async def repository(async_engine: AsyncEngine) -> DocumentRepository:
    repo = DocumentRepository(async_engine)
    await repo.ensure_schema()
    return repo


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def snapshots(blob_store: LocalBlobStore) -> LocalIndexSnapshotStore:
    return LocalIndexSnapshotStore(blob_store, dimension=DIM)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def remote() -> FakeRemoteIndex:
    return FakeRemoteIndex()


@pytest.fixture
def coordinator(
    provider: FakeProvider,
    repository: DocumentRepository,
    blob_store: LocalBlobStore,
    remote: FakeRemoteIndex,
    snapshots: LocalIndexSnapshotStore,
) -> IndexCoordinator:
    """Coordinator writing to both index backends."""
    return IndexCoordinator(
        provider,
        repository,
        blob_store,
        remote=remote,
        snapshots=snapshots,
        write_backends=frozenset({Backend.REMOTE, Backend.LOCAL}),
    )


@pytest.fixture
def remote_only_coordinator(
    provider: FakeProvider,
    repository: DocumentRepository,
    blob_store: LocalBlobStore,
    remote: FakeRemoteIndex,
    snapshots: LocalIndexSnapshotStore,
) -> IndexCoordinator:
    """Coordinator that leaves the local index to the rebuild."""
    return IndexCoordinator(
        provider,
        repository,
        blob_store,
        remote=remote,
        snapshots=snapshots,
        write_backends=frozenset({Backend.REMOTE}),
    )


@pytest.fixture
def query_engine(
    provider: FakeProvider,
    repository: DocumentRepository,
    remote: FakeRemoteIndex,
    snapshots: LocalIndexSnapshotStore,
) -> QueryEngine:
    return QueryEngine(provider, repository, remote=remote, snapshots=snapshots)
