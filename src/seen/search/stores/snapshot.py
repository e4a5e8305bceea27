"""Snapshot persistence for the local index, and its VectorIndex adapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from seen.exceptions import SerializationError
from seen.search.stores.local import LocalVectorIndex
from seen.search.types import ScoreMetric, VectorEntry, VectorMatch

if TYPE_CHECKING:
    from seen.storage.blob import BlobStore

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "vector_lite.bin"


class LocalIndexSnapshotStore:
    """Loads and saves the whole :class:`LocalVectorIndex` under one blob key.

    There is no incremental format: every save overwrites the full blob.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        *,
        dimension: int,
        key: str = DEFAULT_SNAPSHOT_KEY,
        metric: ScoreMetric = ScoreMetric.COSINE,
    ) -> None:
        self._blob_store = blob_store
        self._dimension = dimension
        self._key = key
        self._metric = metric

    @property
    def key(self) -> str:
        return self._key

    async def load(self) -> LocalVectorIndex:
        """Return the stored index, or a new empty one if no snapshot exists."""
        blob = await self._blob_store.get(self._key)
        if blob is None:
            logger.info("No local index snapshot at %s; starting empty", self._key)
            return LocalVectorIndex(dimension=self._dimension, metric=self._metric)

        index = LocalVectorIndex.from_bytes(blob)
        if index.dimension != self._dimension:
            msg = (
                f"Snapshot {self._key} has dimension {index.dimension}, "
                f"expected {self._dimension}"
            )
            raise SerializationError(msg)
        return index

    async def save(self, index: LocalVectorIndex) -> None:
        await self._blob_store.put(self._key, index.to_bytes())
        logger.debug("Saved local index snapshot %s (%d entries)", self._key, len(index))


class SnapshotVectorIndex:
    """``VectorIndex`` variant over the local snapshot.

    Every call reloads the snapshot from the blob store; mutating calls
    write it back.  Nothing is cached between calls.

    Mutations are load-modify-save with no lock.  Two concurrent writers
    can each save a snapshot missing the other's entries; the lost ids
    are restored by the next :meth:`IndexCoordinator.rebuild_local_index`.
    """

    def __init__(self, snapshots: LocalIndexSnapshotStore) -> None:
        self._snapshots = snapshots

    @property
    def snapshots(self) -> LocalIndexSnapshotStore:
        return self._snapshots

    async def insert(self, entries: list[VectorEntry]) -> None:
        if not entries:
            return
        index = await self._snapshots.load()
        for entry in entries:
            index.insert(entry.vector, entry.id)
        await self._snapshots.save(index)

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int = 20,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        index = await self._snapshots.load()
        return index.search(vector, top_k, index.metric)

    async def delete_by_ids(self, ids: list[str]) -> None:
        if not ids:
            return
        index = await self._snapshots.load()
        removed = sum(index.delete_by_id(vector_id) for vector_id in ids)
        if removed:
            await self._snapshots.save(index)

    async def get_by_ids(self, ids: list[str]) -> list[VectorEntry]:
        index = await self._snapshots.load()
        entries: list[VectorEntry] = []
        for vector_id in ids:
            vector = index.get(vector_id)
            if vector is not None:
                entries.append(VectorEntry(id=vector_id, vector=vector))
        return entries
