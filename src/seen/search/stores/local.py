"""LocalVectorIndex — in-process usearch HNSW index serialized to a single blob."""

from __future__ import annotations

import json
import struct
import tempfile
from pathlib import Path
from typing import Any

import numpy as np
from usearch.index import Index

from seen.exceptions import SerializationError
from seen.search.types import ScoreMetric, VectorMatch

_MAGIC = b"SEENIDX1"
_HEADER = struct.Struct(">I")
_INDEX_FILE = "index.usearch"

# ScoreMetric -> usearch metric name
_USEARCH_METRICS: dict[ScoreMetric, str] = {
    ScoreMetric.COSINE: "cos",
    ScoreMetric.INNER_PRODUCT: "ip",
    ScoreMetric.L2: "l2sq",
}


def _score(distance: float, metric: ScoreMetric) -> float:
    """Turn a usearch distance into a higher-is-better score."""
    if metric is ScoreMetric.L2:
        return -distance
    return 1.0 - distance


class LocalVectorIndex:
    """In-memory ANN index over chunk vector ids, backed by usearch HNSW.

    Each inserted vector gets the next sequential usearch key, so replaying
    the same inserts in the same order reproduces the same structure.
    Re-inserting an id replaces the old vector: ``len()`` counts distinct
    live ids, which the rebuild uses as its resume watermark.

    The metric is fixed when the index is created.
    """

    def __init__(self, *, dimension: int, metric: ScoreMetric = ScoreMetric.COSINE) -> None:
        self._dimension = dimension
        self._metric = ScoreMetric(metric)
        self._index = Index(ndim=dimension, metric=_USEARCH_METRICS[self._metric], dtype="f32")
        self._next_key: int = 0
        self._key_to_id: dict[int, str] = {}
        self._id_to_key: dict[str, int] = {}

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def metric(self) -> ScoreMetric:
        return self._metric

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert(self, vector: list[float], vector_id: str) -> None:
        """Insert *vector* under *vector_id*, replacing any previous vector."""
        array = self._as_array(vector)
        if vector_id in self._id_to_key:
            self.delete_by_id(vector_id)

        key = self._next_key
        self._next_key += 1
        self._index.add(key, array)
        self._key_to_id[key] = vector_id
        self._id_to_key[vector_id] = key

    def delete_by_id(self, vector_id: str) -> bool:
        """Remove *vector_id*. Returns True if it was present."""
        key = self._id_to_key.pop(vector_id, None)
        if key is None:
            return False
        del self._key_to_id[key]
        self._index.remove(key)
        return True

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def search(
        self,
        vector: list[float],
        k: int,
        metric: ScoreMetric = ScoreMetric.COSINE,
    ) -> list[VectorMatch]:
        """Return up to *k* nearest ids, best first."""
        if ScoreMetric(metric) is not self._metric:
            msg = f"Index was built for {self._metric.value!r}, cannot search with {metric!r}"
            raise ValueError(msg)
        if len(self) == 0 or k <= 0:
            return []

        query = self._as_array(vector)
        matches = self._index.search(query, min(k, len(self)))

        results: list[VectorMatch] = []
        for key, distance in zip(matches.keys.tolist(), matches.distances.tolist(), strict=True):
            vector_id = self._key_to_id.get(int(key))
            if vector_id is None:
                continue
            results.append(VectorMatch(id=vector_id, score=_score(distance, self._metric)))

        results.sort(key=lambda m: m.score, reverse=True)
        return results

    def get(self, vector_id: str) -> list[float] | None:
        """Return the stored vector for *vector_id*, or None."""
        key = self._id_to_key.get(vector_id)
        if key is None:
            return None
        stored = self._index.get(key)
        if stored is None:
            return None
        return np.asarray(stored, dtype=np.float32).reshape(-1).tolist()

    def ids(self) -> list[str]:
        """Return the live ids in insertion order."""
        return [self._key_to_id[k] for k in sorted(self._key_to_id)]

    def __contains__(self, vector_id: object) -> bool:
        return vector_id in self._id_to_key

    def __len__(self) -> int:
        """Return the number of live (non-deleted) entries."""
        return len(self._key_to_id)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        """Encode the full index state as one blob.

        Layout: magic, 4-byte big-endian sidecar length, JSON sidecar,
        usearch index bytes (absent when the index is empty).
        """
        sidecar: dict[str, Any] = {
            "dimension": self._dimension,
            "metric": self._metric.value,
            "next_key": self._next_key,
            "keys": {str(k): v for k, v in self._key_to_id.items()},
        }
        header = json.dumps(sidecar, separators=(",", ":")).encode()

        payload = b""
        if self._key_to_id:
            with tempfile.TemporaryDirectory() as tmp:
                path = Path(tmp) / _INDEX_FILE
                self._index.save(str(path))
                payload = path.read_bytes()

        return _MAGIC + _HEADER.pack(len(header)) + header + payload

    @classmethod
    def from_bytes(cls, blob: bytes) -> LocalVectorIndex:
        """Decode a blob produced by :meth:`to_bytes`."""
        prefix = len(_MAGIC) + _HEADER.size
        if len(blob) < prefix or not blob.startswith(_MAGIC):
            msg = "Not a local index snapshot"
            raise SerializationError(msg)

        (header_len,) = _HEADER.unpack_from(blob, len(_MAGIC))
        header_end = prefix + header_len
        try:
            sidecar = json.loads(blob[prefix:header_end])
            instance = cls(
                dimension=int(sidecar["dimension"]),
                metric=ScoreMetric(sidecar["metric"]),
            )
            instance._next_key = int(sidecar["next_key"])
            keys = {int(k): str(v) for k, v in sidecar["keys"].items()}
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            msg = f"Corrupt local index snapshot header: {e}"
            raise SerializationError(msg) from e

        payload = blob[header_end:]
        if keys and not payload:
            msg = "Local index snapshot is missing its index payload"
            raise SerializationError(msg)
        if payload:
            with tempfile.TemporaryDirectory() as tmp:
                path = Path(tmp) / _INDEX_FILE
                path.write_bytes(payload)
                try:
                    instance._index.load(str(path))
                except (RuntimeError, ValueError) as e:
                    msg = f"Corrupt local index payload: {e}"
                    raise SerializationError(msg) from e

        instance._key_to_id = keys
        instance._id_to_key = {v: k for k, v in keys.items()}
        return instance

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _as_array(self, vector: list[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float32)
        if array.shape != (self._dimension,):
            msg = f"Expected a {self._dimension}-dimensional vector, got shape {array.shape}"
            raise ValueError(msg)
        return array
