"""SeenConfig — tunables for the retrieval layer, with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from seen.search.providers.workers_ai import DEFAULT_API_BASE
from seen.search.providers.workers_ai import DEFAULT_MODEL as DEFAULT_EMBEDDING_MODEL
from seen.search.stores.snapshot import DEFAULT_SNAPSHOT_KEY
from seen.search.types import Backend

DEFAULT_INDEX_NAME = "seen-index"
DEFAULT_DATA_DIR = Path.home() / ".seen"


def _parse_backends(raw: str) -> frozenset[Backend]:
    names = [part.strip().lower() for part in raw.split(",") if part.strip()]
    if not names:
        msg = "At least one write backend is required"
        raise ValueError(msg)
    return frozenset(Backend(name) for name in names)


@dataclass(frozen=True, slots=True)
class SeenConfig:
    """Configuration for :class:`~seen.Seen`.

    Attributes:
        account_id: Cloudflare account that owns the AI and Vectorize resources.
        api_token: Bearer token for the Cloudflare REST API.
        api_base: REST API root.
        index_name: Vectorize index holding the chunk vectors.
        embedding_model: Workers AI embedding model.
        dimensions: Embedding dimensionality (shared by both indexes).
        snapshot_key: Blob key of the serialized local index.
        write_backends: Index backends written on ingest and delete.
        query_top_k: Chunk-level fan-out of a query.
        max_documents: Documents kept after grouping.
        rebuild_batch_size: Vector ids fetched per rebuild batch.
        rebuild_max_batches: Batches processed per rebuild invocation.
        database_url: SQLAlchemy async URL of the durable tables.
        blob_dir: Directory backing the local blob store.
        timeout: HTTP timeout in seconds.
    """

    account_id: str = ""
    api_token: str = ""
    api_base: str = DEFAULT_API_BASE
    index_name: str = DEFAULT_INDEX_NAME
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    dimensions: int = 768
    snapshot_key: str = DEFAULT_SNAPSHOT_KEY
    write_backends: frozenset[Backend] = field(
        default_factory=lambda: frozenset({Backend.REMOTE, Backend.LOCAL})
    )
    query_top_k: int = 20
    max_documents: int = 5
    rebuild_batch_size: int = 20
    rebuild_max_batches: int = 15
    database_url: str = f"sqlite+aiosqlite:///{DEFAULT_DATA_DIR / 'seen.db'}"
    blob_dir: Path = DEFAULT_DATA_DIR / "blobs"
    timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.dimensions <= 0:
            msg = f"dimensions must be positive, got {self.dimensions}"
            raise ValueError(msg)
        if not self.write_backends:
            msg = "At least one write backend is required"
            raise ValueError(msg)
        for name in ("query_top_k", "max_documents", "rebuild_batch_size", "rebuild_max_batches"):
            if getattr(self, name) <= 0:
                msg = f"{name} must be positive"
                raise ValueError(msg)

    @classmethod
    def from_env(cls, **overrides: object) -> SeenConfig:
        """Build a config from ``CF_*`` and ``SEEN_*`` environment variables.

        Explicit keyword *overrides* win over the environment.
        """
        env = os.environ
        values: dict[str, object] = {
            "account_id": env.get("CF_ACCOUNT_ID", ""),
            "api_token": env.get("CF_API_TOKEN", ""),
        }
        str_vars = {
            "SEEN_API_BASE": "api_base",
            "SEEN_INDEX_NAME": "index_name",
            "SEEN_EMBEDDING_MODEL": "embedding_model",
            "SEEN_SNAPSHOT_KEY": "snapshot_key",
            "SEEN_DATABASE_URL": "database_url",
        }
        int_vars = {
            "SEEN_DIMENSIONS": "dimensions",
            "SEEN_QUERY_TOP_K": "query_top_k",
            "SEEN_MAX_DOCUMENTS": "max_documents",
            "SEEN_REBUILD_BATCH_SIZE": "rebuild_batch_size",
            "SEEN_REBUILD_MAX_BATCHES": "rebuild_max_batches",
        }
        for var, name in str_vars.items():
            if var in env:
                values[name] = env[var]
        for var, name in int_vars.items():
            if var in env:
                values[name] = int(env[var])
        if "SEEN_TIMEOUT" in env:
            values["timeout"] = float(env["SEEN_TIMEOUT"])
        if "SEEN_BLOB_DIR" in env:
            values["blob_dir"] = Path(env["SEEN_BLOB_DIR"])
        if "SEEN_WRITE_BACKENDS" in env:
            values["write_backends"] = _parse_backends(env["SEEN_WRITE_BACKENDS"])
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]
