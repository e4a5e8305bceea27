"""Blob stores — opaque key/bytes storage for content and index snapshots."""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from seen.exceptions import RequestError


@runtime_checkable
class BlobStore(Protocol):
    """Async key/bytes store.  ``get`` returns ``None`` for a missing key."""

    async def get(self, key: str) -> bytes | None:
        """Return the bytes stored under *key*, or ``None``."""
        ...

    async def put(self, key: str, data: bytes) -> None:
        """Store *data* under *key*, overwriting any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Remove *key*.  Deleting a missing key is not an error."""
        ...


class LocalBlobStore:
    """Blob store backed by a directory on the local disk.

    Keys are relative, ``/``-separated paths.  Writes go through a temporary
    file that replaces the target, so readers never see a half-written blob.
    Disk failures surface as :class:`~seen.exceptions.RequestError`.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, key: str) -> Path:
        rel = key.strip("/")
        if not rel:
            msg = "Blob key must not be empty"
            raise ValueError(msg)
        candidate = (self.root / rel).resolve()
        if self.root not in candidate.parents:
            msg = f"Blob key escapes the store root: {key!r}"
            raise ValueError(msg)
        return candidate

    async def get(self, key: str) -> bytes | None:
        path = self._resolve(key)

        def _read() -> bytes | None:
            try:
                return path.read_bytes()
            except FileNotFoundError:
                return None

        try:
            return await asyncio.to_thread(_read)
        except OSError as e:
            msg = f"Failed to read blob {key!r}: {e}"
            raise RequestError(msg) from e

    async def put(self, key: str, data: bytes) -> None:
        path = self._resolve(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                Path(tmp_path).replace(path)
            except Exception:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
                raise

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            msg = f"Failed to write blob {key!r}: {e}"
            raise RequestError(msg) from e

    async def delete(self, key: str) -> None:
        path = self._resolve(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            msg = f"Failed to delete blob {key!r}: {e}"
            raise RequestError(msg) from e
