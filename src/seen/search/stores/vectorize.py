"""VectorizeIndex — Cloudflare Vectorize (v2 REST API) remote index backend."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import httpx

from seen.exceptions import RequestError, SerializationError
from seen.search.types import VectorEntry, VectorMatch

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"


class VectorizeIndex:
    """Remote managed ANN index.

    Implements the ``VectorIndex`` protocol over the Vectorize REST API.
    Any non-2xx status or ``"success": false`` body raises
    :class:`~seen.exceptions.RequestError`; an undecodable body raises
    :class:`~seen.exceptions.SerializationError`.  No call is retried.

    Usage::

        index = VectorizeIndex(index_name="seen-index", account_id="...", api_token="...")
        await index.connect()
        await index.insert([VectorEntry(id="doc-0", vector=[0.1, ...])])
        matches = await index.query([0.1, ...], top_k=20)
        await index.close()
    """

    def __init__(
        self,
        *,
        index_name: str,
        account_id: str | None = None,
        api_token: str | None = None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
    ) -> None:
        self._index_name = index_name
        self._account_id = account_id or os.environ.get("CF_ACCOUNT_ID", "")
        self._api_token = api_token or os.environ.get("CF_API_TOKEN", "")
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    # VectorIndex protocol
    # ------------------------------------------------------------------

    async def insert(self, entries: list[VectorEntry]) -> None:
        """Upsert vectors, one NDJSON line per vector, in a single request."""
        if not entries:
            return
        lines = []
        for entry in entries:
            obj: dict[str, Any] = {"id": entry.id, "values": list(entry.vector)}
            if entry.metadata:
                obj["metadata"] = entry.metadata
            lines.append(json.dumps(obj))
        body = "\n".join(lines) + "\n"

        await self._post(
            "insert",
            content=body.encode(),
            headers={"Content-Type": "application/x-ndjson"},
        )
        logger.debug("Inserted %d vectors into %s", len(entries), self._index_name)

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int = 20,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Return up to *top_k* matches in the service's ranking order."""
        payload: dict[str, Any] = {"vector": list(vector), "topK": top_k}
        payload["returnMetadata"] = "all" if include_metadata else "none"
        data = await self._post("query", json=payload)

        try:
            matches = data["result"]["matches"]
            return [
                VectorMatch(
                    id=str(m["id"]),
                    score=float(m["score"]),
                    metadata=dict(m.get("metadata") or {}) if include_metadata else {},
                )
                for m in matches
            ]
        except (KeyError, TypeError, ValueError) as e:
            msg = f"Malformed query response from {self._index_name}: {e}"
            raise SerializationError(msg) from e

    async def delete_by_ids(self, ids: list[str]) -> None:
        """Delete vectors by id.  A 200 with ``success: false`` still fails."""
        if not ids:
            return
        await self._post("delete_by_ids", json={"ids": list(ids)})
        logger.debug("Deleted %d vectors from %s", len(ids), self._index_name)

    async def get_by_ids(self, ids: list[str]) -> list[VectorEntry]:
        """Fetch stored vectors.  Ids unknown to the service are omitted."""
        if not ids:
            return []
        data = await self._post("get_by_ids", json={"ids": list(ids)})

        try:
            return [
                VectorEntry(
                    id=str(item["id"]),
                    vector=[float(v) for v in item["values"]],
                    metadata=dict(item.get("metadata") or {}),
                )
                for item in data["result"]
            ]
        except (KeyError, TypeError, ValueError) as e:
            msg = f"Malformed get_by_ids response from {self._index_name}: {e}"
            raise SerializationError(msg) from e

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the HTTP client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._api_base,
            headers={"Authorization": f"Bearer {self._api_token}"},
            timeout=self._timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def index_name(self) -> str:
        return self._index_name

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _endpoint(self, operation: str) -> str:
        return (
            f"/accounts/{self._account_id}/vectorize/v2/indexes/"
            f"{self._index_name}/{operation}"
        )

    async def _post(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        """POST to *operation* and return the decoded, successful body."""
        client = self._require_client()
        try:
            response = await client.post(self._endpoint(operation), **kwargs)
        except httpx.HTTPError as e:
            msg = f"Vectorize {operation} request failed: {e}"
            raise RequestError(msg) from e

        if not response.is_success:
            msg = (
                f"Vectorize {operation} failed with HTTP {response.status_code}: "
                f"{response.text}"
            )
            raise RequestError(msg)

        try:
            data = response.json()
        except ValueError as e:
            msg = f"Vectorize {operation} returned a non-JSON body"
            raise SerializationError(msg) from e
        if not isinstance(data, dict):
            msg = f"Vectorize {operation} returned an unexpected body: {data!r}"
            raise SerializationError(msg)

        if not data.get("success", False):
            logger.error("Vectorize %s reported failure: %s", operation, data)
            msg = f"Vectorize {operation} reported failure: {data.get('errors')}"
            raise RequestError(msg)
        return data

    def _require_client(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client
