"""WorkersAIEmbedding — embedding provider backed by Cloudflare Workers AI."""

from __future__ import annotations

import os
from typing import Any

import httpx

from seen.search.providers._retry import EmbeddingAttemptError, embed_with_retry

DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"
DEFAULT_MODEL = "@cf/baai/bge-base-en-v1.5"

# Default dimensions per model when the user does not specify.
_MODEL_DEFAULTS: dict[str, int] = {
    "@cf/baai/bge-small-en-v1.5": 384,
    "@cf/baai/bge-base-en-v1.5": 768,
    "@cf/baai/bge-large-en-v1.5": 1024,
}


class WorkersAIEmbedding:
    """Async embedding provider for the Workers AI ``/ai/run`` endpoint.

    Sends ``{"text": [text]}`` and expects
    ``{"success": true, "result": {"data": [[...]]}}``.  A failed call is
    retried once; a second failure raises
    :class:`~seen.exceptions.TransientServiceError`.
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        dimensions: int | None = None,
        account_id: str | None = None,
        api_token: str | None = None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
    ) -> None:
        resolved_account = account_id or os.environ.get("CF_ACCOUNT_ID")
        resolved_token = api_token or os.environ.get("CF_API_TOKEN")
        if not resolved_account or not resolved_token:
            msg = (
                "No Cloudflare credentials provided. Pass account_id= and api_token= "
                "or set CF_ACCOUNT_ID and CF_API_TOKEN."
            )
            raise ValueError(msg)

        self._model = model
        self._dimensions = dimensions
        self._url = f"{api_base.rstrip('/')}/accounts/{resolved_account}/ai/run/{model}"
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {resolved_token}"},
            timeout=timeout,
        )

    # ------------------------------------------------------------------
    # EmbeddingProvider protocol
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed a single text, retrying once on failure."""
        return await embed_with_retry(lambda: self._call_api(text), model=self._model)

    @property
    def dimensions(self) -> int:
        """Return the embedding dimensionality."""
        if self._dimensions is not None:
            return self._dimensions
        default = _MODEL_DEFAULTS.get(self._model)
        if default is not None:
            return default
        msg = f"Unknown default dimensions for model {self._model!r}. Pass dimensions= explicitly."
        raise ValueError(msg)

    @property
    def model_name(self) -> str:
        return self._model

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call_api(self, text: str) -> list[float]:
        try:
            response = await self._client.post(self._url, json={"text": [text]})
        except httpx.HTTPError as e:
            msg = f"request error: {e}"
            raise EmbeddingAttemptError(msg) from e

        if response.status_code != 200:
            msg = f"HTTP {response.status_code}: {response.text}"
            raise EmbeddingAttemptError(msg)

        try:
            body: dict[str, Any] = response.json()
            success = body.get("success")
            data = body["result"]["data"] if success else None
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            msg = f"malformed response: {e}"
            raise EmbeddingAttemptError(msg) from e
        if not success:
            msg = f"service reported failure: {body.get('errors')}"
            raise EmbeddingAttemptError(msg)

        if not isinstance(data, list) or not data:
            msg = "empty response"
            raise EmbeddingAttemptError(msg)
        vector = data[0]
        if not isinstance(vector, list) or len(vector) != self.dimensions:
            msg = f"expected a {self.dimensions}-dimensional vector"
            raise EmbeddingAttemptError(msg)
        try:
            return [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            msg = f"non-numeric vector: {e}"
            raise EmbeddingAttemptError(msg) from e
