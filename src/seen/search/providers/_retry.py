"""Single-retry policy shared by the embedding providers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from seen.exceptions import TransientServiceError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class EmbeddingAttemptError(Exception):
    """One failed embedding call (bad status, bad payload, transport error)."""


async def embed_with_retry(
    attempt: Callable[[], Awaitable[list[float]]],
    *,
    model: str,
) -> list[float]:
    """Run *attempt*, retrying exactly once with the same input.

    Raises :class:`TransientServiceError` if both calls fail.
    """
    try:
        return await attempt()
    except EmbeddingAttemptError as e:
        logger.warning("Embedding with %s failed: %s; retrying once", model, e)

    try:
        return await attempt()
    except EmbeddingAttemptError as e:
        logger.error("Embedding retry with %s also failed: %s", model, e)
        msg = f"Embedding generation failed after retry: {e}"
        raise TransientServiceError(msg) from e
