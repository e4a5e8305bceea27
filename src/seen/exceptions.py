"""Exception hierarchy for the seen retrieval layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from seen.search.types import WriteStep


class SeenError(Exception):
    """Base exception for all seen errors."""


class TransientServiceError(SeenError):
    """Raised when the embedding service fails twice in a row."""


class RequestError(SeenError):
    """Raised on a non-success answer from a vector or storage backend."""


class NotFoundError(SeenError):
    """Raised when a document (or a vector needed for a rebuild) does not exist."""


class SerializationError(SeenError):
    """Raised when an external response or a stored snapshot cannot be decoded."""


class PartialWriteError(SeenError):
    """Raised when an ingest or delete fails after some of its steps completed.

    Nothing is rolled back: the steps in ``completed_steps`` stay applied and
    the stores are visibly inconsistent until the caller repairs them.
    """

    def __init__(self, step: WriteStep, completed_steps: list[WriteStep], message: str) -> None:
        super().__init__(message)
        self.step = step
        self.completed_steps = list(completed_steps)
