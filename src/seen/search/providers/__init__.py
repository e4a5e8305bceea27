"""Embedding providers — protocol and implementations."""

from seen.search.protocols import EmbeddingProvider
from seen.search.providers.openai import OpenAIEmbedding
from seen.search.providers.workers_ai import WorkersAIEmbedding

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbedding",
    "WorkersAIEmbedding",
]
