"""Thin wrapper around the embedding provider."""
import logging
from typing import Sequence

import httpx
import openai
from langchain_core.embeddings import Embeddings

from utils import get_default_embeddings

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """Raised when the provider returns a malformed embedding response."""


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for provider errors that signal rate limiting (HTTP 429)."""
    if isinstance(exc, openai.RateLimitError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429
    return getattr(exc, "status_code", None) == 429


class EmbeddingClient:
    """Converts ordered lists of strings into equal-length vectors.

    Uses one model for the lifetime of the instance and never retries;
    rate-limit recovery belongs to the ingestion pipeline.
    """

    def __init__(self, embeddings: Embeddings | None = None):
        self._embeddings = embeddings or get_default_embeddings()

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = self._embeddings.embed_documents(list(texts))
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding service returned {len(vectors)} vectors for {len(texts)} inputs"
            )
        logger.debug("Embedded %d texts (dim=%d)", len(vectors), len(vectors[0]) if vectors else 0)
        return [list(v) for v in vectors]

    def embed_query(self, text: str) -> list[float]:
        """Embed a single query as a one-element batch."""
        return self.embed([text])[0]
