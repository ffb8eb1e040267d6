"""Tests for embeddings.py: batching contract and rate-limit detection."""
from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest
from langchain_core.embeddings import Embeddings

from embeddings import EmbeddingClient, EmbeddingError, is_rate_limit_error


def _rate_limit_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    return openai.RateLimitError(
        "Rate limit reached", response=httpx.Response(429, request=request), body=None,
    )


class TestEmbed:
    def test_empty_input_makes_no_call(self):
        mock_embeddings = MagicMock(spec=Embeddings)
        client = EmbeddingClient(mock_embeddings)
        assert client.embed([]) == []
        mock_embeddings.embed_documents.assert_not_called()

    def test_preserves_length_and_order(self, fake_embeddings):
        client = EmbeddingClient(fake_embeddings)
        vectors = client.embed(["a", "b", "c"])
        assert len(vectors) == 3
        assert [v[0] for v in vectors] == [0.1, 0.2, 0.3]
        assert all(len(v) == 1536 for v in vectors)
        assert fake_embeddings.calls == [["a", "b", "c"]]

    def test_length_mismatch_raises(self):
        mock_embeddings = MagicMock(spec=Embeddings)
        mock_embeddings.embed_documents.return_value = [[0.1, 0.2]]
        client = EmbeddingClient(mock_embeddings)
        with pytest.raises(EmbeddingError, match="1 vectors for 2 inputs"):
            client.embed(["a", "b"])

    def test_provider_error_propagates_without_retry(self):
        mock_embeddings = MagicMock(spec=Embeddings)
        mock_embeddings.embed_documents.side_effect = _rate_limit_error()
        client = EmbeddingClient(mock_embeddings)
        with pytest.raises(openai.RateLimitError):
            client.embed(["a"])
        assert mock_embeddings.embed_documents.call_count == 1

    def test_embed_query_is_single_item_batch(self, fake_embeddings):
        client = EmbeddingClient(fake_embeddings)
        vector = client.embed_query("How do I handle anger?")
        assert len(vector) == 1536
        assert fake_embeddings.calls == [["How do I handle anger?"]]

    def test_defaults_to_configured_embeddings(self, fake_embeddings):
        with patch("embeddings.get_default_embeddings", return_value=fake_embeddings) as mock_factory:
            client = EmbeddingClient()
        mock_factory.assert_called_once()
        assert client.embed(["x"])


class TestIsRateLimitError:
    def test_openai_rate_limit(self):
        assert is_rate_limit_error(_rate_limit_error()) is True

    def test_httpx_429(self):
        request = httpx.Request("POST", "http://localhost:11434/api/embed")
        response = httpx.Response(429, request=request)
        error = httpx.HTTPStatusError("too many", request=request, response=response)
        assert is_rate_limit_error(error) is True

    def test_httpx_500_is_not_rate_limit(self):
        request = httpx.Request("POST", "http://localhost:11434/api/embed")
        response = httpx.Response(500, request=request)
        error = httpx.HTTPStatusError("boom", request=request, response=response)
        assert is_rate_limit_error(error) is False

    def test_status_code_attribute(self):
        error = RuntimeError("slow down")
        error.status_code = 429
        assert is_rate_limit_error(error) is True

    def test_other_errors(self):
        assert is_rate_limit_error(ValueError("bad input")) is False
