"""Shared fixtures for Sarathi RAG tests."""
import json

import httpx
import pytest
from langchain_core.embeddings import Embeddings

TEST_HOST = "https://gita-test.svc.pinecone.io"


class FakeEmbeddings(Embeddings):
    """Deterministic embeddings that record every batch they are given."""

    def __init__(self, dim: int = 1536):
        self.dim = dim
        self.calls: list[list[str]] = []

    def embed_documents(self, texts):
        self.calls.append(list(texts))
        return [[float(i + 1) / 10] * self.dim for i in range(len(texts))]

    def embed_query(self, text):
        return self.embed_documents([text])[0]


class FakePinecone:
    """Scripted httpx.MockTransport handler recording every request body.

    Each scripted item is either an exception to raise or a (status, json)
    tuple, where json may be a callable taking the request body. The last
    item repeats once the script runs out.
    """

    def __init__(self, *script):
        self.script = list(script) or [(200, {"upsertedCount": 0})]
        self.requests: list[httpx.Request] = []
        self.bodies: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(json.loads(request.content) if request.content else {})
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        status, payload = item
        if callable(payload):
            payload = payload(self.bodies[-1])
        return httpx.Response(status, json=payload)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest.fixture
def sleeps():
    """List that an injected sleep appends to instead of sleeping."""
    return []


@pytest.fixture
def make_store(sleeps):
    """Build a VectorStoreClient wired to a FakePinecone handler."""
    from vector_store import RetryPolicy, VectorStoreClient

    def _make(handler, retry_policy=None, namespace="verses"):
        http_client = httpx.Client(base_url=TEST_HOST, transport=httpx.MockTransport(handler))
        return VectorStoreClient(
            host=TEST_HOST,
            api_key="test-key",
            namespace=namespace,
            retry_policy=retry_policy or RetryPolicy(max_attempts=5, base_delay=1.0),
            http_client=http_client,
            sleep=sleeps.append,
        )

    return _make


@pytest.fixture
def verse_row():
    return {
        "source_id": "BG2.47",
        "sanskrit": "karmaṇy evādhikāras te mā phaleṣu kadācana",
        "translation": "Perform your duty without attachment to the fruits of action.",
        "chapter": "2",
        "verse": "47",
    }


@pytest.fixture
def verse_rows():
    return [
        {"source_id": f"BG2.{n}", "sanskrit": f"shloka {n}", "translation": f"meaning {n}",
         "chapter": "2", "verse": str(n)}
        for n in (47, 48, 49)
    ]


@pytest.fixture
def data_dir(tmp_path):
    """Data folder with verse and practice CSVs; commentary is deliberately missing."""
    folder = tmp_path / "data"
    folder.mkdir()
    (folder / "verse.csv").write_text(
        "Source ID,Sanskrit Verse,Translation (English),Chapter,Verse,Tags\n"
        "BG 2.47,karmaṇy evādhikāras te,Perform your duty,2,47,duty\n"
        "BG 2.48,yoga-sthaḥ kuru karmāṇi,Be steadfast in yoga,2,48,equanimity\n",
        encoding="utf-8",
    )
    (folder / "practices.csv").write_text(
        "practice_id,practice_text,duration_sec,level,tags\n"
        "P1,pause and breathe,60,beginner,anger\n",
        encoding="utf-8",
    )
    return folder


@pytest.fixture
def fake_pinecone():
    """The FakePinecone class, for building scripted handlers."""
    return FakePinecone


@pytest.fixture
def upsert_ok():
    """Scripted success response echoing the number of vectors sent."""
    return (200, lambda body: {"upsertedCount": len(body.get("vectors", []))})
