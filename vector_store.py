"""Pinecone data-plane client: idempotent upsert with retry/backoff, top-K query."""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

import httpx

import config

logger = logging.getLogger(__name__)

# Status codes worth retrying besides the 5xx range
_TRANSIENT_STATUS = {408, 429}


class VectorStoreError(RuntimeError):
    """A failed vector-store call, classified as transient or permanent."""

    def __init__(self, message: str, status_code: int | None = None,
                 transient: bool = False, attempts: int = 1):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient
        self.attempts = attempts


def is_transient_status(status_code: int) -> bool:
    return status_code in _TRANSIENT_STATUS or 500 <= status_code < 600


@dataclass
class Vector:
    id: str
    values: list[float]
    metadata: dict = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {"id": self.id, "values": self.values, "metadata": self.metadata}


@dataclass
class Match:
    id: str
    score: float
    metadata: dict = field(default_factory=dict)


@dataclass
class RetryPolicy:
    """Exponential backoff for upserts: base, 2*base, 4*base, ... between attempts.

    ``max_total_delay`` caps the cumulative backoff; None means no ceiling.
    """
    max_attempts: int = 5
    base_delay: float = 2.0
    max_total_delay: float | None = None

    def delay_after(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt - 1))

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        return cls(
            max_attempts=config.RETRY_MAX,
            base_delay=config.BASE_DELAY_SECONDS,
            max_total_delay=config.MAX_BACKOFF_SECONDS or None,
        )


class VectorStoreClient:
    """Talks to one Pinecone index host; the namespace is fixed per process."""

    def __init__(
        self,
        host: str | None = None,
        api_key: str | None = None,
        namespace: str | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = (host or config.PINECONE_HOST).rstrip("/")
        self.namespace = namespace or config.PINECONE_NAMESPACE
        self.retry_policy = retry_policy or RetryPolicy.from_config()
        self._sleep = sleep
        self._client = http_client or httpx.Client(
            base_url=self.host,
            timeout=timeout or config.UPSERT_TIMEOUT_SECONDS,
            headers={
                "Api-Key": api_key or config.PINECONE_API_KEY,
                "X-Pinecone-API-Version": config.PINECONE_API_VERSION,
                "Content-Type": "application/json",
            },
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _post(self, endpoint: str, payload: dict) -> dict:
        """POST a JSON payload, translating every failure into a VectorStoreError."""
        try:
            resp = self._client.post(endpoint, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise VectorStoreError(
                f"{endpoint} returned HTTP {status}: {e.response.text[:300]}",
                status_code=status,
                transient=is_transient_status(status),
            ) from e
        except httpx.TimeoutException as e:
            raise VectorStoreError(f"{endpoint} timed out: {e}", transient=True) from e
        except httpx.TransportError as e:
            raise VectorStoreError(f"{endpoint} connection failed: {e}", transient=True) from e
        if not resp.content:
            return {}
        return resp.json()

    def upsert(self, vectors: Sequence[Vector], namespace: str | None = None) -> int:
        """Upsert a batch, retrying transient failures with exponential backoff.

        The batch is all-or-nothing: on failure the last VectorStoreError is
        raised with ``attempts`` set to the number of calls made.

        Returns:
            int: The upserted count reported by the store.
        """
        if not vectors:
            return 0
        payload = {
            "vectors": [v.to_payload() for v in vectors],
            "namespace": namespace or self.namespace,
        }
        policy = self.retry_policy
        waited = 0.0

        for attempt in range(1, policy.max_attempts + 1):
            try:
                result = self._post("/vectors/upsert", payload)
                return int(result.get("upsertedCount", len(vectors)))
            except VectorStoreError as e:
                e.attempts = attempt
                if not e.transient or attempt >= policy.max_attempts:
                    raise
                delay = policy.delay_after(attempt)
                if policy.max_total_delay is not None and waited + delay > policy.max_total_delay:
                    logger.error(
                        "Upsert backoff ceiling %.1fs reached after %d attempt(s)",
                        policy.max_total_delay, attempt,
                    )
                    raise
                logger.warning(
                    "Upsert retry %d/%d in %.1fs: %s",
                    attempt, policy.max_attempts - 1, delay, e,
                )
                self._sleep(delay)
                waited += delay

        # max_attempts < 1 leaves nothing to try
        raise VectorStoreError("Upsert not attempted: max_attempts must be >= 1", attempts=0)

    def query(self, vector: Sequence[float], top_k: int, namespace: str | None = None,
              include_metadata: bool = True) -> list[Match]:
        """Return up to top_k matches in the store's similarity order."""
        payload = {
            "namespace": namespace or self.namespace,
            "vector": list(vector),
            "topK": top_k,
            "includeMetadata": include_metadata,
            "includeValues": False,
        }
        result = self._post("/query", payload)
        matches = [
            Match(
                id=str(m.get("id", "")),
                score=float(m.get("score", 0.0)),
                metadata=m.get("metadata") or {},
            )
            for m in result.get("matches", [])
        ]
        return matches[:top_k]

    def describe_index_stats(self) -> dict:
        """Index-level stats; includes ``dimension`` and per-namespace vector counts."""
        return self._post("/describe_index_stats", {})
