"""Top-K retrieval of stored records for a free-text query."""
import logging

from config import TOP_K
from embeddings import EmbeddingClient
from vector_store import Match, VectorStoreClient

logger = logging.getLogger(__name__)


class RetrievalPipeline:
    """Embeds a query and asks the vector store for its nearest records.

    No retry on this path: the caller is interactive and can re-issue the
    request, so failures propagate as-is.
    """

    def __init__(self, embedder: EmbeddingClient, store: VectorStoreClient,
                 namespace: str | None = None):
        self.embedder = embedder
        self.store = store
        self.namespace = namespace or store.namespace

    def retrieve_matches(self, query: str, top_k: int = TOP_K) -> list[Match]:
        vector = self.embedder.embed_query(query)
        matches = self.store.query(vector, top_k=top_k, namespace=self.namespace,
                                   include_metadata=True)
        logger.info("Retrieved %d match(es) for query: %s", len(matches), query[:80])
        return matches[:top_k]

    def retrieve(self, query: str, top_k: int = TOP_K) -> list[dict]:
        """Return the metadata of up to top_k matches, in the store's similarity order."""
        return [match.metadata for match in self.retrieve_matches(query, top_k=top_k)]
