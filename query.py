"""Answer one question from the command line: retrieve records, then compose a reply."""
import logging
import sys

from answer import AnswerComposer, ConversationContext
from config import TOP_K
from embeddings import EmbeddingClient
from retriever import RetrievalPipeline
from vector_store import VectorStoreClient

logger = logging.getLogger(__name__)

USAGE = 'Usage: python query.py "your query" [concern] [subtopic]'


def ask(query: str, concern: str = "general", subtopic: str = "general",
        top_k: int = TOP_K) -> str:
    from health import check_startup
    check_startup()

    with VectorStoreClient() as store:
        retrieval = RetrievalPipeline(EmbeddingClient(), store)
        contexts = retrieval.retrieve(query, top_k=top_k)
    composer = AnswerComposer()
    return composer.compose(query, contexts, ConversationContext(concern=concern, subtopic=subtopic))


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args or not args[0].strip():
        print(USAGE, file=sys.stderr)
        return 1

    query = args[0]
    concern = args[1] if len(args) > 1 and args[1] else "general"
    subtopic = args[2] if len(args) > 2 and args[2] else "general"

    try:
        reply = ask(query, concern, subtopic)
    except Exception as e:
        logger.error("Query failed: %s", e)
        return 1

    print(f"\nSarathiAI Reply:\n{reply}")
    return 0


if __name__ == "__main__":
    from logging_config import setup_logging
    setup_logging()
    sys.exit(main())
