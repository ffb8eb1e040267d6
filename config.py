import os
from dotenv import load_dotenv

# Load environment variables from .env file (explicit path so scripts run from anywhere find it)
load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env"))

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

DATA_DIR = os.getenv("DATA_DIR", os.path.join(_PROJECT_ROOT, "data"))

# One input file per record family, ingested in this order
SOURCE_FILES = {
    "verse": os.getenv("VERSE_FILE", "verse.csv"),
    "commentary": os.getenv("COMMENTARY_FILE", "commentary.csv"),
    "practices": os.getenv("PRACTICES_FILE", "practices.csv"),
}

# Batching and pacing
BATCH_SIZE = int(os.getenv("BATCH_SIZE", "20"))
PACING_DELAY_SECONDS = float(os.getenv("PACING_DELAY_SECONDS", "0.3"))
# Safety net for oversized rows; full text is still stored in metadata
EMBED_CHAR_LIMIT = int(os.getenv("EMBED_CHAR_LIMIT", "8000"))

# Upsert retry policy
RETRY_MAX = int(os.getenv("RETRY_MAX", "5"))
BASE_DELAY_SECONDS = float(os.getenv("BASE_DELAY_SECONDS", "2.0"))
# Ceiling on cumulative upsert backoff; 0 disables it
MAX_BACKOFF_SECONDS = float(os.getenv("MAX_BACKOFF_SECONDS", "0"))
UPSERT_TIMEOUT_SECONDS = float(os.getenv("UPSERT_TIMEOUT_SECONDS", "120"))

# Embedding rate-limit recovery (no Retry-After hint from the provider)
RATE_LIMIT_COOLDOWN_SECONDS = float(os.getenv("RATE_LIMIT_COOLDOWN_SECONDS", "20"))
RATE_LIMIT_MAX_RETRIES = int(os.getenv("RATE_LIMIT_MAX_RETRIES", "5"))

# LLM backend: "openai" (default), "anthropic", "ollama"
LLM_BACKEND = os.getenv("LLM_BACKEND", "openai").lower()

# OpenAI settings
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_EMBEDDING_MODEL = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")

# Anthropic settings
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "").strip()
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

# Ollama settings
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "nomic-embed-text")
LLM_MODEL = os.getenv("LLM_MODEL", "gemma3:12b")

# Pinecone data plane, e.g. https://<index>-<project>.svc.<region>.pinecone.io
PINECONE_HOST = os.getenv("PINECONE_HOST", "").strip().rstrip("/")
PINECONE_API_KEY = os.getenv("PINECONE_API_KEY", "").strip()
PINECONE_NAMESPACE = os.getenv("PINECONE_NAMESPACE", "verses")
PINECONE_API_VERSION = os.getenv("PINECONE_API_VERSION", "2025-04")

# Retrieval settings
TOP_K = int(os.getenv("TOP_K", "4"))
