"""Startup configuration and backend connectivity checks."""
import logging
import time

import httpx

import config

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when a required credential or endpoint is missing or unreachable."""


def _tagged(model: str) -> str:
    return model if ":" in model else f"{model}:latest"


def _fetch_ollama_models(retries: int, delay: float) -> set[str]:
    """Poll /api/tags until Ollama answers, doubling the wait after each failure."""
    url = f"{config.OLLAMA_BASE_URL}/api/tags"
    wait = delay
    for attempt in range(1, retries + 1):
        try:
            resp = httpx.get(url, timeout=5)
            resp.raise_for_status()
        except (httpx.TransportError, httpx.HTTPStatusError) as e:
            logger.warning("Ollama not ready (attempt %d/%d): %s", attempt, retries, e)
            if attempt < retries:
                time.sleep(wait)
                wait *= 2
            continue
        return {_tagged(m.get("name", "")) for m in resp.json().get("models", [])}

    raise ConfigurationError(
        f"Could not reach Ollama at {config.OLLAMA_BASE_URL} after {retries} attempts. "
        "Is Ollama running?"
    )


def check_ollama(retries: int = 5, delay: float = 2) -> bool:
    """Verify Ollama is reachable and has the embedding and chat models pulled.

    Reachability is retried with exponential backoff (delay, delay*2, ...);
    a missing model fails at once.
    """
    available = _fetch_ollama_models(retries, delay)
    missing = [
        model for model in (config.EMBEDDING_MODEL, config.LLM_MODEL)
        if model and _tagged(model) not in available
    ]
    if missing:
        raise ConfigurationError(
            f"Ollama at {config.OLLAMA_BASE_URL} is missing model(s) {', '.join(missing)}; "
            "run `ollama pull` for each"
        )
    logger.info("Ollama is reachable at %s with %s", config.OLLAMA_BASE_URL, ", ".join(sorted(available)))
    return True


def check_backend(retries: int = 5, delay: float = 2) -> bool:
    """Verify the configured LLM backend is available.

    For openai: verifies the API key is set.
    For anthropic: verifies both the Anthropic key and the OpenAI key used
    for embeddings are set.
    For ollama: polls /api/tags with retries and checks both models are pulled.
    """
    backend = config.LLM_BACKEND

    if backend == "ollama":
        return check_ollama(retries=retries, delay=delay)

    if backend == "anthropic" and not config.ANTHROPIC_API_KEY:
        raise ConfigurationError("LLM_BACKEND=anthropic but ANTHROPIC_API_KEY is not set.")

    if backend not in ("openai", "anthropic"):
        raise ConfigurationError(f"Unknown LLM_BACKEND: {backend}")

    if not config.OPENAI_API_KEY:
        raise ConfigurationError(
            f"LLM_BACKEND={backend} but OPENAI_API_KEY is not set (needed for embeddings)."
        )
    logger.info("%s backend configured (API key set)", backend)
    return True


def check_vector_store() -> bool:
    """Verify the Pinecone endpoint and key are configured."""
    missing = [
        name for name, value in (
            ("PINECONE_HOST", config.PINECONE_HOST),
            ("PINECONE_API_KEY", config.PINECONE_API_KEY),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Missing required setting(s): {', '.join(missing)}")
    if not config.PINECONE_HOST.startswith(("http://", "https://")):
        raise ConfigurationError(
            f"PINECONE_HOST must be an http(s) URL, got {config.PINECONE_HOST!r}"
        )
    if not config.PINECONE_NAMESPACE:
        raise ConfigurationError("PINECONE_NAMESPACE must not be empty")
    logger.info("Pinecone configured at %s (namespace=%s)", config.PINECONE_HOST, config.PINECONE_NAMESPACE)
    return True


def check_startup() -> None:
    """Run every startup check; raises ConfigurationError before any work is done."""
    check_vector_store()
    check_backend()
