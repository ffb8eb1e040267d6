"""Shared model factories for Sarathi RAG."""

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

import config


def get_default_llm(temperature: float = 0.7) -> BaseChatModel:
    """Create a chat LLM instance based on the configured backend."""
    backend = config.LLM_BACKEND

    if backend == "anthropic":
        from langchain_anthropic import ChatAnthropic
        return ChatAnthropic(
            model=config.ANTHROPIC_MODEL,
            api_key=config.ANTHROPIC_API_KEY,
            temperature=temperature,
            max_retries=0,
        )

    if backend == "ollama":
        from langchain_ollama import ChatOllama
        return ChatOllama(
            model=config.LLM_MODEL,
            base_url=config.OLLAMA_BASE_URL,
            temperature=temperature,
        )

    # Default: openai
    from langchain_openai import ChatOpenAI
    return ChatOpenAI(
        model=config.OPENAI_MODEL,
        api_key=config.OPENAI_API_KEY,
        temperature=temperature,
        max_retries=0,
    )


def get_default_embeddings() -> Embeddings:
    """Create an embeddings instance based on the configured backend.

    Anthropic doesn't provide an embeddings API, so it falls back to
    OpenAI embeddings (requires OPENAI_API_KEY to be set). Provider-side
    retries are disabled; rate limits are handled by the ingestion pipeline.
    """
    backend = config.LLM_BACKEND

    if backend == "ollama":
        from langchain_ollama import OllamaEmbeddings
        return OllamaEmbeddings(
            model=config.EMBEDDING_MODEL,
            base_url=config.OLLAMA_BASE_URL,
        )

    from langchain_openai import OpenAIEmbeddings
    api_key = config.OPENAI_API_KEY
    if not api_key:
        raise ValueError(
            f"LLM_BACKEND={backend} requires OPENAI_API_KEY for embeddings"
        )
    return OpenAIEmbeddings(
        model=config.OPENAI_EMBEDDING_MODEL,
        api_key=api_key,
        max_retries=0,
    )
