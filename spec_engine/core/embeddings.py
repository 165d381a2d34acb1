"""OpenAI embeddings with a deterministic local fallback."""

import hashlib
import re
from collections.abc import Callable

import numpy as np
from openai import OpenAI

from spec_engine.core.config import get_settings
from spec_engine.core.logging import get_logger

logger = get_logger(__name__)

# Cap input to stay under the embedding token limit
MAX_EMBED_CHARS = 2048

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")
_FALLBACK_STOPWORDS = frozenset(
    {"the", "and", "for", "with", "that", "this", "are", "was", "not", "but", "from", "have", "has"}
)

Embedder = Callable[[str], list[float]]


def _get_client() -> OpenAI:
    """Get OpenAI client instance."""
    settings = get_settings()
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def fallback_embedding(text: str, dim: int | None = None) -> list[float]:
    """
    Deterministic hashed bag-of-words vector.

    Texts sharing vocabulary get a positive cosine similarity, so ranking
    stays meaningful without an embedding provider. Blank text maps to the
    zero vector.
    """
    dim = dim or get_settings().EMBEDDING_DIM
    vector = np.zeros(dim, dtype=np.float64)

    for token in _TOKEN_PATTERN.findall((text or "").lower()):
        if len(token) < 3 or token in _FALLBACK_STOPWORDS:
            continue
        digest = hashlib.md5(token.encode("utf-8")).hexdigest()
        vector[int(digest, 16) % dim] += 1.0

    norm = np.linalg.norm(vector)
    if norm > 0:
        vector /= norm
    return vector.tolist()


def _fit_dimension(embedding: list[float], dim: int) -> list[float]:
    """Pad with zeros or truncate to the configured dimension."""
    if len(embedding) == dim:
        return list(embedding)
    if len(embedding) < dim:
        return list(embedding) + [0.0] * (dim - len(embedding))
    return list(embedding[:dim])


def embed_texts(texts: list[str]) -> list[list[float]]:
    """
    Generate embeddings for a list of texts.

    Uses OpenAI when an API key is configured. A missing key or a failed call
    falls back to the local hashed vector, so this never raises.

    Args:
        texts: List of text strings to embed

    Returns:
        One EMBEDDING_DIM vector per input text
    """
    if not texts:
        return []

    settings = get_settings()

    if not settings.OPENAI_API_KEY:
        logger.debug(f"No OpenAI key configured, using fallback embeddings for {len(texts)} texts")
        return [fallback_embedding(t, settings.EMBEDDING_DIM) for t in texts]

    try:
        client = _get_client()
        response = client.embeddings.create(
            model=settings.EMBEDDING_MODEL,
            input=[(t or " ")[:MAX_EMBED_CHARS] for t in texts],
        )

        embeddings = [
            _fit_dimension(item.embedding, settings.EMBEDDING_DIM) for item in response.data
        ]
        if len(embeddings) != len(texts):
            raise ValueError(f"Expected {len(texts)} embeddings, got {len(embeddings)}")

        logger.info(
            f"Generated {len(embeddings)} embeddings using {settings.EMBEDDING_MODEL}",
            extra={"model": settings.EMBEDDING_MODEL, "count": len(embeddings)},
        )
        return embeddings

    except Exception as e:
        logger.warning(f"Embedding call failed, using fallback vectors: {e}")
        return [fallback_embedding(t, settings.EMBEDDING_DIM) for t in texts]


def embed_text(text: str) -> list[float]:
    """Embed a single text."""
    return embed_texts([text])[0]

