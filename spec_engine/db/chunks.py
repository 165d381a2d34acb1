"""Chunk storage operations."""

from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_sources import ContentChunk
from spec_engine.db.store import get_store

logger = get_logger(__name__)


def insert_chunks(chunks: list[ContentChunk]) -> list[str]:
    """
    Persist chunks (embeddings included).

    Returns:
        Inserted chunk ids, in input order
    """
    store = get_store()
    with store.lock:
        for chunk in chunks:
            store.chunks[chunk.id] = chunk

    logger.debug(f"Inserted {len(chunks)} chunks")
    return [chunk.id for chunk in chunks]


def list_chunks_for_feature(feature_id: str) -> list[ContentChunk]:
    """Chunks attached to a feature, in insertion order."""
    store = get_store()
    with store.lock:
        return [c for c in store.chunks.values() if c.feature_id == feature_id]


def count_chunks_for_feature(feature_id: str) -> int:
    return len(list_chunks_for_feature(feature_id))
