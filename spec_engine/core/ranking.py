"""Hybrid retrieval ranking: vector similarity x recency x source credibility."""

import math
from collections.abc import Sequence
from datetime import datetime, timezone

import numpy as np
from pydantic import BaseModel, Field

from spec_engine.core.config import get_settings
from spec_engine.core.embeddings import Embedder, embed_text
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_sources import ContentChunk, RankedChunk

logger = get_logger(__name__)

NO_CONTEXT_TEXT = "(No relevant context found)"


class RankOptions(BaseModel):
    """Ranking knobs; defaults come from Settings."""

    top_k: int = Field(..., ge=1)
    min_score: float = Field(..., ge=0.0, le=1.0)
    half_life_days: float = Field(..., gt=0.0)
    unknown_age_score: float = Field(..., ge=0.0, le=1.0)
    candidate_pool: int = Field(..., ge=1)
    now: datetime | None = Field(default=None, description="Reference time (defaults to now)")

    @classmethod
    def from_settings(cls, **overrides) -> "RankOptions":
        settings = get_settings()
        values = {
            "top_k": settings.RETRIEVAL_TOP_K,
            "min_score": settings.RETRIEVAL_MIN_SCORE,
            "half_life_days": settings.RETRIEVAL_HALF_LIFE_DAYS,
            "unknown_age_score": settings.RETRIEVAL_UNKNOWN_AGE_SCORE,
            "candidate_pool": settings.RETRIEVAL_CANDIDATE_POOL,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 for empty, zero or mismatched vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def _age_days(timestamp: datetime, now: datetime) -> float:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return max(0.0, (now - timestamp).total_seconds() / 86400.0)


def temporal_decay(
    timestamp: datetime | None,
    half_life_days: float,
    unknown_age_score: float,
    now: datetime | None = None,
) -> float:
    """
    Exponential recency weight: exp(-ln2 * age / half_life).

    Unknown timestamps score unknown_age_score; future timestamps count as age 0.
    """
    if timestamp is None:
        return unknown_age_score
    now = now or datetime.now(timezone.utc)
    return math.exp(-math.log(2) * _age_days(timestamp, now) / half_life_days)


def chunk_credibility(chunk: ContentChunk) -> float:
    """Credibility baked into chunk metadata, else the source-type default."""
    value = chunk.metadata.get("credibility")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return min(1.0, max(0.0, float(value)))
    defaults = get_settings().SOURCE_CREDIBILITY
    return defaults.get(chunk.source_type.value, defaults.get("other", 0.6))


def rank_chunks(
    query_embedding: Sequence[float],
    candidates: Sequence[ContentChunk],
    options: RankOptions | None = None,
) -> list[RankedChunk]:
    """
    Rank candidate chunks against a query embedding.

    Keeps the top candidate_pool chunks by vector similarity, scores each as
    vector * temporal * credibility, drops those under min_score and returns
    at most top_k sorted by final score.

    Args:
        query_embedding: Embedded query
        candidates: Chunks to rank
        options: Ranking options (defaults from Settings)

    Returns:
        RankedChunks, best first
    """
    options = options or RankOptions.from_settings()
    now = options.now or datetime.now(timezone.utc)

    scored = [
        (chunk, min(1.0, max(0.0, cosine_similarity(query_embedding, chunk.embedding))))
        for chunk in candidates
    ]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    pool = scored[: options.candidate_pool]

    ranked = []
    for chunk, vector_score in pool:
        temporal_score = temporal_decay(
            chunk.source_timestamp, options.half_life_days, options.unknown_age_score, now
        )
        credibility = chunk_credibility(chunk)
        final_score = vector_score * temporal_score * credibility
        if final_score < options.min_score:
            continue
        ranked.append(
            RankedChunk(
                chunk=chunk,
                vector_score=vector_score,
                temporal_score=temporal_score,
                credibility=credibility,
                final_score=final_score,
            )
        )

    ranked.sort(key=lambda r: r.final_score, reverse=True)
    result = ranked[: options.top_k]

    logger.debug(
        f"Ranked {len(candidates)} candidates: pool={len(pool)} kept={len(result)}",
        extra={"extra_data": {"min_score": options.min_score, "top_k": options.top_k}},
    )
    return result


def rank(
    query: str,
    candidates: Sequence[ContentChunk],
    options: RankOptions | None = None,
    embedder: Embedder | None = None,
) -> list[RankedChunk]:
    """Embed the query text, then rank candidates against it."""
    embedder = embedder or embed_text
    return rank_chunks(embedder(query), candidates, options)


def format_ranked_chunks(ranked: Sequence[RankedChunk], now: datetime | None = None) -> str:
    """Render ranked chunks as annotated blocks for prompts."""
    if not ranked:
        return NO_CONTEXT_TEXT

    now = now or datetime.now(timezone.utc)
    blocks = []
    for i, item in enumerate(ranked, start=1):
        timestamp = item.chunk.source_timestamp
        age = f"{round(_age_days(timestamp, now))}d ago" if timestamp else "unknown age"
        blocks.append(
            f"[{i}] Source: {item.chunk.source_type.value} | {age} | "
            f"Score: {item.final_score:.2f}\n{item.chunk.content}"
        )
    return "\n\n---\n\n".join(blocks)
