"""Context harvesting chain: rank retrieved chunks and synthesize them."""

from collections.abc import Sequence

from spec_engine.core.config import get_settings
from spec_engine.core.embeddings import Embedder
from spec_engine.core.errors import MalformedResponseError
from spec_engine.core.llm import ReasoningClient, parse_llm_json
from spec_engine.core.logging import get_logger
from spec_engine.core.ranking import RankOptions, format_ranked_chunks, rank
from spec_engine.core.schemas_sources import ContentChunk, HarvestedContext, PrimarySource
from spec_engine.core.schemas_spec import AuditStep, HarvestOutput, StepStatus

logger = get_logger(__name__)

AGENT_NAME = "ContextHarvester"
STAGE_NAME = "harvest"
MAX_KEY_INSIGHTS = 8
MAX_PRIMARY_SOURCES = 5


SYSTEM_PROMPT = """You are ContextHarvester, an expert at reading product context and extracting signal from noise.

Given a set of context chunks (chat threads, tickets, documents, transcripts, code review notes), your job is to:
1. Identify the most critical insights for product specification
2. Spot patterns and recurring themes
3. Surface hidden requirements that aren't explicitly stated

You MUST output ONLY valid JSON matching this exact schema:
{
  "summary": "A 2-3 sentence synthesis of the most important context",
  "key_insights": ["Insight 1 (specific, actionable)", "Insight 2"],
  "primary_sources": [
    {
      "source_type": "chat|ticket|document|transcript|code-host|other",
      "excerpt": "The most relevant quote or data point from this source",
      "relevance": 0.95
    }
  ]
}

Rules:
- key_insights: 3-8 specific, actionable insights
- primary_sources: the 3-5 most relevant chunks, relevance between 0 and 1
- Never invent information not present in the chunks
- If chunks are contradictory, call that out in the summary
"""


def _build_user_message(context_text: str, raw_context: str | None) -> str:
    message = f"Synthesize the following context chunks for a product feature:\n\n{context_text}\n"
    if raw_context:
        message += f"\nAdditional inline context:\n{raw_context}\n"
    message += "\nProduce the structured JSON summary as instructed."
    return message


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def _to_primary_sources(raw_sources: list[dict]) -> list[PrimarySource]:
    sources = []
    for item in raw_sources[:MAX_PRIMARY_SOURCES]:
        if not isinstance(item, dict) or not item.get("excerpt"):
            continue
        try:
            relevance = _clamp(float(item.get("relevance", 0.5)))
        except (TypeError, ValueError):
            relevance = 0.5
        sources.append(
            PrimarySource(
                source_type=str(item.get("source_type") or "other"),
                excerpt=str(item["excerpt"]),
                relevance=relevance,
            )
        )
    return sources


def harvest_context(
    query: str,
    candidates: Sequence[ContentChunk],
    reasoner: ReasoningClient,
    embedder: Embedder | None = None,
    raw_context: str | None = None,
    top_k: int | None = None,
) -> tuple[HarvestedContext, AuditStep]:
    """
    Retrieve the best chunks for a query and synthesize them.

    Args:
        query: Retrieval query (feature name plus description)
        candidates: Chunks to rank
        reasoner: Reasoning client
        embedder: Query embedder (defaults to embed_text)
        raw_context: Optional inline context appended to the prompt
        top_k: Chunks kept (defaults to HARVEST_TOP_K)

    Returns:
        Tuple of (HarvestedContext, AuditStep)

    Raises:
        ReasoningCallError: If the reasoning call fails
    """
    settings = get_settings()
    options = RankOptions.from_settings(top_k=top_k or settings.HARVEST_TOP_K)
    ranked = rank(query, candidates, options, embedder)

    raw_output = reasoner.complete(
        SYSTEM_PROMPT, _build_user_message(format_ranked_chunks(ranked), raw_context)
    )

    try:
        parsed = parse_llm_json(raw_output, HarvestOutput)
    except MalformedResponseError as e:
        logger.warning(f"Harvest response malformed, keeping raw text as summary: {e}")
        harvested = HarvestedContext(
            summary=raw_output[: settings.HARVEST_SUMMARY_FALLBACK_CHARS],
            key_insights=[],
            primary_sources=[],
            chunks=ranked,
        )
        step = AuditStep(
            stage_name=STAGE_NAME,
            agent_name=AGENT_NAME,
            status=StepStatus.DEGRADED,
            observation=f"Retrieved {len(ranked)} chunks; synthesis unparseable, raw summary kept",
            warnings=[str(e)],
        )
        return harvested, step

    harvested = HarvestedContext(
        summary=parsed.summary,
        key_insights=[str(i) for i in parsed.key_insights if str(i).strip()][:MAX_KEY_INSIGHTS],
        primary_sources=_to_primary_sources(parsed.primary_sources),
        chunks=ranked,
    )
    step = AuditStep(
        stage_name=STAGE_NAME,
        agent_name=AGENT_NAME,
        status=StepStatus.DONE,
        observation=(
            f"Retrieved {len(ranked)} chunks and synthesized "
            f"{len(harvested.key_insights)} key insights"
        ),
    )
    return harvested, step
