"""Lexical grounding helpers: tie generated text back to source chunks."""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from spec_engine.core.schemas_sources import ContentChunk

_WORD_PATTERN = re.compile(r"[a-z0-9]+")
_QUOTE_CHARS = "\"'`“”‘’…."

# Share of a snippet's content words that must appear in one chunk
SNIPPET_OVERLAP_RATIO = 0.6

SECURITY_CAVEAT_PATTERNS = [
    re.compile(
        r"\b(?:bypass\w*|skip\w*|disabl\w*|ignor\w*)\s+(?:the\s+|all\s+|any\s+)?(?:[\w\-]+\s+){0,3}?"
        r"(?:permission|authori[sz]ation|auth|access|acl)\s+checks?\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:permission|authori[sz]ation|auth|access|acl)\s+checks?\s+(?:(?:is|are|were|was|get|gets)\s+)?"
        r"(?:bypassed|skipped|missing|disabled|not\s+enforced|not\s+applied)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:no|missing|without)\s+(?:\w+\s+){0,2}?(?:auth|authentication|authori[sz]ation|permission\s+checks?)\b",
        re.IGNORECASE,
    ),
]

# Citation used when no source chunk supports a rule
UNCITED_SOURCE = "engine default"

# Words that mark a rule as addressing an access-control concern
_ACCESS_CONTROL_TERMS = ("permission", "authoriz", "authoris", "auth", "access")


@dataclass(frozen=True)
class SecurityCaveat:
    """An explicit access-control warning found in a chunk."""

    chunk: ContentChunk
    sentence: str


def normalize_text(text: str) -> str:
    """Lowercase, strip quotes and collapse whitespace."""
    return " ".join((text or "").lower().strip().strip(_QUOTE_CHARS).split())


def content_words(text: str, min_length: int = 4) -> set[str]:
    return {w for w in _WORD_PATTERN.findall((text or "").lower()) if len(w) >= min_length}


def traces_to(snippet: str, source_text: str) -> bool:
    """
    True if a snippet is quoted from, or closely paraphrases, the source text.

    Quoted: the normalized snippet is a substring. Paraphrased: at least
    SNIPPET_OVERLAP_RATIO of the snippet's content words appear in the source.
    """
    needle = normalize_text(snippet)
    if not needle:
        return False
    if needle in normalize_text(source_text):
        return True

    words = content_words(snippet)
    if not words:
        return False
    overlap = len(words & content_words(source_text)) / len(words)
    return overlap >= SNIPPET_OVERLAP_RATIO


def find_supporting_chunk(snippet: str, chunks: Sequence[ContentChunk]) -> ContentChunk | None:
    """First chunk the snippet traces to, or None."""
    for chunk in chunks:
        if traces_to(snippet, chunk.content):
            return chunk
    return None


def best_matching_chunk(text: str, chunks: Sequence[ContentChunk]) -> ContentChunk | None:
    """Chunk sharing the most content words with text; ties keep retrieval order."""
    words = content_words(text)
    best: ContentChunk | None = None
    best_overlap = 0
    for chunk in chunks:
        overlap = len(words & content_words(chunk.content))
        if overlap > best_overlap:
            best, best_overlap = chunk, overlap
    if best is None and chunks:
        return chunks[0]
    return best


def chunk_label(chunk: ContentChunk) -> str:
    """Human-readable source label for citations."""
    url = chunk.metadata.get("url")
    if url:
        return str(url)
    section = chunk.metadata.get("section")
    speaker = chunk.metadata.get("speaker")
    label = chunk.source_type.value
    if section:
        label = f"{label} ({section})"
    elif speaker:
        label = f"{label} ({speaker})"
    return label


def cite_chunk(chunk: ContentChunk, max_chars: int = 120) -> str:
    """Citation string: label plus a quoted excerpt."""
    excerpt = " ".join(chunk.content.split())
    if len(excerpt) > max_chars:
        excerpt = excerpt[: max_chars - 3].rstrip() + "..."
    return f'{chunk_label(chunk)}: "{excerpt}"'


def _sentence_around(text: str, start: int, end: int) -> str:
    left = max(text.rfind(".", 0, start), text.rfind("\n", 0, start)) + 1
    right_candidates = [i for i in (text.find(".", end), text.find("\n", end)) if i != -1]
    right = min(right_candidates) + 1 if right_candidates else len(text)
    return " ".join(text[left:right].split())


def find_security_caveats(chunks: Sequence[ContentChunk]) -> list[SecurityCaveat]:
    """Explicit access-control caveats (bypassed checks, missing auth), one per chunk."""
    caveats = []
    for chunk in chunks:
        for pattern in SECURITY_CAVEAT_PATTERNS:
            match = pattern.search(chunk.content)
            if match:
                caveats.append(
                    SecurityCaveat(
                        chunk=chunk,
                        sentence=_sentence_around(chunk.content, match.start(), match.end()),
                    )
                )
                break
    return caveats


def addresses_access_control(rule: str) -> bool:
    lowered = rule.lower()
    return any(term in lowered for term in _ACCESS_CONTROL_TERMS)
