"""Source-aware chunking of raw context into ContentChunks.

Each source type has its own splitter:
- chat: one chunk per speaker turn
- ticket: one chunk per ticket section (Description, Acceptance Criteria, ...)
- document: one chunk per markdown heading section
- transcript: one chunk per speaker block
- code-host / other: blank-line paragraphs, short ones merged, code kept whole

Every splitter falls back to paragraph splitting when the structure it looks
for is absent.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as dateutil_parser

from spec_engine.core.config import get_settings
from spec_engine.core.errors import EmptyContentError
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_sources import ChunkKind, ContentChunk, RawSource, SourceType

logger = get_logger(__name__)

# "[10:02] @alice: msg", "alice: msg", or "@alice 10:02" on its own line.
# A plain name needs whitespace after the colon, so "https://..." is not a turn.
CHAT_TURN_PATTERN = re.compile(
    r"^(?:\[(?P<time>\d{1,2}:\d{2}(?::\d{2})?)\][ \t]*)?"
    r"(?:@(?P<handle>[\w.\-]+)(?:[ \t]+(?P<clock>\d{1,2}:\d{2}))?[ \t]*(?::|\n)"
    r"|(?P<name>[\w.\-]+)[ \t]*:(?=[ \t]))",
    re.MULTILINE,
)

# Line labels that look like "name:" but are not speakers
NON_SPEAKER_LABELS = frozenset(
    {"note", "notes", "update", "edit", "fyi", "ps", "todo", "eta", "re", "subject", "summary"}
)

TICKET_SECTIONS = [
    "Summary",
    "Description",
    "Acceptance Criteria",
    "Comments",
    "Steps to Reproduce",
    "Expected",
    "Actual",
    "Environment",
    "Notes",
]

TICKET_HEADER_PATTERN = re.compile(
    r"^[ \t]*(?P<header>Summary|Description|Acceptance Criteria|Comments?|Steps to Reproduce"
    r"|Expected(?: Results?| Behaviou?r)?|Actual(?: Results?| Behaviou?r)?|Environment|Notes?)"
    r"[ \t]*:[ \t]*(?P<rest>.*)$",
    re.IGNORECASE | re.MULTILINE,
)

DOCUMENT_HEADING_PATTERN = re.compile(r"^#{1,6}[ \t]+(?P<heading>.+?)[ \t#]*$", re.MULTILINE)

TRANSCRIPT_SPEAKER_PATTERN = re.compile(
    r"^(?P<speaker>[A-Z][A-Za-z ]*?)(?:[ \t]*\((?P<offset>[\d:]+)\))?:[ \t]*",
    re.MULTILINE,
)

PARAGRAPH_BREAK_PATTERN = re.compile(r"\n\s*\n")


def chunk_source(source: RawSource, feature_id: str | None = None) -> list[ContentChunk]:
    """
    Split a raw source into content chunks based on its declared source type.

    Chunks are returned without embeddings; the caller attaches them.

    Args:
        source: Raw source to chunk
        feature_id: Optional feature the chunks are filed under

    Returns:
        Non-empty list of ContentChunks in source order

    Raises:
        EmptyContentError: If no unit reaches CHUNK_MIN_CHARS
    """
    settings = get_settings()

    units = _split_units(source.source_type, source.content or "")
    units = [u for u in units if len(u["content"].strip()) >= settings.CHUNK_MIN_CHARS]

    if not units:
        raise EmptyContentError(
            f"No chunk of at least {settings.CHUNK_MIN_CHARS} chars in {source.source_type.value} source"
        )

    credibility = source_credibility(source)
    timestamp = _parse_timestamp(source.metadata.get("timestamp"))
    total = len(units)

    chunks = []
    for index, unit in enumerate(units):
        metadata: dict[str, Any] = dict(source.metadata)
        metadata.update(unit["metadata"])
        metadata["chunk_index"] = index
        metadata["total_chunks"] = total
        metadata["credibility"] = credibility

        chunks.append(
            ContentChunk(
                id=str(uuid.uuid4()),
                content=unit["content"].strip(),
                chunk_kind=unit["chunk_kind"],
                source_type=source.source_type,
                source_timestamp=timestamp,
                metadata=metadata,
                feature_id=feature_id,
            )
        )

    logger.debug(f"Chunked {source.source_type.value} source into {total} chunks")
    return chunks


def source_credibility(source: RawSource) -> float:
    """Credibility for a source: its override, else the per-type default."""
    if source.credibility_override is not None:
        return source.credibility_override
    defaults = get_settings().SOURCE_CREDIBILITY
    return defaults.get(source.source_type.value, defaults.get(SourceType.OTHER.value, 0.6))


def _split_units(source_type: SourceType, content: str) -> list[dict[str, Any]]:
    if source_type == SourceType.CHAT:
        return _split_chat(content)
    if source_type == SourceType.TICKET:
        return _split_ticket(content)
    if source_type == SourceType.DOCUMENT:
        return _split_document(content)
    if source_type == SourceType.TRANSCRIPT:
        return _split_transcript(content)
    return split_paragraphs(content)


def _unit(content: str, kind: ChunkKind, **metadata: Any) -> dict[str, Any]:
    return {
        "content": content,
        "chunk_kind": kind,
        "metadata": {k: v for k, v in metadata.items() if v is not None},
    }


def _split_chat(content: str) -> list[dict[str, Any]]:
    """One turn chunk per speaker marker; fewer than 2 turns means no conversation."""
    matches = [
        m
        for m in CHAT_TURN_PATTERN.finditer(content)
        if not (m.group("name") and m.group("name").lower() in NON_SPEAKER_LABELS)
    ]
    if len(matches) < 2:
        return split_paragraphs(content)

    units = []
    preamble = content[: matches[0].start()].strip()
    if preamble:
        units.append(_unit(preamble, ChunkKind.PARAGRAPH))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        text = content[match.end() : end].strip()
        speaker = match.group("handle") or match.group("name")
        units.append(
            _unit(
                text,
                ChunkKind.TURN,
                speaker=speaker,
                time=match.group("time") or match.group("clock"),
            )
        )
    return units


def _canonical_ticket_section(header: str) -> str:
    lowered = header.lower()
    for name in TICKET_SECTIONS:
        if lowered.startswith(name.lower().rstrip("s")):
            return name
    return header.title()


def _split_ticket(content: str) -> list[dict[str, Any]]:
    """One chunk per ticket section; text before the first header is the title chunk."""
    matches = list(TICKET_HEADER_PATTERN.finditer(content))
    if not matches:
        return split_paragraphs(content)

    units = []
    preamble = content[: matches[0].start()].strip()
    if preamble:
        units.append(_unit(preamble, ChunkKind.HEADER, section="Title"))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        body = "\n".join(
            part for part in (match.group("rest").strip(), content[match.end() : end].strip()) if part
        )
        units.append(
            _unit(body, ChunkKind.PARAGRAPH, section=_canonical_ticket_section(match.group("header")))
        )
    return units


def _split_document(content: str) -> list[dict[str, Any]]:
    """One chunk per heading section, tagged with the most recent heading."""
    matches = list(DOCUMENT_HEADING_PATTERN.finditer(content))
    if not matches:
        return split_paragraphs(content)

    units = []
    preamble = content[: matches[0].start()].strip()
    if preamble:
        units.append(_unit(preamble, ChunkKind.PARAGRAPH))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        body = content[match.end() : end].strip()
        if body:
            units.append(_unit(body, ChunkKind.PARAGRAPH, section=match.group("heading").strip()))

    if not units:
        return split_paragraphs(content)
    return units


def _split_transcript(content: str) -> list[dict[str, Any]]:
    """One turn chunk per "Speaker:" or "Speaker (00:12):" block."""
    matches = list(TRANSCRIPT_SPEAKER_PATTERN.finditer(content))
    if not matches:
        return split_paragraphs(content)

    units = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        text = content[match.end() : end].strip()
        units.append(
            _unit(
                text,
                ChunkKind.TURN,
                speaker=match.group("speaker").strip(),
                offset=match.group("offset"),
            )
        )
    return units


def _raw_paragraphs(content: str) -> list[str]:
    """Split on blank lines, keeping fenced code blocks whole."""
    paragraphs: list[str] = []
    current: list[str] = []
    in_fence = False

    for line in content.splitlines():
        if line.strip().startswith("```"):
            in_fence = not in_fence
            current.append(line)
            continue
        if not in_fence and not line.strip():
            if current:
                paragraphs.append("\n".join(current))
                current = []
            continue
        current.append(line)

    if current:
        paragraphs.append("\n".join(current))

    return [p.strip("\n") for p in paragraphs if p.strip()]


def _is_code(paragraph: str) -> bool:
    return "```" in paragraph or paragraph.startswith(("    ", "\t"))


def split_paragraphs(content: str, min_chars: int | None = None) -> list[dict[str, Any]]:
    """
    Paragraph chunking: merge short paragraphs until the buffer reaches
    min_chars; code paragraphs flush the buffer and stand alone.
    """
    if min_chars is None:
        min_chars = get_settings().CHUNK_MIN_PARAGRAPH_CHARS

    units = []
    buffer = ""

    for para in _raw_paragraphs(content):
        if _is_code(para):
            if buffer:
                units.append(_unit(buffer, ChunkKind.PARAGRAPH))
                buffer = ""
            units.append(_unit(para, ChunkKind.CODE))
            continue

        para = para.strip()
        buffer = f"{buffer}\n\n{para}" if buffer else para
        if len(buffer) >= min_chars:
            units.append(_unit(buffer, ChunkKind.PARAGRAPH))
            buffer = ""

    if buffer:
        units.append(_unit(buffer, ChunkKind.PARAGRAPH))

    return units


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 source timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = dateutil_parser.isoparse(str(value))
        except (ValueError, OverflowError):
            logger.warning(f"Ignoring unparseable source timestamp: {value!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
