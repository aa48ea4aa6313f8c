from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .models import ExtractionMode, MetadataEntry
from .prompts import TITLE_PREFIX, ModeConfig, resolve_mode

_BULLET_RE = re.compile(r"^[-•*]\s+")
_LINE_NUMBER_RE = re.compile(r"^\d+[.)]\s+")
_QUOTE_RE = re.compile(r"[\"'“”‘’]")


@dataclass
class ParsedChunk:
    entries: List[str] = field(default_factory=list)
    dropped: int = 0


def _nonblank_lines(raw: str) -> List[str]:
    return [line.strip() for line in (raw or "").strip().splitlines() if line.strip()]


def clean_phrase(line: str) -> str:
    cleaned = _BULLET_RE.sub("", line.strip())
    cleaned = _LINE_NUMBER_RE.sub("", cleaned)
    cleaned = _QUOTE_RE.sub("", cleaned)
    return cleaned.strip()


def parse_completion(raw: str, config: ModeConfig) -> ParsedChunk:
    """Turn one completion body into accepted entries for the active mode."""
    lines = _nonblank_lines(raw)
    if config.word_count is None:
        return ParsedChunk(entries=lines)
    parsed = ParsedChunk()
    for line in lines:
        phrase = clean_phrase(line)
        if phrase and config.accepts(phrase):
            parsed.entries.append(phrase)
        else:
            parsed.dropped += 1
    return parsed


def pair_metadata(lines: Iterable[str], config: Optional[ModeConfig] = None) -> List[MetadataEntry]:
    """Group Title:/Meta: lines into display units.

    A Title: line belongs to the Meta: line directly after it. A Meta: line
    without a preceding Title: stands alone. Anything else, including lines
    the mode config rejects, is skipped.
    """
    config = config or resolve_mode(ExtractionMode.METADATA)
    units: List[MetadataEntry] = []
    pending_title: Optional[str] = None
    for raw in lines:
        line = raw.strip()
        if line.startswith(TITLE_PREFIX):
            pending_title = line
            continue
        if config.accepts(line):
            units.append(MetadataEntry(meta=line, title=pending_title))
        pending_title = None
    return units


def format_entries(entries: Sequence[str], mode: ExtractionMode) -> str:
    if mode is not ExtractionMode.METADATA:
        return "\n".join(entries)
    units = pair_metadata(entries, resolve_mode(mode))
    if not units:
        return "\n".join(entries)
    return "\n\n".join("\n".join(unit.lines()) for unit in units)
