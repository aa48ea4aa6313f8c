from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

ERROR_ENTRY_PREFIX = "Error: "


class ExtractionMode(str, Enum):
    """Output grammars supported by the extractor."""

    SHORT_PHRASE = "3-keywords"
    LONG_PHRASE = "4-keywords"
    METADATA = "metadata"

    @classmethod
    def from_flag(cls, flag: str) -> "ExtractionMode":
        normalized = flag.strip().lower()
        for mode in cls:
            if mode.value == normalized or mode.name.lower() == normalized:
                return mode
        raise ValueError(f"Unsupported extraction mode: {flag}")

    @property
    def is_phrase(self) -> bool:
        return self is not ExtractionMode.METADATA


@dataclass
class ExtractionRequest:
    script: str
    model: str
    mode: ExtractionMode = ExtractionMode.SHORT_PHRASE
    batch_size: int = 0
    delay: Optional[float] = None
    knowledge_base_path: Optional[Path] = None
    schema_tool_path: Optional[Path] = None
    log_dir: Optional[Path] = None


@dataclass(frozen=True)
class ChunkOutcome:
    index: int
    total: int
    entries: List[str]
    dropped: int = 0


@dataclass(frozen=True)
class MetadataEntry:
    meta: str
    title: Optional[str] = None

    def lines(self) -> List[str]:
        if self.title:
            return [self.title, self.meta]
        return [self.meta]


@dataclass
class ExtractionResult:
    sentence_count: int
    entry_count: int
    entries: List[str] = field(default_factory=list)
    mode: ExtractionMode = ExtractionMode.SHORT_PHRASE
    dropped_lines: int = 0
    error: Optional[str] = None
    cancelled: bool = False

    @classmethod
    def failed(cls, message: str, mode: ExtractionMode) -> "ExtractionResult":
        """Degraded result: one synthetic entry describing the error, counts zeroed."""
        return cls(
            sentence_count=0,
            entry_count=0,
            entries=[f"{ERROR_ENTRY_PREFIX}{message}"],
            mode=mode,
            error=message,
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        if self.error:
            return f"Extraction failed: {self.error}"
        line = f"Sentences processed: {self.sentence_count} | Keywords generated: {self.entry_count}"
        if self.cancelled:
            line += " (cancelled)"
        return line

    def to_text(self) -> str:
        return "\n".join(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "mode": self.mode.value,
            "sentence_count": self.sentence_count,
            "entry_count": self.entry_count,
            "dropped_lines": self.dropped_lines,
            "cancelled": self.cancelled,
            "entries": list(self.entries),
        }
        if self.error:
            payload["error"] = self.error
        return payload
