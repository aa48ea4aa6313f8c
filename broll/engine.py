from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .completion_client import CompletionClient, CompletionError, CompletionSettings
from .models import ChunkOutcome, ExtractionRequest, ExtractionResult
from .parser import parse_completion
from .prompts import ModeConfig, resolve_mode
from .text import chunk_sentences, split_sentences

LogCallback = Callable[[str, str], None]
ProgressCallback = Callable[[int, int], None]

logger = logging.getLogger(__name__)


class EmptyScript(ValueError):
    """Raised when the script has no text to analyse."""


def read_side_channel(path: Optional[Path]) -> str:
    if path is None:
        return ""
    return Path(path).expanduser().read_text(encoding="utf-8", errors="replace")


class KeywordExtractor:
    """Runs one extraction: split, batch, query each chunk in turn, aggregate."""

    def __init__(
        self,
        request: ExtractionRequest,
        client: Optional[CompletionClient] = None,
        log_callback: Optional[LogCallback] = None,
    ):
        if not (request.script or "").strip():
            raise EmptyScript("Please enter a script.")
        if not (request.model or "").strip():
            raise ValueError("Model identifier is required.")
        self.request = request
        self.config: ModeConfig = resolve_mode(request.mode)
        self._client = client
        self._log_callback = log_callback
        self._log_path: Optional[Path] = None
        if request.log_dir is not None:
            log_dir = Path(request.log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self._log_path = log_dir / f"extract_{timestamp}.log"
        self.sentences: List[str] = []
        self.chunks: List[str] = []
        self.dropped_lines = 0

    @property
    def log_path(self) -> Optional[Path]:
        return self._log_path

    @property
    def batch_size(self) -> int:
        if self.request.batch_size and self.request.batch_size > 0:
            return self.request.batch_size
        return self.config.batch_size

    @property
    def delay(self) -> float:
        if self.request.delay is None:
            return self.config.request_delay
        return max(0.0, float(self.request.delay))

    @property
    def client(self) -> CompletionClient:
        if self._client is None:
            self._client = CompletionClient(CompletionSettings(model=self.request.model))
        return self._client

    def _log(self, level: str, message: str) -> None:
        self._append_log_line(level, message)
        if self._log_callback:
            try:
                self._log_callback(level, message)
            except Exception:  # pragma: no cover
                logger.exception("Failed to emit log callback.")
        else:
            getattr(logger, level, logger.info)(message)

    def _append_log_line(self, level: str, message: str) -> None:
        if self._log_path is None:
            return
        timestamp = datetime.now().isoformat(timespec="seconds")
        try:
            with self._log_path.open("a", encoding="utf-8") as handle:
                handle.write(f"{timestamp} [{level.upper()}] {message}\n")
        except OSError:
            logger.exception("Failed to write extraction log.")

    def prepare(self) -> List[str]:
        self.sentences = split_sentences(self.request.script)
        self.chunks = chunk_sentences(self.sentences, self.batch_size)
        self._log(
            "info",
            f"Found {len(self.sentences)} sentences. Created {len(self.chunks)} chunk(s) "
            f"of up to {self.batch_size}.",
        )
        return self.chunks

    def process_iter(self, cancel_event: Optional[threading.Event] = None) -> Iterator[ChunkOutcome]:
        """Yield one outcome per chunk. Completion errors propagate and end the run."""
        chunks = self.prepare()
        total = len(chunks)
        if not total:
            self._log("warning", "No sentences long enough to process.")
            return
        knowledge_base = read_side_channel(self.request.knowledge_base_path)
        schema_tool = read_side_channel(self.request.schema_tool_path)
        for idx, chunk in enumerate(chunks, start=1):
            if cancel_event is not None and cancel_event.is_set():
                self._log("warning", f"Cancelled before chunk {idx} of {total}.")
                return
            self._log("info", f"Processing chunk {idx} of {total}...")
            raw = self.client.complete(
                self.config,
                chunk,
                knowledge_base=knowledge_base,
                schema_tool=schema_tool,
            )
            parsed = parse_completion(raw, self.config)
            self.dropped_lines += parsed.dropped
            if parsed.dropped:
                logger.debug("Chunk %s: dropped %s malformed line(s).", idx, parsed.dropped)
            yield ChunkOutcome(index=idx, total=total, entries=parsed.entries, dropped=parsed.dropped)
            if idx < total and self._wait(cancel_event):
                self._log("warning", f"Cancelled after chunk {idx} of {total}.")
                return

    def _wait(self, cancel_event: Optional[threading.Event]) -> bool:
        """Pause between requests; returns True when the run was cancelled meanwhile."""
        if cancel_event is not None:
            return cancel_event.wait(self.delay)
        self._sleep(self.delay)
        return False

    def _sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def run(
        self,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ExtractionResult:
        self.dropped_lines = 0
        entries: List[str] = []
        processed = 0
        try:
            for outcome in self.process_iter(cancel_event):
                entries.extend(outcome.entries)
                processed = outcome.index
                if progress_callback:
                    progress_callback(outcome.index, outcome.total)
        except (CompletionError, OSError) as exc:
            self._log("error", f"Extraction failed: {exc}")
            return ExtractionResult.failed(str(exc), self.config.mode)
        entries = [entry for entry in entries if entry.strip()]
        cancelled = bool(cancel_event is not None and cancel_event.is_set() and processed < len(self.chunks))
        result = ExtractionResult(
            sentence_count=len(self.sentences),
            entry_count=len(entries),
            entries=entries,
            mode=self.config.mode,
            dropped_lines=self.dropped_lines,
            cancelled=cancelled,
        )
        level = "warning" if cancelled else "success"
        self._log(level, result.summary())
        return result
