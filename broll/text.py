from __future__ import annotations

import math
import re
from typing import Iterable, Iterator, List, Sequence

MIN_SENTENCE_LENGTH = 10

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_BARE_NUMBER_RE = re.compile(r"^\d+[.):\]]*$")


def split_sentences(script: str) -> List[str]:
    """Break a script into trimmed sentences, dropping short fragments and list numbering."""
    sentences: List[str] = []
    for fragment in _SENTENCE_SPLIT_RE.split(script or ""):
        candidate = fragment.strip()
        if len(candidate) <= MIN_SENTENCE_LENGTH:
            continue
        if _BARE_NUMBER_RE.match(candidate):
            continue
        sentences.append(candidate)
    return sentences


def chunked(sentences: Iterable[str], size: int) -> Iterator[List[str]]:
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}.")
    bucket: List[str] = []
    for sentence in sentences:
        if len(bucket) >= size:
            yield bucket
            bucket = []
        bucket.append(sentence)
    if bucket:
        yield bucket


def batch_sentences(sentences: Sequence[str], size: int) -> List[List[str]]:
    return list(chunked(sentences, size))


def join_chunk(sentences: Sequence[str]) -> str:
    # Splitting consumed the terminal punctuation; put a period back for the model.
    return ". ".join(sentences) + "."


def chunk_sentences(sentences: Sequence[str], size: int) -> List[str]:
    """Group sentences into request-sized text blobs, preserving order."""
    return [join_chunk(group) for group in chunked(sentences, size)]


def expected_chunk_count(sentence_count: int, size: int) -> int:
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}.")
    return math.ceil(sentence_count / size)
