"""Cinematic b-roll keyword extraction powered by a chat-completion service."""

from .completion_client import (
    CompletionClient,
    CompletionError,
    CompletionSettings,
    MalformedResponse,
    TransportFailure,
)
from .engine import EmptyScript, KeywordExtractor
from .models import ExtractionMode, ExtractionRequest, ExtractionResult, MetadataEntry
from .prompts import ModeConfig, resolve_mode

__all__ = [
    "CompletionClient",
    "CompletionError",
    "CompletionSettings",
    "EmptyScript",
    "ExtractionMode",
    "ExtractionRequest",
    "ExtractionResult",
    "KeywordExtractor",
    "MalformedResponse",
    "MetadataEntry",
    "ModeConfig",
    "TransportFailure",
    "resolve_mode",
]
