from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Union

from .models import ExtractionMode

DEFAULT_TEMPERATURE = 0.7
PHRASE_MAX_TOKENS = 1000
METADATA_MAX_TOKENS = 1500
PHRASE_BATCH_SIZE = 10
METADATA_BATCH_SIZE = 8
PHRASE_REQUEST_DELAY = 0.5
METADATA_REQUEST_DELAY = 0.8
META_PREFIX = "Meta:"
TITLE_PREFIX = "Title:"

_VISUAL_MODIFIERS = (
    "close-up, spotlight, macro, silhouette, backlight, glow, hallway, mirror, rain, alley, "
    "shadows, fog, neon, doorway, flicker, drizzle"
)

SHORT_PHRASE_PROMPT = f"""You are a Cinematic B-roll Keyword Extractor.

OBJECTIVE: Generate one cinematic b-roll keyword phrase per sentence from VSL scripts.

RULES:
- Format: subject + action + cinematic/emotional modifier
- Every phrase has exactly 3 words
- Be emotionally expressive and visually specific
- Avoid clichés like "sad woman" or "person thinking"
- Make search-ready for cinematic stock b-roll
- Use only valid visual modifiers: {_VISUAL_MODIFIERS}
- Avoid abstract nouns, themes, or non-visual terms
- Focus on tangible, observable imagery

OUTPUT: Return ONLY a clean list of phrases, one per line. No bullets, numbers, or explanations.

Examples:
doctor pauses spotlight
woman gargles mirror
hands reveal macro
gums bleed close-up
teeth shine silhouette
mouth opens backlight
scientist types shadows
bacteria spreads glow
child sips sink
clock ticks hallway"""

LONG_PHRASE_PROMPT = f"""You are a Cinematic B-roll Keyword Extractor.

OBJECTIVE: Generate one cinematic b-roll keyword phrase per sentence from VSL scripts.

RULES:
- Format: subject + action + object or setting + cinematic/emotional modifier
- Every phrase has exactly 4 words
- Be emotionally expressive and visually specific
- Avoid clichés like "sad woman crying alone" or "person thinking hard"
- Make search-ready for cinematic stock b-roll
- Use only valid visual modifiers: {_VISUAL_MODIFIERS}
- Avoid abstract nouns, themes, or non-visual terms
- Focus on tangible, observable imagery

OUTPUT: Return ONLY a clean list of phrases, one per line. No bullets, numbers, or explanations.

Examples:
doctor pauses lab spotlight
woman gargles bathroom mirror
hands reveal pills macro
gums bleed sink close-up
mother hugs child doorway
scientist types keyboard shadows
bacteria spreads slide glow
man walks street rain
clock ticks empty hallway
nurse checks chart neon"""

METADATA_PROMPT = """You are a Stock Footage Metadata Writer for VSL scripts.

OBJECTIVE: For each sentence, describe the b-roll shot an editor should search for.

RULES:
- For every shot write a "Meta:" line with 3 to 8 comma-separated search tags
  (subject, setting, action, emotion, lighting)
- When a sentence opens a new scene, put a "Title:" line with a short scene title
  directly above its "Meta:" line
- Never put anything between a "Title:" line and its "Meta:" line
- Tags must be concrete and visual; avoid abstract themes
- Separate shots with a blank line

OUTPUT: Return ONLY the Title/Meta lines. No numbering, commentary, or explanations.

Examples:
Title: Avoiding Affection
Meta: woman, children, sadness, living room, soft light

Meta: scientist, lab, focused, microscope, cold light

Title: Morning Routine
Meta: man, bathroom mirror, brushing teeth, tired, window light"""


@dataclass(frozen=True)
class ModeConfig:
    """Everything a run needs to know about one extraction mode."""

    mode: ExtractionMode
    system_prompt: str
    user_template: str
    temperature: float
    max_tokens: int
    batch_size: int
    request_delay: float
    word_count: Optional[int] = None

    def user_prompt(self, chunk: str) -> str:
        return self.user_template.format(chunk=chunk)

    def accepts(self, entry: str) -> bool:
        """Shape check applied to a parsed line (phrase modes) or a paired unit (metadata)."""
        text = (entry or "").strip()
        if not text:
            return False
        if self.word_count is not None:
            return len(text.split()) == self.word_count
        return any(line.strip().startswith(META_PREFIX) for line in text.splitlines())


_MODE_CONFIGS: Dict[ExtractionMode, ModeConfig] = {
    ExtractionMode.SHORT_PHRASE: ModeConfig(
        mode=ExtractionMode.SHORT_PHRASE,
        system_prompt=SHORT_PHRASE_PROMPT,
        user_template="Extract 3-word cinematic keywords: {chunk}",
        temperature=DEFAULT_TEMPERATURE,
        max_tokens=PHRASE_MAX_TOKENS,
        batch_size=PHRASE_BATCH_SIZE,
        request_delay=PHRASE_REQUEST_DELAY,
        word_count=3,
    ),
    ExtractionMode.LONG_PHRASE: ModeConfig(
        mode=ExtractionMode.LONG_PHRASE,
        system_prompt=LONG_PHRASE_PROMPT,
        user_template="Extract 4-word cinematic keywords: {chunk}",
        temperature=DEFAULT_TEMPERATURE,
        max_tokens=PHRASE_MAX_TOKENS,
        batch_size=PHRASE_BATCH_SIZE,
        request_delay=PHRASE_REQUEST_DELAY,
        word_count=4,
    ),
    ExtractionMode.METADATA: ModeConfig(
        mode=ExtractionMode.METADATA,
        system_prompt=METADATA_PROMPT,
        user_template="Write Title/Meta b-roll metadata for these sentences: {chunk}",
        temperature=DEFAULT_TEMPERATURE,
        max_tokens=METADATA_MAX_TOKENS,
        batch_size=METADATA_BATCH_SIZE,
        request_delay=METADATA_REQUEST_DELAY,
    ),
}


def resolve_mode(mode: Union[ExtractionMode, str]) -> ModeConfig:
    if not isinstance(mode, ExtractionMode):
        mode = ExtractionMode.from_flag(mode)
    return _MODE_CONFIGS[mode]
