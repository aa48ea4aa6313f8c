from broll.models import ExtractionMode, MetadataEntry
from broll.parser import format_entries, pair_metadata, parse_completion
from broll.prompts import resolve_mode

METADATA_BODY = (
    "Title: Avoiding Affection\n"
    "Meta: woman, children, sadness\n"
    "\n"
    "Meta: scientist, lab, focused"
)


def test_three_word_mode_strips_bullets_and_drops_short_lines():
    raw = "doctor pauses spotlight\ntoo short\n- woman gargles mirror"
    parsed = parse_completion(raw, resolve_mode(ExtractionMode.SHORT_PHRASE))
    assert parsed.entries == ["doctor pauses spotlight", "woman gargles mirror"]
    assert parsed.dropped == 1


def test_phrase_lines_lose_quotes_and_other_bullets():
    raw = '\n  "hands reveal macro"  \n• clock ticks hallway\n* teeth shine silhouette\n\n'
    parsed = parse_completion(raw, resolve_mode(ExtractionMode.SHORT_PHRASE))
    assert parsed.entries == ["hands reveal macro", "clock ticks hallway", "teeth shine silhouette"]
    assert parsed.dropped == 0


def test_four_word_mode_keeps_only_four_tokens():
    raw = "doctor pauses lab spotlight\nwoman gargles mirror\nHere are your keywords for this chunk:"
    parsed = parse_completion(raw, resolve_mode(ExtractionMode.LONG_PHRASE))
    assert parsed.entries == ["doctor pauses lab spotlight"]
    assert parsed.dropped == 2


def test_blank_body_yields_nothing():
    parsed = parse_completion("  \n\n ", resolve_mode(ExtractionMode.SHORT_PHRASE))
    assert parsed.entries == []
    assert parsed.dropped == 0


def test_metadata_lines_kept_verbatim_in_order():
    parsed = parse_completion(METADATA_BODY, resolve_mode(ExtractionMode.METADATA))
    assert parsed.entries == [
        "Title: Avoiding Affection",
        "Meta: woman, children, sadness",
        "Meta: scientist, lab, focused",
    ]
    assert parsed.dropped == 0


def test_pairing_attaches_title_to_following_meta():
    lines = parse_completion(METADATA_BODY, resolve_mode(ExtractionMode.METADATA)).entries
    assert pair_metadata(lines) == [
        MetadataEntry(meta="Meta: woman, children, sadness", title="Title: Avoiding Affection"),
        MetadataEntry(meta="Meta: scientist, lab, focused"),
    ]


def test_pairing_ignores_titles_not_directly_before_meta():
    units = pair_metadata(["Title: First", "Title: Second", "Meta: a, b", "Title: Lost", "note", "Meta: c"])
    assert units == [
        MetadataEntry(meta="Meta: a, b", title="Title: Second"),
        MetadataEntry(meta="Meta: c"),
    ]


def test_format_entries_groups_metadata_blocks():
    lines = parse_completion(METADATA_BODY, resolve_mode(ExtractionMode.METADATA)).entries
    assert format_entries(lines, ExtractionMode.METADATA) == (
        "Title: Avoiding Affection\nMeta: woman, children, sadness\n\nMeta: scientist, lab, focused"
    )
    assert format_entries(["a b c", "d e f"], ExtractionMode.SHORT_PHRASE) == "a b c\nd e f"


def test_format_entries_passes_error_line_through():
    assert format_entries(["Error: boom"], ExtractionMode.METADATA) == "Error: boom"


def test_numbered_phrase_lines_lose_their_numbers():
    raw = "1. doctor pauses spotlight\n2) woman gargles mirror\n10. hands reveal macro"
    parsed = parse_completion(raw, resolve_mode(ExtractionMode.SHORT_PHRASE))
    assert parsed.entries == ["doctor pauses spotlight", "woman gargles mirror", "hands reveal macro"]
    assert parsed.dropped == 0


def test_numbered_three_word_line_is_dropped_in_four_word_mode():
    raw = "1. doctor pauses spotlight\n2. doctor pauses lab spotlight"
    parsed = parse_completion(raw, resolve_mode(ExtractionMode.LONG_PHRASE))
    assert parsed.entries == ["doctor pauses lab spotlight"]
    assert parsed.dropped == 1


def test_pairing_uses_the_mode_acceptance_check():
    class SceneOnly:
        def accepts(self, entry):
            return entry.startswith("Meta: scene")

    units = pair_metadata(["Title: Kept", "Meta: scene, lab", "Title: Gone", "Meta: crowd, street"], SceneOnly())
    assert units == [MetadataEntry(meta="Meta: scene, lab", title="Title: Kept")]
