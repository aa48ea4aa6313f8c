import pytest

from broll.text import (
    batch_sentences,
    chunk_sentences,
    expected_chunk_count,
    split_sentences,
)


def test_split_drops_numbering_and_short_fragments():
    script = "1. The lab was quiet that night. 2. She left without a word."
    assert split_sentences(script) == ["The lab was quiet that night", "She left without a word"]


def test_split_handles_repeated_terminators():
    script = "Wait!! Really?? The results came back positive... Nobody expected that outcome!"
    assert split_sentences(script) == [
        "The results came back positive",
        "Nobody expected that outcome",
    ]


def test_split_excludes_long_bare_numbers():
    assert split_sentences("12345678901. 998877665544). A real sentence sits here.") == [
        "A real sentence sits here",
    ]


def test_split_keeps_fragment_just_over_threshold():
    assert split_sentences("abcdefghij. abcdefghijk.") == ["abcdefghijk"]


@pytest.mark.parametrize("script", ["", "   ", "Hi. Ok. 1. 2.", "\n\n!!!???..."])
def test_split_noise_only_yields_nothing(script):
    assert split_sentences(script) == []


def test_chunks_partition_sentences_in_order():
    sentences = [f"Sentence number {i} is long enough" for i in range(23)]
    groups = batch_sentences(sentences, 10)
    assert [len(group) for group in groups] == [10, 10, 3]
    assert [s for group in groups for s in group] == sentences
    assert len(chunk_sentences(sentences, 10)) == expected_chunk_count(23, 10) == 3


def test_chunk_text_reinserts_punctuation():
    chunks = chunk_sentences(["Alpha sentence one", "Beta sentence two", "Gamma sentence three"], 2)
    assert chunks == ["Alpha sentence one. Beta sentence two.", "Gamma sentence three."]


def test_no_sentences_no_chunks():
    assert chunk_sentences([], 8) == []
    assert expected_chunk_count(0, 8) == 0


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        chunk_sentences(["Some sentence here"], 0)
