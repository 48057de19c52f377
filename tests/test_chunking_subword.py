"""Tests for long-text chunking and B-/I- sub-word merging."""

from __future__ import annotations

import pytest

from core.detection.chunking import (
    TextChunk,
    TextChunker,
    estimate_tokens,
    merge_chunk_predictions,
    split_sentences,
)
from core.detection.subword_merge import MLToken, merge_subwords, strip_bio


def _tok(label: str, text: str, word: str, score: float = 0.9, offset: int = 0) -> MLToken:
    start = text.index(word.lstrip("#"), offset)
    return MLToken(label, word, score, start, start + len(word.lstrip("#")))


# ---------------------------------------------------------------------------
# Sentence splitting
# ---------------------------------------------------------------------------

class TestSplitSentences:
    def test_basic(self):
        text = "First one. Second one! Third?"
        spans = split_sentences(text)
        assert [text[s:e] for s, e in spans] == ["First one. ", "Second one! ", "Third?"]

    def test_abbreviation_not_a_boundary(self):
        text = "Ask Dr. Meier today. Then leave."
        spans = split_sentences(text)
        assert [text[s:e] for s, e in spans] == ["Ask Dr. Meier today. ", "Then leave."]

    def test_lowercase_after_dot_not_a_boundary(self):
        text = "Version 2.0 is out. it works"
        assert len(split_sentences(text)) == 1

    def test_newline_is_a_boundary(self):
        text = "Line one.\nline two"
        spans = split_sentences(text)
        assert [text[s:e] for s, e in spans] == ["Line one.\n", "line two"]

    def test_spans_cover_text(self):
        text = "A b. C d.  "
        spans = split_sentences(text)
        assert spans[0][0] == 0
        assert spans[-1][1] == len(text)


# ---------------------------------------------------------------------------
# Chunker
# ---------------------------------------------------------------------------

class TestChunker:
    def test_estimate(self):
        assert estimate_tokens("abcd" * 10) == 10
        assert estimate_tokens("a b c d e") == 5

    def test_short_text_single_chunk(self):
        chunks = TextChunker().chunk("Short text.")
        assert chunks == [TextChunk(text="Short text.", start=0, end=11, index=0)]

    def test_empty(self):
        assert TextChunker().chunk("") == []

    def test_overlap_must_be_smaller(self):
        with pytest.raises(ValueError):
            TextChunker(max_tokens=10, overlap_tokens=10)

    def test_long_text_windows_within_budget(self):
        text = "Anna Muster lives in Bern. " * 100
        chunker = TextChunker(max_tokens=64, overlap_tokens=16)
        chunks = chunker.chunk(text)
        assert len(chunks) > 1
        for chunk in chunks:
            assert text[chunk.start:chunk.end] == chunk.text
            assert estimate_tokens(chunk.text) <= 64
        assert chunks[0].start == 0
        assert chunks[-1].end == len(text)
        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_consecutive_chunks_overlap(self):
        text = "Anna Muster lives in Bern. " * 100
        chunks = TextChunker(max_tokens=64, overlap_tokens=16).chunk(text)
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.start < prev.end
            assert nxt.start > prev.start

    def test_oversized_sentence_hard_split(self):
        text = "word " * 400
        chunks = TextChunker(max_tokens=50, overlap_tokens=5).chunk(text)
        assert len(chunks) > 1
        assert all(estimate_tokens(c.text) <= 50 for c in chunks)

    def test_custom_tokenizer(self):
        chunker = TextChunker(max_tokens=3, overlap_tokens=1, tokenizer=lambda s: len(s.split()))
        assert chunker.needs_chunking("one two three four")
        assert not chunker.needs_chunking("one two three")


class TestMergeChunkPredictions:
    def test_shift_to_document_offsets(self):
        chunk = TextChunk(text="Anna", start=100, end=104, index=1)
        out = merge_chunk_predictions([(chunk, [MLToken("B-PER", "Anna", 0.9, 0, 4)])])
        assert (out[0].start, out[0].end) == (100, 104)

    def test_overlap_duplicates_collapse(self):
        a = TextChunk(text="x" * 50, start=0, end=50, index=0)
        b = TextChunk(text="x" * 50, start=30, end=80, index=1)
        out = merge_chunk_predictions([
            (a, [MLToken("B-PER", "Anna", 0.8, 40, 44)]),
            (b, [MLToken("B-PER", "Anna", 0.95, 10, 14)]),
        ])
        assert len(out) == 1
        assert out[0].score == 0.95
        assert (out[0].start, out[0].end) == (40, 44)

    def test_different_labels_kept(self):
        chunk = TextChunk(text="x" * 20, start=0, end=20, index=0)
        out = merge_chunk_predictions([(chunk, [
            MLToken("B-PER", "Anna", 0.8, 0, 4),
            MLToken("B-LOC", "Anna", 0.7, 0, 4),
        ])])
        assert len(out) == 2


# ---------------------------------------------------------------------------
# Sub-word merge
# ---------------------------------------------------------------------------

class TestStripBio:
    @pytest.mark.parametrize("label,expected", [
        ("B-PER", "PER"), ("I-LOC", "LOC"), ("PER", "PER"), ("O", "O"), ("E-ORG", "ORG"),
    ])
    def test_strip(self, label, expected):
        assert strip_bio(label) == expected


class TestMergeSubwords:
    def test_b_i_sequence_merged(self):
        text = "Call Jean Dupont now"
        tokens = [_tok("B-PER", text, "Jean", 0.9), _tok("I-PER", text, "Dupont", 0.7)]
        merged = merge_subwords(tokens, text)
        assert len(merged) == 1
        assert merged[0].text == "Jean Dupont"
        assert merged[0].label == "PER"
        assert merged[0].score == pytest.approx(0.8)
        assert merged[0].pieces == 2

    def test_wordpiece_continuation(self):
        text = "Jeanne"
        tokens = [MLToken("B-PER", "Jean", 0.9, 0, 4), MLToken("B-PER", "##ne", 0.9, 4, 6)]
        assert [m.text for m in merge_subwords(tokens, text)] == ["Jeanne"]

    def test_new_b_starts_new_entity(self):
        text = "Anna Bern"
        tokens = [MLToken("B-PER", "Anna", 0.9, 0, 4), MLToken("B-PER", "Bern", 0.9, 5, 9)]
        assert [m.text for m in merge_subwords(tokens, text)] == ["Anna", "Bern"]

    def test_label_change_splits(self):
        text = "Anna Bern"
        tokens = [MLToken("B-PER", "Anna", 0.9, 0, 4), MLToken("I-LOC", "Bern", 0.9, 5, 9)]
        assert [m.label for m in merge_subwords(tokens, text)] == ["PER", "LOC"]

    def test_gap_too_wide(self):
        text = "Anna          Muster"
        tokens = [MLToken("B-PER", "Anna", 0.9, 0, 4), MLToken("I-PER", "Muster", 0.9, 14, 20)]
        assert len(merge_subwords(tokens, text, max_gap=5)) == 2

    def test_outside_tokens_and_short_spans_dropped(self):
        text = "A is here"
        tokens = [MLToken("B-PER", "A", 0.9, 0, 1), MLToken("O", "is", 0.99, 2, 4)]
        assert merge_subwords(tokens, text) == []

    def test_unsorted_input(self):
        text = "Jean Dupont"
        tokens = [MLToken("I-PER", "Dupont", 0.8, 5, 11), MLToken("B-PER", "Jean", 0.8, 0, 4)]
        assert [m.text for m in merge_subwords(tokens, text)] == ["Jean Dupont"]

    def test_from_raw_aggregated_label(self):
        tok = MLToken.from_raw({"entity_group": "PER", "word": "Anna", "score": 0.5, "start": 1, "end": 5})
        assert tok == MLToken("PER", "Anna", 0.5, 1, 5)
