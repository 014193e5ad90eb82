# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-12
# Updated: 2026-02-15
# Description: test_document_chunker.py
# -----------------------------------------------------------------------------
import types

import pytest

from chunking.DocumentChunker import DocumentChunker, estimate_tokens


def _reconstruct(chunks, overlap):
    return chunks[0].text + "".join(c.text[overlap:] for c in chunks[1:])


def test_empty_text_yields_no_chunks():
    assert list(DocumentChunker().chunk("")) == []


def test_short_text_is_single_chunk():
    text = "A short paragraph about photosynthesis."
    chunks = list(DocumentChunker(max_size=200, overlap=20).chunk(text))
    assert len(chunks) == 1
    assert chunks[0].text == text
    assert (chunks[0].start_offset, chunks[0].end_offset) == (0, len(text))


def test_thousand_chars_gives_six_chunks_with_matching_overlaps():
    text = "abcdefghij" * 100
    chunks = list(DocumentChunker(max_size=200, overlap=20).chunk(text))

    assert len(chunks) == 6
    for prev, nxt in zip(chunks, chunks[1:]):
        assert prev.text[-20:] == nxt.text[:20]
        assert nxt.start_offset == prev.end_offset - 20
    assert _reconstruct(chunks, 20) == text


def test_prefers_paragraph_then_sentence_boundaries():
    para1 = "First paragraph sentence one. Sentence two is here."
    para2 = "Second paragraph continues with more words and more words."
    text = para1 + "\n\n" + para2 + " " + "tail " * 20
    chunker = DocumentChunker(max_size=70, overlap=5, boundary_tolerance=30)

    first = next(chunker.chunk(text))
    assert first.text.endswith("\n\n")
    assert first.text.startswith(para1)


def test_sentence_boundary_used_when_no_paragraph():
    text = "One two three four. Five six seven eight nine ten eleven twelve thirteen"
    chunker = DocumentChunker(max_size=40, overlap=4, boundary_tolerance=25)

    first = next(chunker.chunk(text))
    assert first.text == "One two three four. "


def test_chunks_cover_text_and_reconstruct():
    text = ("The mitochondria is the powerhouse of the cell. " * 30) + "\n\n" + ("Energy flows. " * 40)
    chunker = DocumentChunker(max_size=150, overlap=25)
    chunks = list(chunker.chunk(text))

    assert chunks[0].start_offset == 0
    assert chunks[-1].end_offset == len(text)
    for c in chunks:
        assert len(c.text) <= 150
        assert c.text == text[c.start_offset:c.end_offset]
    assert _reconstruct(chunks, 25) == text
    assert [c.index for c in chunks] == list(range(len(chunks)))


def test_chunk_is_lazy():
    gen = DocumentChunker(max_size=50, overlap=5).chunk("x" * 10_000)
    assert isinstance(gen, types.GeneratorType)
    assert next(gen).index == 0


@pytest.mark.parametrize("max_size,overlap", [(0, 0), (100, -1), (100, 100), (100, 150)])
def test_invalid_parameters_raise(max_size, overlap):
    with pytest.raises(ValueError):
        list(DocumentChunker(max_size=200, overlap=10).chunk("some text", max_size=max_size, overlap=overlap))


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("a" * 400) == 100
    assert estimate_tokens("a" * 401) == 101
