"""
Unit Tests — TextChunker
═════════════════════════
Pure-function tests; no I/O, no fixtures beyond plain dicts of page text.

Coverage targets:
  ✅ Empty / whitespace-only input → no chunks
  ✅ Every chunk within max_tokens
  ✅ Indices are 0..n-1 in order
  ✅ Overlap seed is an exact suffix of the previous chunk
  ✅ Every paragraph lands in at least one chunk
  ✅ Page ranges follow the source pages
  ✅ Section headers tag chunks (declarations, coverage_form)
  ✅ Oversized single "word" is hard-cut and still within budget
  ✅ Deterministic output for identical input
  ✅ Randomised input: new_text of all chunks reconstructs the source (modulo whitespace)
  ✅ Word-slice overlap seeds when no whole paragraph fits the overlap budget
  ✅ ChunkingOptions rejects inconsistent budgets
"""

from __future__ import annotations

import random
import re
import string

import pytest

from docintel.core.config import ChunkingOptions
from docintel.processing.chunking import (
    TextChunker,
    detect_section_type,
    estimate_tokens,
)

OPTIONS = ChunkingOptions(target_tokens=60, max_tokens=100, overlap_tokens=15)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _para(i: int, words: int = 20) -> str:
    """~190 chars / ~48 tokens of unique text."""
    return f"Clause {i}: " + " ".join(f"term{i}x{j}" for j in range(words)) + "."


def _pages(paragraphs_per_page: int = 3, page_count: int = 3) -> dict[int, str]:
    pages: dict[int, str] = {}
    n = 0
    for page in range(1, page_count + 1):
        paras = []
        for _ in range(paragraphs_per_page):
            paras.append(_para(n))
            n += 1
        pages[page] = "\n\n".join(paras)
    return pages


# ─────────────────────────────────────────────────────────────────────────────
# Token estimation + section detection
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestHelpers:

    def test_estimate_tokens_is_ceil_of_quarter_length(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    @pytest.mark.parametrize("paragraph,expected", [
        ("DECLARATIONS\nPolicy Number: GL-1", "declarations"),
        ("SECTION II - LIABILITY COVERAGE", "coverage_form"),
        ("EXCLUSIONS", "exclusions"),
        ("ENDORSEMENT No. 4 - Additional Insured", None),
        ("The insured must notify us promptly.", None),
    ])
    def test_detect_section_type(self, paragraph, expected):
        assert detect_section_type(paragraph) == expected

    def test_options_reject_overlap_not_below_target(self):
        with pytest.raises(ValueError):
            ChunkingOptions(target_tokens=100, max_tokens=200, overlap_tokens=100)

    def test_options_reject_target_above_max(self):
        with pytest.raises(ValueError):
            ChunkingOptions(target_tokens=300, max_tokens=200, overlap_tokens=10)


# ─────────────────────────────────────────────────────────────────────────────
# Chunk invariants
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestChunkInvariants:

    def test_empty_input_produces_no_chunks(self):
        chunker = TextChunker(OPTIONS)
        assert chunker.chunk({}) == []
        assert chunker.chunk({1: "", 2: "   \n\n  "}) == []

    def test_every_chunk_within_max_tokens(self):
        chunks = TextChunker(OPTIONS).chunk(_pages())
        assert len(chunks) > 1
        for chunk in chunks:
            assert chunk.estimated_tokens <= OPTIONS.max_tokens
            assert chunk.estimated_tokens == estimate_tokens(chunk.text)

    def test_indices_are_sequential(self):
        chunks = TextChunker(OPTIONS).chunk(_pages())
        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_overlap_is_suffix_of_previous_chunk(self):
        chunks = TextChunker(OPTIONS).chunk(_pages())
        assert chunks[0].overlap_chars == 0
        assert any(c.overlap_chars > 0 for c in chunks[1:])
        for prev, cur in zip(chunks, chunks[1:]):
            seed = cur.text[: cur.overlap_chars]
            assert prev.text.endswith(seed)

    def test_every_paragraph_is_covered(self):
        pages = _pages()
        chunks = TextChunker(OPTIONS).chunk(pages)
        paragraphs = [p for text in pages.values() for p in text.split("\n\n")]
        for para in paragraphs:
            assert any(para in c.text for c in chunks), para[:30]

    def test_page_ranges_follow_source_pages(self):
        chunks = TextChunker(OPTIONS).chunk(_pages())
        assert chunks[0].page_start == 1
        assert chunks[-1].page_end == 3
        starts = [c.page_start for c in chunks]
        assert starts == sorted(starts)
        for chunk in chunks:
            assert chunk.page_start <= chunk.page_end

    def test_pages_processed_in_ascending_order(self):
        chunks = TextChunker(OPTIONS).chunk({2: _para(2), 1: _para(1)})
        assert chunks[0].text.startswith("Clause 1:")

    def test_deterministic(self):
        pages = _pages()
        assert TextChunker(OPTIONS).chunk(pages) == TextChunker(OPTIONS).chunk(pages)


# ─────────────────────────────────────────────────────────────────────────────
# Section tagging + oversized input
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestSectionsAndOversizedInput:

    def test_declarations_header_tags_chunk(self):
        pages = {
            1: "DECLARATIONS\n\n" + _para(0, words=30),
            2: "SECTION I - COVERAGES\n\n" + _para(1),
        }
        chunks = TextChunker(OPTIONS).chunk(pages)
        assert len(chunks) == 2
        assert chunks[0].section_type == "declarations"
        assert chunks[1].section_type == "coverage_form"
        assert (chunks[1].page_start, chunks[1].page_end) == (2, 2)

    def test_section_header_starts_new_chunk_once_target_reached(self):
        pages = {1: "\n\n".join([_para(1, words=30), "EXCLUSIONS", _para(2, words=5)])}
        chunks = TextChunker(OPTIONS).chunk(pages)
        assert len(chunks) == 2
        assert chunks[1].section_type == "exclusions"
        assert "EXCLUSIONS" in chunks[1].new_text

    def test_giant_word_is_hard_cut(self):
        word = "x" * 2000
        chunks = TextChunker(OPTIONS).chunk({1: word})
        assert len(chunks) == 5
        assert all(c.estimated_tokens <= OPTIONS.max_tokens for c in chunks)
        assert all(c.overlap_chars == 0 for c in chunks)
        assert "".join(c.text for c in chunks) == word

    def test_long_paragraph_split_on_sentences(self):
        sentences = [f"Sentence number {i} describes a covered peril in detail." for i in range(30)]
        chunks = TextChunker(OPTIONS).chunk({1: " ".join(sentences)})
        assert len(chunks) > 1
        assert all(c.estimated_tokens <= OPTIONS.max_tokens for c in chunks)
        for sentence in sentences:
            assert any(sentence in c.text for c in chunks)


# ─────────────────────────────────────────────────────────────────────────────
# Coverage property: new content of all chunks == the input text
# ─────────────────────────────────────────────────────────────────────────────

_MAX_CHARS = OPTIONS.max_tokens * 4


def _squash(text: str) -> str:
    return re.sub(r"\s+", "", text)


def _random_word(rng: random.Random) -> str:
    word = "".join(rng.choice(string.ascii_lowercase) for _ in range(rng.randint(1, 12)))
    return word + "." if rng.random() < 0.1 else word


def _random_pages(seed: int) -> dict[int, str]:
    """Mix of short, long (sentence/word split) and giant-word (hard cut) paragraphs."""
    rng = random.Random(seed)
    pages: dict[int, str] = {}
    for page in range(1, rng.randint(1, 5) + 1):
        paras = []
        for _ in range(rng.randint(1, 8)):
            roll = rng.random()
            if roll < 0.1:
                paras.append("".join(rng.choice(string.ascii_uppercase) for _ in range(rng.randint(_MAX_CHARS + 1, 3 * _MAX_CHARS))))
            elif roll < 0.3:
                paras.append(" ".join(_random_word(rng) for _ in range(rng.randint(80, 250))))
            else:
                paras.append(" ".join(_random_word(rng) for _ in range(rng.randint(1, 60))))
        pages[page] = "\n\n".join(paras)
    return pages


@pytest.mark.unit
class TestChunkCoverage:

    @pytest.mark.parametrize("seed", range(30))
    def test_new_text_reconstructs_input(self, seed):
        pages = _random_pages(seed)
        chunks = TextChunker(OPTIONS).chunk(pages)

        source = "".join(pages[p] for p in sorted(pages))
        assert _squash("".join(c.new_text for c in chunks)) == _squash(source)

        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert chunks[0].overlap_chars == 0
        for chunk in chunks:
            assert 0 < chunk.estimated_tokens <= OPTIONS.max_tokens
            assert chunk.new_text
        for prev, cur in zip(chunks, chunks[1:]):
            assert prev.text.endswith(cur.text[: cur.overlap_chars])

    def test_word_slice_overlap(self):
        # Every paragraph is longer than the overlap ceiling, so no whole
        # paragraph can seed the next chunk
        paragraphs = [_para(i, words=30) for i in range(6)]
        pages = {1: "\n\n".join(paragraphs[:3]), 2: "\n\n".join(paragraphs[3:])}

        chunks = TextChunker(OPTIONS).chunk(pages)

        assert [c.new_text for c in chunks] == paragraphs
        assert "\n\n".join(c.new_text for c in chunks) == "\n\n".join(paragraphs)
        for prev, cur in zip(chunks, chunks[1:]):
            seed = cur.text[: cur.overlap_chars]
            assert 0 < len(seed) <= OPTIONS.overlap_tokens * 4
            assert "\n\n" not in seed
            assert prev.text.endswith(seed)
            assert prev.text[-len(seed) - 1].isspace()

    def test_giant_word_between_paragraphs(self):
        giant = "".join(string.ascii_uppercase[i % 26] for i in range(_MAX_CHARS * 2 + 37))
        pages = {1: f"{_para(0)}\n\n{giant}\n\n{_para(1)}"}

        chunks = TextChunker(OPTIONS).chunk(pages)

        assert _squash("".join(c.new_text for c in chunks)) == _squash(pages[1])
        assert all(c.estimated_tokens <= OPTIONS.max_tokens for c in chunks)
