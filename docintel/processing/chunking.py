"""
Section-Aware Text Chunker  —  Token-Budgeted, Overlapping Segments
════════════════════════════════════════════════════════════════════

Input : page number → raw page text
Output: ordered list[Chunk] covering every character of input text
        (modulo whitespace normalisation), each within max_tokens.

Algorithm
─────────
  1. Split each page (ascending page order) into paragraphs on blank lines.
  2. Tag a paragraph with a section_type when its first line looks like an
     insurance section header (DECLARATIONS, SECTION II, EXCLUSIONS, ...).
  3. Paragraphs above max_tokens are split on sentence boundaries, then on
     word boundaries, then (single giant "word") on a hard character cut.
  4. Paragraphs accumulate into a running buffer. The buffer closes when
       (a) adding the next paragraph would exceed max_tokens, or
       (b) the buffer has reached target_tokens AND the next paragraph is
           a good split point (section header, or short all-caps line).
  5. On close, trailing paragraphs of the closed chunk (or a trailing word
     slice of its last paragraph) totalling up to overlap_tokens seed the
     next chunk. The seed is always an exact suffix of the previous chunk's
     text and is trimmed so seed + next paragraph still fits max_tokens.

Token estimation is ceil(len(text) / 4), computed on the final joined
text, so every emitted chunk satisfies estimated_tokens <= max_tokens.
No network I/O happens here.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Mapping

from docintel.core.config import ChunkingOptions

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration constants
# ---------------------------------------------------------------------------

CHARS_PER_TOKEN = 4

PARAGRAPH_SEPARATOR = "\n\n"

# Short all-caps paragraphs below this size are treated as headers
HEADER_MAX_TOKENS = 20

# Overlap never takes more than this multiple of overlap_tokens
OVERLAP_CEILING_FACTOR = 2

# Section header patterns common in insurance documents (first line only)
SECTION_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(SECTION|PART|ARTICLE|COVERAGE|FORM)\s+[A-Z0-9]+",
        r"^(DECLARATIONS?|ENDORSEMENT|SCHEDULE|CONDITIONS?)\s*$",
        r"^(GENERAL\s+CONDITIONS|SPECIAL\s+CONDITIONS)",
        r"^(LIMITS?\s+OF\s+(LIABILITY|INSURANCE))",
        r"^(EXCLUSIONS?|DEFINITIONS?)\s*$",
    )
)

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT_RE  = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE_RE      = re.compile(r"\s+")


def estimate_tokens(text: str) -> int:
    """Deterministic token estimate: ceil(chars / 4)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def detect_section_type(paragraph: str) -> str | None:
    """Return the section type if the paragraph's first line is a section header."""
    first_line = paragraph.split("\n", 1)[0].strip()
    if not any(p.search(first_line) for p in SECTION_PATTERNS):
        return None
    return classify_section_header(first_line)


def classify_section_header(header: str) -> str:
    upper = header.upper()
    if "DECLARATION" in upper:
        return "declarations"
    if "ENDORSEMENT" in upper:
        return "endorsements"
    if "SCHEDULE" in upper:
        return "schedule"
    if "CONDITION" in upper:
        return "conditions"
    if "COVERAGE" in upper or "FORM" in upper:
        return "coverage_form"
    if "EXCLUSION" in upper:
        return "exclusions"
    if "DEFINITION" in upper:
        return "definitions"
    return "coverage_form"   # SECTION / PART / ARTICLE / LIMITS OF ... headers


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Chunk:
    """
    One retrieval unit.

    text             : chunk text; paragraphs joined with a blank line
    index            : 0-based, monotonic within the document
    page_start/end   : 1-based page range the chunk's new content came from
    section_type     : most recent section header seen, if any
    estimated_tokens : ceil(len(text) / 4), always <= max_tokens
    overlap_chars    : length of the leading seed copied from the previous
                       chunk (text[:overlap_chars] is a suffix of it)
    """
    text:             str
    index:            int
    page_start:       int
    page_end:         int
    section_type:     str | None
    estimated_tokens: int
    overlap_chars:    int = 0

    @property
    def new_text(self) -> str:
        """Chunk text without the overlap seed."""
        return self.text[self.overlap_chars:].lstrip()


@dataclass(frozen=True)
class _Paragraph:
    text:         str
    page:         int
    section_type: str | None

    @property
    def tokens(self) -> int:
        return estimate_tokens(self.text)


# ---------------------------------------------------------------------------
# Chunker
# ---------------------------------------------------------------------------

class TextChunker:
    """
    Stateless chunker; safe to share across documents.

    Usage:
        chunker = TextChunker(config.chunking)
        chunks  = chunker.chunk({1: page_one_text, 2: page_two_text})
    """

    def __init__(self, options: ChunkingOptions | None = None) -> None:
        self._opts = options or ChunkingOptions()

    @property
    def options(self) -> ChunkingOptions:
        return self._opts

    def chunk(self, pages: Mapping[int, str]) -> list[Chunk]:
        paragraphs = self._extract_paragraphs(pages)
        if not paragraphs:
            return []

        parts: list[_Paragraph] = []
        for para in paragraphs:
            if para.tokens > self._opts.max_tokens:
                parts.extend(self._split_large_paragraph(para))
            else:
                parts.append(para)

        chunks = self._build_chunks(parts)

        logger.info(
            "TextChunker | pages=%d paragraphs=%d chunks=%d target=%d max=%d overlap=%d",
            len(pages), len(paragraphs), len(chunks),
            self._opts.target_tokens, self._opts.max_tokens, self._opts.overlap_tokens,
        )
        return chunks

    # ------------------------------------------------------------------
    # Paragraph extraction
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_paragraphs(pages: Mapping[int, str]) -> list[_Paragraph]:
        paragraphs: list[_Paragraph] = []
        for page_number in sorted(pages):
            page_text = pages[page_number] or ""
            if not page_text.strip():
                continue
            for raw in _PARAGRAPH_SPLIT_RE.split(page_text):
                text = raw.strip()
                if text:
                    paragraphs.append(
                        _Paragraph(text=text, page=page_number, section_type=detect_section_type(text))
                    )
        return paragraphs

    # ------------------------------------------------------------------
    # Oversized paragraph splitting: sentences → words → characters
    # ------------------------------------------------------------------

    def _split_large_paragraph(self, para: _Paragraph) -> list[_Paragraph]:
        max_tokens = self._opts.max_tokens
        max_chars  = max_tokens * CHARS_PER_TOKEN

        pieces: list[str] = []
        sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(para.text) if s.strip()] or [para.text]
        for sentence in sentences:
            if estimate_tokens(sentence) <= max_tokens:
                pieces.append(sentence)
                continue
            for word in _WHITESPACE_RE.split(sentence):
                if not word:
                    continue
                if len(word) <= max_chars:
                    pieces.append(word)
                else:
                    pieces.extend(word[i : i + max_chars] for i in range(0, len(word), max_chars))

        packed: list[str] = []
        current = ""
        for piece in pieces:
            candidate = f"{current} {piece}" if current else piece
            if current and estimate_tokens(candidate) > max_tokens:
                packed.append(current)
                current = piece
            else:
                current = candidate
        if current:
            packed.append(current)

        logger.debug(
            "TextChunker | split oversized paragraph tokens=%d parts=%d page=%d",
            para.tokens, len(packed), para.page,
        )
        return [
            _Paragraph(text=text, page=para.page, section_type=para.section_type if i == 0 else None)
            for i, text in enumerate(packed)
        ]

    # ------------------------------------------------------------------
    # Buffer filling
    # ------------------------------------------------------------------

    @staticmethod
    def _is_good_split_point(part: _Paragraph) -> bool:
        if part.section_type is not None:
            return True
        return part.tokens < HEADER_MAX_TOKENS and part.text.upper() == part.text

    def _build_chunks(self, parts: list[_Paragraph]) -> list[Chunk]:
        opts = self._opts
        chunks: list[Chunk] = []

        buffer: list[str] = []
        overlap_chars = 0
        has_new_content = False
        page_start = page_end = 0
        section_type: str | None = None

        def _emit() -> None:
            text = PARAGRAPH_SEPARATOR.join(buffer)
            chunks.append(Chunk(
                text=text,
                index=len(chunks),
                page_start=page_start,
                page_end=page_end,
                section_type=section_type,
                estimated_tokens=estimate_tokens(text),
                overlap_chars=overlap_chars,
            ))

        for part in parts:
            current_text   = PARAGRAPH_SEPARATOR.join(buffer)
            current_tokens = estimate_tokens(current_text)
            combined       = f"{current_text}{PARAGRAPH_SEPARATOR}{part.text}" if buffer else part.text

            would_exceed = estimate_tokens(combined) > opts.max_tokens
            should_split = would_exceed or (
                current_tokens >= opts.target_tokens and self._is_good_split_point(part)
            )

            if should_split and has_new_content:
                _emit()
                # Seed must leave room for the separator and the incoming part
                char_budget = opts.max_tokens * CHARS_PER_TOKEN - len(part.text) - len(PARAGRAPH_SEPARATOR)
                seed = self._overlap_text(buffer, char_budget)
                buffer = [seed] if seed else []
                overlap_chars = len(seed)
                has_new_content = False
                page_start = part.page
                section_type = part.section_type

            if not has_new_content and not buffer:
                page_start = part.page
                section_type = part.section_type

            buffer.append(part.text)
            has_new_content = True
            page_end = part.page
            if part.section_type is not None:
                section_type = part.section_type

        if has_new_content:
            _emit()

        return chunks

    def _overlap_text(self, paragraphs: list[str], char_budget: int) -> str:
        """
        Suffix of the closed chunk used to seed the next one.

        Whole trailing paragraphs are preferred; if none fits, the trailing
        words of the last paragraph are used instead.
        """
        target = self._opts.overlap_tokens
        if target <= 0 or not paragraphs or char_budget <= 0:
            return ""

        ceiling_chars = min(char_budget, target * OVERLAP_CEILING_FACTOR * CHARS_PER_TOKEN)

        selected: list[str] = []
        for para in reversed(paragraphs):
            if estimate_tokens(PARAGRAPH_SEPARATOR.join(selected)) >= target:
                break
            candidate = PARAGRAPH_SEPARATOR.join([para, *selected])
            if len(candidate) > ceiling_chars:
                break
            selected.insert(0, para)

        if selected:
            return PARAGRAPH_SEPARATOR.join(selected)

        # No whole paragraph fits: trailing word slice of the last paragraph
        last = paragraphs[-1]
        limit = min(char_budget, target * CHARS_PER_TOKEN)
        for match in _WHITESPACE_RE.finditer(last):
            start = match.end()
            if len(last) - start <= limit:
                return last[start:]
        return ""
