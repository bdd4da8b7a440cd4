"""
Chunk selection for the extraction calls.

Sending the full document to every extraction call is wasteful; each call
gets only the chunks it needs, in document order, capped at a token budget:

  core record : chunks tagged "declarations" by the chunker, else chunks
                inside the classifier's declarations section, else the
                first classified section, else the leading chunks
  category    : declarations chunks (they carry the limits table) plus any
                chunk mentioning one of the category's keywords; with no
                keyword hit, the declarations/leading chunks alone
"""

from __future__ import annotations

import re
from typing import Sequence

from docintel.extraction.categories import CATEGORY_KEYWORDS, CoverageCategory, SectionType
from docintel.extraction.models import ClassificationResult
from docintel.extraction.prompts import CHUNK_SEPARATOR
from docintel.processing.chunking import Chunk


def keyword_pattern(keywords: Sequence[str]) -> re.Pattern[str]:
    """
    Whole-word, case-insensitive match for any keyword. A trailing "s" is
    allowed (building / buildings) and a space matches any whitespace run.
    """
    alternatives = sorted(
        (r"\s+".join(re.escape(word) for word in k.split()) for k in keywords if k.strip()),
        key=len,
        reverse=True,
    )
    if not alternatives:
        return re.compile(r"(?!)")   # matches nothing
    joined = "|".join(alternatives)
    return re.compile(rf"\b(?:{joined})s?\b", re.IGNORECASE)


_CATEGORY_PATTERNS: dict[CoverageCategory, re.Pattern[str]] = {
    category: keyword_pattern(keywords) for category, keywords in CATEGORY_KEYWORDS.items()
}


def _cap(chunks: Sequence[Chunk], token_budget: int) -> list[Chunk]:
    """Keep chunks in index order until the budget is spent (always at least one)."""
    selected: list[Chunk] = []
    used = 0
    for chunk in sorted(chunks, key=lambda c: c.index):
        if selected and used + chunk.estimated_tokens > token_budget:
            break
        selected.append(chunk)
        used += chunk.estimated_tokens
    return selected


def _in_sections(chunks: Sequence[Chunk], classification: ClassificationResult, section_type: str | None) -> list[Chunk]:
    sections = [
        s for s in classification.sections
        if section_type is None or s.section_type == section_type
    ]
    if section_type is None:
        sections = sections[:1]
    return [c for c in chunks if any(s.overlaps(c.page_start, c.page_end) for s in sections)]


def select_declarations_chunks(
    chunks:         Sequence[Chunk],
    classification: ClassificationResult,
    token_budget:   int,
) -> list[Chunk]:
    declarations = SectionType.DECLARATIONS.value
    for candidates in (
        [c for c in chunks if c.section_type == declarations],
        _in_sections(chunks, classification, declarations),
        _in_sections(chunks, classification, None),
    ):
        if candidates:
            return _cap(candidates, token_budget)
    return _cap(chunks, token_budget)


def select_category_chunks(
    chunks:         Sequence[Chunk],
    category_id:    str,
    classification: ClassificationResult,
    token_budget:   int,
) -> list[Chunk]:
    base = select_declarations_chunks(chunks, classification, token_budget // 3 or token_budget)

    category = CoverageCategory.from_id(category_id)
    if category is not None and category in _CATEGORY_PATTERNS:
        pattern = _CATEGORY_PATTERNS[category]
    else:
        pattern = keyword_pattern([category_id.replace("_", " ")])
    matched = [c for c in chunks if pattern.search(c.text)]
    if not matched:
        return base

    by_index = {c.index: c for c in (*base, *matched)}
    return _cap(list(by_index.values()), token_budget)


def join_chunks(chunks: Sequence[Chunk]) -> str:
    return CHUNK_SEPARATOR.join(c.text for c in chunks)
