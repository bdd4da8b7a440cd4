"""
Document Processing Package
════════════════════════════

  Page Text Extraction → Section-Aware Chunking → Batched Embedding

Modules
───────
  text_extraction.py  PyMuPDF text layer extraction + scanned-document detection
  chunking.py         token-budgeted, section-aware, overlapping chunker
  embeddings.py       batched embedding generator with per-batch retry
"""

from docintel.processing.chunking import Chunk, TextChunker
from docintel.processing.embeddings import EmbeddingBatchResult, EmbeddingGenerator
from docintel.processing.text_extraction import (
    PageText,
    PageTextExtractor,
    PageTextResult,
    PyMuPDFPageTextExtractor,
)

__all__ = [
    "Chunk",
    "TextChunker",
    "EmbeddingBatchResult",
    "EmbeddingGenerator",
    "PageText",
    "PageTextExtractor",
    "PageTextResult",
    "PyMuPDFPageTextExtractor",
]
