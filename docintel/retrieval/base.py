"""
Vector Index — Abstract Base

Every similarity-search backend implements this interface. The retriever
and chat service only speak this protocol, so the pgvector index can be
swapped for an in-memory one in tests without touching retrieval code.

Scoping contract (enforced by ALL implementations):
  - search() only returns chunks owned by the given record ids.
  - score is cosine similarity, i.e. 1 - cosine distance, highest first.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchHit:
    """One chunk returned from a similarity search, tagged with its owning record."""
    chunk_id:      str
    record_id:     str
    text:          str
    page_start:    int
    page_end:      int
    score:         float            # 1 - cosine distance
    document_name: str | None = None
    section_type:  str | None = None

    @property
    def page_label(self) -> str:
        if self.page_start == self.page_end:
            return f"Page {self.page_start}"
        return f"Pages {self.page_start}-{self.page_end}"


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class VectorIndex(ABC):

    @abstractmethod
    async def search(
        self,
        vector: Sequence[float],
        record_ids: Sequence[str],
        top_k: int,
        min_similarity: float = 0.0,
    ) -> list[SearchHit]:
        """
        Nearest-neighbour search over the chunks of `record_ids`.
        Returns at most top_k hits, ranked by similarity descending.
        """
