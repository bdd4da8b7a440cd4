"""
pgvector-backed VectorIndex.

Chunks live in document_chunks with a pgvector `embedding` column; a record
(core record) owns the chunks of its source document. Similarity is
computed in Postgres with the cosine distance operator:

    similarity = 1 - (embedding <=> :embedding)
"""

from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docintel.retrieval.base import SearchHit, VectorIndex

logger = logging.getLogger(__name__)

_SEARCH_SQL = text("""
    SELECT c.id::text                                  AS chunk_id,
           r.id::text                                  AS record_id,
           c.chunk_text                                AS chunk_text,
           c.page_start                                AS page_start,
           c.page_end                                  AS page_end,
           c.section_type                              AS section_type,
           d.file_name                                 AS document_name,
           (1 - (c.embedding <=> CAST(:embedding AS vector))) AS similarity
    FROM document_chunks c
    JOIN core_records r ON r.document_id = c.document_id
    JOIN documents d    ON d.id = c.document_id
    WHERE c.embedding IS NOT NULL
      AND r.id::text = ANY(:record_ids)
      AND (1 - (c.embedding <=> CAST(:embedding AS vector))) >= :min_similarity
    ORDER BY c.embedding <=> CAST(:embedding AS vector)
    LIMIT :top_k
""")


def embedding_literal(vector: Sequence[float]) -> str:
    return f"[{','.join(str(float(v)) for v in vector)}]"


class PgVectorIndex(VectorIndex):
    """Cosine search over document_chunks using a short-lived session per query."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def search(
        self,
        vector: Sequence[float],
        record_ids: Sequence[str],
        top_k: int,
        min_similarity: float = 0.0,
    ) -> list[SearchHit]:
        if not record_ids or top_k <= 0:
            return []

        params = {
            "embedding":      embedding_literal(vector),
            "record_ids":     [str(r) for r in record_ids],
            "min_similarity": min_similarity,
            "top_k":          top_k,
        }
        async with self._session_factory() as session:
            result = await session.execute(_SEARCH_SQL, params)
            rows = result.mappings().all()

        hits = [
            SearchHit(
                chunk_id=row["chunk_id"],
                record_id=row["record_id"],
                text=row["chunk_text"],
                page_start=row["page_start"],
                page_end=row["page_end"],
                score=float(row["similarity"]),
                document_name=row["document_name"],
                section_type=row["section_type"],
            )
            for row in rows
        ]
        logger.debug(
            "PgVectorIndex | records=%d top_k=%d hits=%d",
            len(record_ids), top_k, len(hits),
        )
        return hits
