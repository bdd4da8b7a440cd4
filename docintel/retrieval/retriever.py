"""
Balanced Semantic Retriever

Single-record mode (one active record, or balanced=False):
    one global top-K search over every active record's chunks.

Balanced mode (more than one active record, or balanced=True):
    one independent top-K search PER record, each hit tagged with its
    owning record id, groups concatenated in the caller's record order.
    Every record contributes up to per_record_k chunks however well it
    scores against the others, so one dominant document cannot starve
    the rest of a multi-way comparison.

    total hits <= per_record_k × max_active_records

Per-record searches run concurrently; gather() keeps them in input order.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Sequence

from docintel.core.config import RetrievalConfig
from docintel.processing.embeddings import EmbeddingGenerator
from docintel.retrieval.base import SearchHit, VectorIndex

logger = logging.getLogger(__name__)


class BalancedRetriever:

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        index: VectorIndex,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._index    = index
        self._config   = config or RetrievalConfig()

    @property
    def config(self) -> RetrievalConfig:
        return self._config

    async def search(
        self,
        query: str,
        active_record_ids: Sequence[str],
        balanced: bool | None = None,
    ) -> list[SearchHit]:
        record_ids = self._active_records(active_record_ids)
        if not record_ids or not query.strip():
            return []

        if balanced is None:
            balanced = len(record_ids) > 1

        vector = await self._embedder.embed_query(query)

        if not balanced:
            hits = await self._index.search(
                vector, record_ids, self._config.top_k, self._config.min_similarity,
            )
            logger.info(
                "BalancedRetriever | mode=single records=%d hits=%d", len(record_ids), len(hits),
            )
            return hits

        groups = await asyncio.gather(*(
            self._search_record(vector, record_id) for record_id in record_ids
        ))
        hits = [hit for group in groups for hit in group]

        logger.info(
            "BalancedRetriever | mode=balanced records=%d per_record_k=%d hits=%d per_record=%s",
            len(record_ids), self._config.per_record_k, len(hits), [len(g) for g in groups],
        )
        return hits

    async def _search_record(self, vector: list[float], record_id: str) -> list[SearchHit]:
        hits = await self._index.search(
            vector, [record_id], self._config.per_record_k, self._config.min_similarity,
        )
        # Hits are tagged with the record they were searched for
        tagged = [dataclasses.replace(hit, record_id=record_id) for hit in hits[: self._config.per_record_k]]
        return sorted(tagged, key=lambda h: h.score, reverse=True)

    def _active_records(self, active_record_ids: Sequence[str]) -> list[str]:
        unique: list[str] = []
        for record_id in active_record_ids:
            key = str(record_id)
            if key not in unique:
                unique.append(key)

        limit = self._config.max_active_records
        if len(unique) > limit:
            logger.warning(
                "BalancedRetriever | too many active records=%d limit=%d dropped=%s",
                len(unique), limit, unique[limit:],
            )
            unique = unique[:limit]
        return unique

