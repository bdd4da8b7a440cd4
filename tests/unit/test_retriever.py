"""
Unit Tests — BalancedRetriever + chat context prompts
══════════════════════════════════════════════════════
The vector index is InMemoryVectorIndex (conftest) with fixed scores; the
embedder is a MagicMock whose embed_query is an AsyncMock.

Coverage targets:
  ✅ Balanced: 3 records × K=12 → exactly 36 hits, 12 per record, even when one record dominates
  ✅ Balanced: groups kept in caller order, sorted by score within a group
  ✅ Balanced: hits re-tagged with the record they were searched for
  ✅ Single-record mode: one global top-K search
  ✅ Mode auto-selected from the number of active records
  ✅ Duplicate ids collapsed; more than max_active_records truncated
  ✅ No records / blank query → [] without embedding
  ✅ Context prompt labels: document, page range, section; per-policy groups
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from docintel.core.config import RetrievalConfig
from docintel.retrieval.base import SearchHit
from docintel.retrieval.chat_prompts import NO_EXCERPTS_NOTE, build_context_prompt, format_excerpt
from docintel.retrieval.retriever import BalancedRetriever
from tests.conftest import InMemoryVectorIndex, make_hit


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def embedder():
    mock = MagicMock()
    mock.embed_query = AsyncMock(return_value=[0.1] * 8)
    return mock


@pytest.fixture
def dominated_index() -> InMemoryVectorIndex:
    """Record "a" outscores every chunk of "b" and "c"."""
    hits = []
    for n in range(15):
        hits.append(make_hit("a", n, score=0.90 + n * 0.001))
        hits.append(make_hit("b", n, score=0.30 + n * 0.001))
        hits.append(make_hit("c", n, score=0.20 + n * 0.001))
    return InMemoryVectorIndex(hits)


def _retriever(embedder, index, **config) -> BalancedRetriever:
    return BalancedRetriever(embedder, index, RetrievalConfig(**config))


# ─────────────────────────────────────────────────────────────────────────────
# Balanced mode
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.retrieval
class TestBalancedSearch:

    async def test_each_record_gets_its_quota(self, embedder, dominated_index):
        retriever = _retriever(embedder, dominated_index, per_record_k=12)

        hits = await retriever.search("compare the deductibles", ["a", "b", "c"])

        assert len(hits) == 36
        for record_id in ("a", "b", "c"):
            assert sum(1 for h in hits if h.record_id == record_id) == 12
        assert len(dominated_index.searches) == 3
        assert all(len(ids) == 1 and k == 12 for ids, k in dominated_index.searches)

    async def test_groups_in_caller_order_sorted_within(self, embedder, dominated_index):
        retriever = _retriever(embedder, dominated_index, per_record_k=3)

        hits = await retriever.search("limits", ["c", "a"])

        assert [h.record_id for h in hits] == ["c", "c", "c", "a", "a", "a"]
        c_scores = [h.score for h in hits[:3]]
        assert c_scores == sorted(c_scores, reverse=True)

    async def test_record_with_few_chunks_returns_what_it_has(self, embedder):
        index = InMemoryVectorIndex([make_hit("a", n, 0.5) for n in range(20)] + [make_hit("b", 0, 0.4)])
        hits = await _retriever(embedder, index, per_record_k=12).search("q", ["a", "b"])

        assert sum(1 for h in hits if h.record_id == "a") == 12
        assert sum(1 for h in hits if h.record_id == "b") == 1

    async def test_hits_retagged_with_searched_record(self, embedder):
        index = MagicMock()
        index.search = AsyncMock(return_value=[
            SearchHit(chunk_id="x1", record_id="document-level-id", text="t", page_start=1, page_end=1, score=0.5),
        ])
        hits = await _retriever(embedder, index).search("q", ["r1", "r2"])

        assert [h.record_id for h in hits] == ["r1", "r2"]

    async def test_total_hits_bounded_by_active_record_limit(self, embedder):
        ids = [f"r{i}" for i in range(7)]
        index = InMemoryVectorIndex([make_hit(r, n, 0.5) for r in ids for n in range(15)])
        retriever = _retriever(embedder, index, per_record_k=12, max_active_records=5)

        hits = await retriever.search("q", ids)

        assert len(hits) == retriever.config.max_total_hits == 60
        assert {h.record_id for h in hits} == {"r0", "r1", "r2", "r3", "r4"}


# ─────────────────────────────────────────────────────────────────────────────
# Single-record mode + input handling
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.retrieval
class TestSingleModeAndInputs:

    async def test_single_record_uses_global_top_k(self, embedder, dominated_index):
        hits = await _retriever(embedder, dominated_index, top_k=5).search("q", ["b"])

        assert len(hits) == 5
        assert dominated_index.searches == [(("b",), 5)]

    async def test_forced_unbalanced_across_records_is_dominated(self, embedder, dominated_index):
        hits = await _retriever(embedder, dominated_index, top_k=5).search("q", ["a", "b", "c"], balanced=False)

        assert len(hits) == 5
        assert {h.record_id for h in hits} == {"a"}

    async def test_forced_balanced_for_one_record(self, embedder, dominated_index):
        hits = await _retriever(embedder, dominated_index, per_record_k=12).search("q", ["b"], balanced=True)
        assert len(hits) == 12

    async def test_duplicate_ids_collapse_to_single_mode(self, embedder, dominated_index):
        await _retriever(embedder, dominated_index, top_k=5).search("q", ["a", "a"])
        assert dominated_index.searches == [(("a",), 5)]

    @pytest.mark.parametrize("query,ids", [("what is covered?", []), ("   ", ["a"])])
    async def test_nothing_to_search(self, embedder, dominated_index, query, ids):
        assert await _retriever(embedder, dominated_index).search(query, ids) == []
        embedder.embed_query.assert_not_awaited()

    async def test_min_similarity_passed_through(self, embedder, dominated_index):
        hits = await _retriever(embedder, dominated_index, top_k=50, min_similarity=0.5).search("q", ["b"])
        assert hits == []


# ─────────────────────────────────────────────────────────────────────────────
# Context prompt
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.retrieval
class TestContextPrompt:

    def test_excerpt_label(self):
        hit = make_hit("a", 1, 0.9, page=3, page_end=4, document_name="gl.pdf", section_type="coverage_form")
        assert format_excerpt(hit) == "[Document: gl.pdf, Pages 3-4, Section: Coverage Form]\nExcerpt 1 of a"

    def test_excerpt_label_single_page_unknown_section(self):
        hit = make_hit("a", 1, 0.9, page=2, section_type="additional_insured_schedule")
        assert format_excerpt(hit).startswith("[Document: a.pdf, Page 2, Section: Additional Insured Schedule]")

    def test_balanced_prompt_groups_by_policy(self):
        hits = [make_hit("a", 1, 0.9), make_hit("a", 2, 0.8), make_hit("b", 1, 0.4)]
        prompt = build_context_prompt(hits, "Which has the higher limit?", balanced=True)

        assert prompt.startswith("## Policy Excerpts")
        assert "### Policy 1: a.pdf" in prompt
        assert "### Policy 2: b.pdf" in prompt
        assert prompt.index("Excerpt 2 of a") < prompt.index("### Policy 2")
        assert prompt.endswith("## Current Question\nWhich has the higher limit?")

    def test_empty_hits_note(self):
        assert NO_EXCERPTS_NOTE in build_context_prompt([], "q")
