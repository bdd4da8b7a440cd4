"""
Category Extraction Strategy — Abstract Base

One strategy instance handles one or more coverage categories. Subclasses
only declare WHAT differs between coverage families:

  categories        which category ids the strategy serves
  detail_keys       category attributes promoted from the top level of the
                    response into details (models are inconsistent about
                    nesting them under "details")
  system_prompt()   the prompt for a given category id
  coverage_context  optional per-category sentence added to the user content

The shared extract() flow (call → tolerant JSON parse → common fields +
details) lives here. A response without usable JSON raises
MalformedResponseError; the orchestrator records that against the one
category and carries on with the others.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from docintel.extraction.categories import CoverageCategory
from docintel.extraction.coercion import to_bool, to_confidence, to_date, to_money, to_text
from docintel.extraction.context import join_chunks
from docintel.extraction.models import CategoryResult, CommonFields
from docintel.extraction.strategies.prompts import format_category_content
from docintel.llm.completion import CompletionService
from docintel.llm.json_scan import parse_json_object
from docintel.processing.chunking import Chunk

logger = logging.getLogger(__name__)

COMMON_FIELD_KEYS = (
    "each_occurrence_limit",
    "aggregate_limit",
    "deductible",
    "premium",
    "is_occurrence_form",
    "is_claims_made",
    "retroactive_date",
)

# Envelope keys that are never copied into details
_META_KEYS = frozenset({*COMMON_FIELD_KEYS, "details", "confidence", "coverage_subtype", "coverage_type"})


class CategoryStrategy(ABC):

    name: str = "base"
    categories: tuple[CoverageCategory, ...] = ()
    detail_keys: tuple[str, ...] = ()

    def __init__(self, completion: CompletionService) -> None:
        self._completion = completion

    @abstractmethod
    def system_prompt(self, category_id: str) -> str:
        """System prompt for this category."""

    def coverage_context(self, category_id: str) -> str:
        return ""

    async def extract(self, category_id: str, section_chunks: Sequence[Chunk]) -> CategoryResult:
        content = format_category_content(
            category_id,
            self.coverage_context(category_id),
            join_chunks(section_chunks),
        )
        raw  = await self._completion.complete(self.system_prompt(category_id), content)
        data = parse_json_object(raw)
        result = self.build_result(category_id, data, raw)

        logger.info(
            "CategoryStrategy | strategy=%s category=%s occurrence=%s aggregate=%s details=%d confidence=%.2f",
            self.name, category_id, result.common.each_occurrence_limit,
            result.common.aggregate_limit, len(result.details), result.confidence,
        )
        return result

    # ------------------------------------------------------------------
    # Response mapping
    # ------------------------------------------------------------------

    def build_result(self, category_id: str, data: dict[str, Any], raw: str) -> CategoryResult:
        return CategoryResult(
            category=category_id,
            subtype=to_text(data.get("coverage_subtype")),
            common=self.common_fields(data),
            details=self.details(data),
            confidence=to_confidence(data.get("confidence"), default=0.5),
            raw_output=raw,
        )

    def common_fields(self, data: dict[str, Any]) -> CommonFields:
        nested = data.get("details") if isinstance(data.get("details"), dict) else {}

        def pick(key: str) -> Any:
            value = data.get(key)
            return value if value is not None else nested.get(key)

        return CommonFields(
            each_occurrence_limit=to_money(pick("each_occurrence_limit")),
            aggregate_limit=to_money(pick("aggregate_limit")),
            deductible=to_money(pick("deductible")),
            premium=to_money(pick("premium")),
            is_occurrence_form=to_bool(pick("is_occurrence_form")),
            is_claims_made=to_bool(pick("is_claims_made")),
            retroactive_date=to_date(pick("retroactive_date")),
        )

    def details(self, data: dict[str, Any]) -> dict[str, Any]:
        nested = data.get("details")
        details: dict[str, Any] = {
            k: v for k, v in (nested.items() if isinstance(nested, dict) else ())
            if k not in COMMON_FIELD_KEYS
        }
        for key in self.detail_keys:
            if key not in details and data.get(key) is not None:
                details[key] = data[key]
        return details
