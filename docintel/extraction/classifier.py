"""
Document Classifier — one completion call per document.

Labels the document type, the coverage categories present and the page
ranges of its major sections. Classification failure is never fatal: an
empty or unparsable response yields ClassificationResult.default()
(policy, no sections, no categories, confidence 0), which only narrows
category selection downstream. Provider outages (TransientProviderError
after all retries) still propagate; the document cannot be processed
without the provider anyway.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from docintel.core.config import ExtractionConfig
from docintel.core.errors import MalformedResponseError
from docintel.extraction.categories import DocumentType, normalize_category_id
from docintel.extraction.coercion import to_confidence, to_int, to_list, to_text
from docintel.extraction.models import ClassificationResult, SectionInfo
from docintel.extraction.prompts import CLASSIFICATION_SYSTEM_PROMPT, format_classification_content
from docintel.llm.completion import CompletionService
from docintel.llm.json_scan import parse_json_object

logger = logging.getLogger(__name__)


class DocumentClassifier:

    def __init__(self, completion: CompletionService, config: ExtractionConfig) -> None:
        self._completion = completion
        self._config     = config

    async def classify(
        self,
        pages:     Mapping[int, str],
        file_name: str | None = None,
    ) -> ClassificationResult:
        if not any((text or "").strip() for text in pages.values()):
            logger.warning("Classifier | no page text, returning default result")
            return ClassificationResult.default(error="No text to classify")

        content = format_classification_content(pages, file_name, self._config.classification_max_pages)
        raw = None
        try:
            raw = await self._completion.complete(CLASSIFICATION_SYSTEM_PROMPT, content)
            data = parse_json_object(raw)
        except MalformedResponseError as exc:
            logger.warning("Classifier | unparsable response, using default: %s", exc)
            return ClassificationResult.default(error=str(exc), raw_output=raw or exc.raw)

        result = self._parse(data, raw)
        logger.info(
            "Classifier | type=%s coverages=%s sections=%d confidence=%.2f",
            result.document_type.value, ",".join(result.coverages_detected),
            len(result.sections), result.confidence,
        )
        return result

    @staticmethod
    def _parse(data: dict[str, Any], raw: str) -> ClassificationResult:
        coverages: list[str] = []
        for item in to_list(data.get("coverages_detected"), split_commas=True):
            category_id = normalize_category_id(item)
            if category_id and category_id not in coverages:
                coverages.append(category_id)

        sections: list[SectionInfo] = []
        for item in to_list(data.get("sections")):
            if not isinstance(item, dict):
                continue
            section_type = to_text(item.get("section_type"))
            start = to_int(item.get("start_page"))
            end   = to_int(item.get("end_page"))
            if not section_type or start is None:
                continue
            end = end if end is not None and end >= start else start
            forms = tuple(
                str(f).strip() for f in to_list(item.get("form_numbers"), split_commas=True) if to_text(f)
            )
            sections.append(SectionInfo(
                section_type=section_type.lower(),
                start_page=start,
                end_page=end,
                form_numbers=forms,
            ))

        return ClassificationResult(
            document_type=DocumentType.parse(data.get("document_type")),
            sections=tuple(sections),
            coverages_detected=tuple(coverages),
            confidence=to_confidence(data.get("confidence"), default=0.5),
            raw_output=raw,
        )
