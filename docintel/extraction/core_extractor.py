"""
Core-Record Extractor — one completion call against the declarations text.

Missing fields are None and unparsable dates are None; partial documents
degrade to a sparse record rather than an error. Only a response with no
usable JSON object raises (MalformedResponseError), which the orchestrator
records as a failed core record.
"""

from __future__ import annotations

import logging
from typing import Any

from docintel.extraction.coercion import to_confidence, to_date, to_money, to_text
from docintel.extraction.models import CoreRecordResult
from docintel.extraction.prompts import CORE_RECORD_SYSTEM_PROMPT, format_core_record_content
from docintel.llm.completion import CompletionService
from docintel.llm.json_scan import parse_json_object

logger = logging.getLogger(__name__)

POLICY_STATUSES = ("quote", "bound", "active")


class CoreRecordExtractor:

    def __init__(self, completion: CompletionService) -> None:
        self._completion = completion

    async def extract(self, declarations_text: str, document_type: str) -> CoreRecordResult:
        raw  = await self._completion.complete(
            CORE_RECORD_SYSTEM_PROMPT,
            format_core_record_content(declarations_text, document_type),
        )
        data = parse_json_object(raw)
        result = self._parse(data, raw)

        logger.info(
            "CoreRecordExtractor | policy=%s insured=%s effective=%s expiration=%s confidence=%.2f",
            result.policy_number, result.insured_name,
            result.effective_date, result.expiration_date, result.confidence,
        )
        return result

    @staticmethod
    def _parse(data: dict[str, Any], raw: str) -> CoreRecordResult:
        status = (to_text(data.get("policy_status")) or "quote").lower()
        if status not in POLICY_STATUSES:
            status = "quote"

        naic = to_text(data.get("carrier_naic"))
        state = to_text(data.get("insured_state"))

        return CoreRecordResult(
            policy_number=to_text(data.get("policy_number")),
            quote_number=to_text(data.get("quote_number")),
            effective_date=to_date(data.get("effective_date")),
            expiration_date=to_date(data.get("expiration_date")),
            quote_expiration_date=to_date(data.get("quote_expiration_date")),
            carrier_name=to_text(data.get("carrier_name")),
            carrier_naic=naic,
            insured_name=to_text(data.get("insured_name")),
            insured_address_line1=to_text(data.get("insured_address_line1")),
            insured_address_line2=to_text(data.get("insured_address_line2")),
            insured_city=to_text(data.get("insured_city")),
            insured_state=state.upper() if state and len(state) == 2 else state,
            insured_zip=to_text(data.get("insured_zip")),
            total_premium=to_money(data.get("total_premium")),
            policy_status=status,
            confidence=to_confidence(data.get("confidence"), default=0.5),
            raw_output=raw,
        )
