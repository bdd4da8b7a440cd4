"""
Unit Tests — DocumentClassifier + CoreRecordExtractor
══════════════════════════════════════════════════════
Both talk to the LLM only through CompletionService; ScriptedCompletion
(conftest) returns canned responses keyed on the user content.

Coverage targets:
  ✅ Classification parsed: type, coverages (normalised, de-duplicated), sections
  ✅ Section page ranges repaired (end < start), invalid entries dropped
  ✅ String-valued coverages / form numbers split, non-list values ignored
  ✅ Unknown document type → policy
  ✅ Unparsable response → default result (confidence 0, no coverages)
  ✅ No page text → default result without a provider call
  ✅ Provider outage propagates as TransientProviderError
  ✅ Page cap + filename in the classification request
  ✅ Core record: dates, money, state, status coerced
  ✅ Core record: sparse response → None fields, not an error
  ✅ Core record: no JSON → MalformedResponseError
"""

from __future__ import annotations

from datetime import date

import pytest

from docintel.core.config import ExtractionConfig
from docintel.core.errors import MalformedResponseError, TransientProviderError
from docintel.extraction.categories import DocumentType
from docintel.extraction.classifier import DocumentClassifier
from docintel.extraction.core_extractor import CoreRecordExtractor
from tests.conftest import CLASSIFICATION_RESPONSE, CORE_RESPONSE, ScriptedCompletion

PAGES = {1: "COMMON POLICY DECLARATIONS ...", 2: "COMMERCIAL GENERAL LIABILITY ..."}


def _classifier(completion, max_pages: int = 10) -> DocumentClassifier:
    return DocumentClassifier(completion, ExtractionConfig(classification_max_pages=max_pages))


# ─────────────────────────────────────────────────────────────────────────────
# Classifier
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.extraction
class TestDocumentClassifier:

    async def test_parses_classification(self):
        result = await _classifier(ScriptedCompletion(classification=CLASSIFICATION_RESPONSE)).classify(PAGES, "gl.pdf")

        assert result.document_type is DocumentType.POLICY
        assert result.coverages_detected == ("general_liability", "commercial_property")
        assert result.confidence == pytest.approx(0.8)
        assert result.error is None
        declarations = result.sections[0]
        assert (declarations.section_type, declarations.start_page, declarations.end_page) == ("declarations", 1, 1)
        assert declarations.form_numbers == ("IL 00 21",)

    async def test_coverages_normalised_and_deduplicated(self):
        completion = ScriptedCompletion(classification={
            "document_type": "QUOTE",
            "coverages_detected": ["General Liability", "general-liability", "Cyber Liability", None],
        })
        result = await _classifier(completion).classify(PAGES)

        assert result.document_type is DocumentType.QUOTE
        assert result.coverages_detected == ("general_liability", "cyber_liability")
        assert result.confidence == pytest.approx(0.5)   # default when missing

    async def test_sections_repaired_and_filtered(self):
        completion = ScriptedCompletion(classification={
            "sections": [
                {"section_type": "Schedule", "start_page": 4, "end_page": 2},
                {"section_type": "endorsements", "start_page": None},
                "not-a-section",
                {"start_page": 1, "end_page": 1},
            ],
        })
        result = await _classifier(completion).classify(PAGES)

        assert len(result.sections) == 1
        section = result.sections[0]
        assert (section.section_type, section.start_page, section.end_page) == ("schedule", 4, 4)

    @pytest.mark.parametrize("value,expected", [
        ("general_liability", ("general_liability",)),
        ("General Liability, Cyber Liability", ("general_liability", "cyber_liability")),
        ({"general_liability": True}, ()),
        (42, ()),
    ])
    async def test_coverages_not_a_list(self, value, expected):
        completion = ScriptedCompletion(classification={"coverages_detected": value})
        result = await _classifier(completion).classify(PAGES)
        assert result.coverages_detected == expected

    async def test_form_numbers_as_string(self):
        completion = ScriptedCompletion(classification={
            "sections": [
                {"section_type": "coverage_form", "start_page": 2, "end_page": 3, "form_numbers": "CG 00 01"},
                {"section_type": "endorsements", "start_page": 4, "end_page": 6, "form_numbers": "CG 20 10, CG 21 47"},
                {"section_type": "schedule", "start_page": 7, "end_page": 7, "form_numbers": 1234},
            ],
        })
        result = await _classifier(completion).classify(PAGES)

        assert [s.form_numbers for s in result.sections] == [
            ("CG 00 01",), ("CG 20 10", "CG 21 47"), (),
        ]

    async def test_sections_not_a_list(self):
        completion = ScriptedCompletion(classification={"sections": "declarations on page 1"})
        result = await _classifier(completion).classify(PAGES)
        assert result.sections == ()

    async def test_unknown_document_type_defaults_to_policy(self):
        completion = ScriptedCompletion(classification={"document_type": "brochure"})
        result = await _classifier(completion).classify(PAGES)
        assert result.document_type is DocumentType.POLICY

    async def test_unparsable_response_returns_default(self):
        completion = ScriptedCompletion(classification="I am not sure what this document is.")
        result = await _classifier(completion).classify(PAGES)

        assert result.document_type is DocumentType.POLICY
        assert result.coverages_detected == ()
        assert result.sections == ()
        assert result.confidence == 0.0
        assert result.error is not None
        assert result.raw_output == "I am not sure what this document is."

    async def test_no_text_skips_provider_call(self):
        completion = ScriptedCompletion(classification=CLASSIFICATION_RESPONSE)
        result = await _classifier(completion).classify({1: "", 2: "   "})

        assert result.confidence == 0.0
        assert completion.calls == []

    async def test_provider_outage_propagates(self):
        completion = ScriptedCompletion(classification=TransientProviderError("down", service="chat-completion"))
        with pytest.raises(TransientProviderError):
            await _classifier(completion).classify(PAGES)

    async def test_request_caps_pages_and_names_file(self):
        completion = ScriptedCompletion(classification=CLASSIFICATION_RESPONSE)
        pages = {n: f"page {n} text" for n in range(1, 6)}
        await _classifier(completion, max_pages=2).classify(pages, "binder.pdf")

        _, content = completion.calls[0]
        assert content.startswith("Please classify this insurance document:")
        assert "Filename: binder.pdf" in content
        assert "--- Page 2 ---" in content
        assert "--- Page 3 ---" not in content
        assert "continues for 3 more pages" in content


# ─────────────────────────────────────────────────────────────────────────────
# Core record extractor
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.extraction
class TestCoreRecordExtractor:

    async def test_parses_and_coerces_fields(self):
        completion = ScriptedCompletion(core=CORE_RESPONSE)
        result = await CoreRecordExtractor(completion).extract("Policy Number: GL-2024-558812", "policy")

        assert result.policy_number == "GL-2024-558812"
        assert result.effective_date == date(2025, 1, 1)
        assert result.expiration_date == date(2026, 1, 1)
        assert result.total_premium == 48250.0
        assert result.insured_state == "IL"
        assert result.policy_status == "active"
        assert result.confidence == pytest.approx(0.9)
        assert not result.failed

        _, content = completion.calls[0]
        assert content.startswith("Document Type: policy")

    async def test_sparse_response_leaves_fields_empty(self):
        completion = ScriptedCompletion(core={
            "insured_name": "Acme",
            "effective_date": "sometime next spring",
            "policy_status": "pending-ish",
            "carrier_naic": "null",
        })
        result = await CoreRecordExtractor(completion).extract("text", "quote")

        assert result.insured_name == "Acme"
        assert result.effective_date is None
        assert result.carrier_naic is None
        assert result.policy_status == "quote"
        assert result.confidence == pytest.approx(0.5)

    @pytest.mark.parametrize("value,expected", [
        ("01/15/2025", date(2025, 1, 15)),
        ("January 15, 2025", date(2025, 1, 15)),
        ("2025-01-15T00:00:00Z", date(2025, 1, 15)),
    ])
    async def test_date_formats(self, value, expected):
        completion = ScriptedCompletion(core={"effective_date": value})
        result = await CoreRecordExtractor(completion).extract("text", "policy")
        assert result.effective_date == expected

    async def test_no_json_raises_malformed(self):
        completion = ScriptedCompletion(core="The declarations page is missing.")
        with pytest.raises(MalformedResponseError):
            await CoreRecordExtractor(completion).extract("text", "policy")
