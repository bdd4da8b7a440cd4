"""
Extraction result types.

All results are created once per pipeline run and never mutated; failed
stages produce a result with confidence 0 and an error string rather than
raising past the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from docintel.extraction.categories import DocumentType


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SectionInfo:
    section_type: str
    start_page:   int
    end_page:     int
    form_numbers: tuple[str, ...] = ()

    def contains_page(self, page: int) -> bool:
        return self.start_page <= page <= self.end_page

    def overlaps(self, start: int, end: int) -> bool:
        return start <= self.end_page and end >= self.start_page


@dataclass(frozen=True)
class ClassificationResult:
    document_type:      DocumentType
    sections:           tuple[SectionInfo, ...]
    coverages_detected: tuple[str, ...]
    confidence:         float
    raw_output:         str | None = None
    error:              str | None = None

    @classmethod
    def default(cls, error: str | None = None, raw_output: str | None = None) -> ClassificationResult:
        """Low-confidence fallback used when the response cannot be parsed."""
        return cls(
            document_type=DocumentType.POLICY,
            sections=(),
            coverages_detected=(),
            confidence=0.0,
            raw_output=raw_output,
            error=error,
        )


# ---------------------------------------------------------------------------
# Core record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CoreRecordResult:
    policy_number:         str | None = None
    quote_number:          str | None = None
    effective_date:        date | None = None
    expiration_date:       date | None = None
    quote_expiration_date: date | None = None
    carrier_name:          str | None = None
    carrier_naic:          str | None = None
    insured_name:          str | None = None
    insured_address_line1: str | None = None
    insured_address_line2: str | None = None
    insured_city:          str | None = None
    insured_state:         str | None = None
    insured_zip:           str | None = None
    total_premium:         float | None = None
    policy_status:         str = "quote"
    confidence:            float = 0.0
    raw_output:            str | None = None
    error:                 str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def failed_result(cls, error: str, raw_output: str | None = None) -> CoreRecordResult:
        return cls(confidence=0.0, error=error, raw_output=raw_output)


# ---------------------------------------------------------------------------
# Category records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommonFields:
    """Numeric / boolean fields promoted to queryable columns."""
    each_occurrence_limit: float | None = None
    aggregate_limit:       float | None = None
    deductible:            float | None = None
    premium:               float | None = None
    is_occurrence_form:    bool | None = None
    is_claims_made:        bool | None = None
    retroactive_date:      date | None = None


@dataclass(frozen=True)
class CategoryResult:
    category:   str
    common:     CommonFields = field(default_factory=CommonFields)
    details:    dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.5
    subtype:    str | None = None
    raw_output: str | None = None
    error:      str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def failed_result(cls, category: str, error: str, raw_output: str | None = None) -> CategoryResult:
        return cls(
            category=category,
            confidence=0.0,
            details={"extraction_error": error},
            raw_output=raw_output,
            error=error,
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationIssue:
    field:   str
    message: str
    code:    str


@dataclass(frozen=True)
class ValidationOutcome:
    is_valid:            bool
    errors:              tuple[ValidationIssue, ...]
    warnings:            tuple[ValidationIssue, ...]
    aggregate_confidence: float
    adjusted_confidence: float
    needs_review:        bool
    review_reasons:      tuple[str, ...] = ()
