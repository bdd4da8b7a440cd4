"""
Extraction Validator & Confidence Aggregator

Deterministic, no external calls. Produces errors (hard failures, always
send the document to review) and warnings (soft, only lower confidence).

Confidence:
    aggregate = classification × 0.10 + core × 0.30 + mean(categories) × 0.60
    adjusted  = aggregate − 0.05 × errors − 0.01 × warnings   (floor 0)

Failed categories stay in the mean with confidence 0. When no category
was extracted at all the category term is either redistributed over the
other two weights (0.25 / 0.75) or counted as zero, per
ExtractionConfig.empty_category_policy.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from docintel.core.config import ExtractionConfig
from docintel.extraction.categories import CLAIMS_MADE_CATEGORIES, CoverageCategory
from docintel.extraction.models import (
    CategoryResult,
    ClassificationResult,
    CoreRecordResult,
    ValidationIssue,
    ValidationOutcome,
)

logger = logging.getLogger(__name__)

CLASSIFICATION_WEIGHT = 0.10
CORE_RECORD_WEIGHT    = 0.30
CATEGORY_WEIGHT       = 0.60

ERROR_PENALTY   = 0.05
WARNING_PENALTY = 0.01

MIN_TERM_MONTHS       = 1
MAX_TERM_MONTHS       = 36
MIN_POLICY_NUMBER_LEN = 5
MAX_REASONABLE_PREMIUM = 10_000_000


def _months_between(start: date, end: date) -> int:
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


class ExtractionValidator:

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self._config = config or ExtractionConfig()

    def validate(
        self,
        classification: ClassificationResult,
        core: CoreRecordResult,
        categories: Sequence[CategoryResult],
    ) -> ValidationOutcome:
        errors:   list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        self._validate_core(core, errors, warnings)
        for index, result in enumerate(categories):
            self._validate_category(index, result, errors, warnings)
        self._validate_cross_record(categories, warnings)

        aggregate = self.aggregate_confidence(classification, core, categories)
        adjusted  = max(0.0, aggregate - ERROR_PENALTY * len(errors) - WARNING_PENALTY * len(warnings))
        adjusted  = round(adjusted, 4)

        reasons: list[str] = []
        if errors:
            reasons.append(f"{len(errors)} validation error(s)")
        if adjusted < self._config.review_threshold:
            reasons.append(
                f"confidence {adjusted:.2f} below threshold {self._config.review_threshold:.2f}"
            )
        reasons.extend(issue.message for issue in errors if issue.code == "REQUIRED_FIELD")

        outcome = ValidationOutcome(
            is_valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            aggregate_confidence=aggregate,
            adjusted_confidence=adjusted,
            needs_review=bool(errors) or adjusted < self._config.review_threshold,
            review_reasons=tuple(reasons),
        )
        logger.info(
            "ExtractionValidator | errors=%d warnings=%d aggregate=%.3f adjusted=%.3f needs_review=%s",
            len(errors), len(warnings), aggregate, adjusted, outcome.needs_review,
        )
        return outcome

    # ------------------------------------------------------------------
    # Confidence
    # ------------------------------------------------------------------

    def aggregate_confidence(
        self,
        classification: ClassificationResult,
        core: CoreRecordResult,
        categories: Sequence[CategoryResult],
    ) -> float:
        cls_conf  = classification.confidence
        core_conf = core.confidence

        if not categories:
            if self._config.empty_category_policy == "redistribute":
                total = CLASSIFICATION_WEIGHT + CORE_RECORD_WEIGHT
                value = cls_conf * (CLASSIFICATION_WEIGHT / total) + core_conf * (CORE_RECORD_WEIGHT / total)
            else:
                value = cls_conf * CLASSIFICATION_WEIGHT + core_conf * CORE_RECORD_WEIGHT
            return round(value, 4)

        mean_category = sum(c.confidence for c in categories) / len(categories)
        value = (
            cls_conf * CLASSIFICATION_WEIGHT
            + core_conf * CORE_RECORD_WEIGHT
            + mean_category * CATEGORY_WEIGHT
        )
        return round(value, 4)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _validate_core(
        self,
        core: CoreRecordResult,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        if core.failed:
            warnings.append(ValidationIssue(
                "core", f"Core record extraction failed: {core.error}", "EXTRACTION_FAILED",
            ))

        if not (core.insured_name or "").strip():
            errors.append(ValidationIssue("core.insured_name", "Insured name is required", "REQUIRED_FIELD"))

        if core.effective_date and core.expiration_date:
            if core.expiration_date <= core.effective_date:
                errors.append(ValidationIssue(
                    "core.expiration_date",
                    "Expiration date must be after effective date",
                    "INVALID_DATE_RANGE",
                ))
            else:
                months = _months_between(core.effective_date, core.expiration_date)
                if months < MIN_TERM_MONTHS or months > MAX_TERM_MONTHS:
                    warnings.append(ValidationIssue(
                        "core.expiration_date",
                        f"Unusual policy term: {months} months",
                        "UNUSUAL_TERM",
                    ))

        if core.policy_number:
            if len(core.policy_number.strip()) < MIN_POLICY_NUMBER_LEN:
                warnings.append(ValidationIssue(
                    "core.policy_number", "Policy number seems too short", "SUSPICIOUS_VALUE",
                ))
        elif core.policy_status != "quote":
            warnings.append(ValidationIssue(
                "core.policy_number", "Policy number is missing for a bound policy", "MISSING_FIELD",
            ))

        if core.carrier_naic:
            naic = core.carrier_naic.strip()
            if len(naic) != 5 or not naic.isdigit():
                warnings.append(ValidationIssue(
                    "core.carrier_naic", "NAIC code should be 5 digits", "INVALID_FORMAT",
                ))

        if core.total_premium is not None:
            if core.total_premium <= 0:
                warnings.append(ValidationIssue(
                    "core.total_premium", "Premium should be positive", "SUSPICIOUS_VALUE",
                ))
            elif core.total_premium > MAX_REASONABLE_PREMIUM:
                warnings.append(ValidationIssue(
                    "core.total_premium", "Premium seems unusually high", "SUSPICIOUS_VALUE",
                ))

    def _validate_category(
        self,
        index: int,
        result: CategoryResult,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        prefix = f"categories[{index}]"

        if result.failed:
            warnings.append(ValidationIssue(
                prefix, f"Extraction failed for {result.category}: {result.error}", "EXTRACTION_FAILED",
            ))
            return

        common = result.common
        for name in ("each_occurrence_limit", "aggregate_limit", "deductible", "premium"):
            value = getattr(common, name)
            if value is not None and value < 0:
                errors.append(ValidationIssue(
                    f"{prefix}.{name}", f"{name.replace('_', ' ').capitalize()} cannot be negative", "NEGATIVE_VALUE",
                ))

        occurrence = common.each_occurrence_limit
        aggregate  = common.aggregate_limit
        deductible = common.deductible

        if deductible is not None and occurrence is not None and occurrence > 0 and deductible >= occurrence:
            warnings.append(ValidationIssue(
                f"{prefix}.deductible", "Deductible is at or above the occurrence limit", "SUSPICIOUS_VALUE",
            ))

        if occurrence is not None and aggregate is not None and aggregate > 0 and occurrence > aggregate:
            warnings.append(ValidationIssue(
                f"{prefix}.each_occurrence_limit",
                "Each occurrence limit exceeds the aggregate limit",
                "LIMIT_MISMATCH",
            ))

        claims_made = common.is_claims_made or CoverageCategory.from_id(result.category) in CLAIMS_MADE_CATEGORIES
        if claims_made and common.is_claims_made is not False and common.retroactive_date is None:
            warnings.append(ValidationIssue(
                f"{prefix}.retroactive_date",
                "Claims-made coverage should carry a retroactive date",
                "MISSING_RETRO_DATE",
            ))

    def _validate_cross_record(
        self,
        categories: Sequence[CategoryResult],
        warnings: list[ValidationIssue],
    ) -> None:
        if not categories:
            warnings.append(ValidationIssue("categories", "No coverages were extracted", "NO_COVERAGES"))
            return

        seen: set[str] = set()
        for index, result in enumerate(categories):
            if result.category in seen:
                warnings.append(ValidationIssue(
                    f"categories[{index}]", f"Duplicate coverage category: {result.category}", "DUPLICATE",
                ))
            seen.add(result.category)
