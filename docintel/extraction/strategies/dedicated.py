"""
Dedicated strategies for the high-volume coverage lines whose field shapes
differ materially from everything else.
"""

from __future__ import annotations

from docintel.extraction.categories import CoverageCategory
from docintel.extraction.strategies import prompts
from docintel.extraction.strategies.base import CategoryStrategy


class GeneralLiabilityStrategy(CategoryStrategy):
    """CGL, and the liability part of a BOP."""

    name = "general_liability"
    categories = (CoverageCategory.GENERAL_LIABILITY, CoverageCategory.BOP)
    detail_keys = (
        "products_completed_ops_aggregate",
        "personal_advertising_injury_limit",
        "fire_damage_limit",
        "medical_expense_limit",
        "aggregate_applies_to",
        "coverage_form_number",
        "has_additional_insured",
        "has_waiver_of_subrogation",
        "has_primary_noncontributory",
        "has_blanket_additional_insured",
        "endorsements",
        "exclusions",
        "classification_codes",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.GENERAL_LIABILITY_PROMPT


class CommercialPropertyStrategy(CategoryStrategy):
    name = "commercial_property"
    categories = (CoverageCategory.COMMERCIAL_PROPERTY,)
    detail_keys = (
        "locations",
        "blanket_building_limit",
        "blanket_contents_limit",
        "blanket_bi_limit",
        "valuation",
        "coinsurance_percent",
        "covered_perils",
        "equipment_breakdown_included",
        "ordinance_or_law_included",
        "flood_included",
        "earthquake_included",
        "coverage_form_number",
        "causes_of_loss_form",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.COMMERCIAL_PROPERTY_PROMPT


class BusinessAutoStrategy(CategoryStrategy):
    name = "business_auto"
    categories = (CoverageCategory.BUSINESS_AUTO,)
    detail_keys = (
        "liability_limit_type",
        "liability_limit",
        "bodily_injury_per_person",
        "bodily_injury_per_accident",
        "property_damage_limit",
        "um_uim_limit",
        "medical_payments_limit",
        "comprehensive_deductible",
        "collision_deductible",
        "hired_auto_included",
        "non_owned_auto_included",
        "rental_reimbursement",
        "vehicles",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.BUSINESS_AUTO_PROMPT


class WorkersCompStrategy(CategoryStrategy):
    name = "workers_compensation"
    categories = (CoverageCategory.WORKERS_COMPENSATION,)
    detail_keys = (
        "statutory_limits",
        "employers_liability_each_accident",
        "employers_liability_disease_each",
        "employers_liability_disease_policy",
        "experience_mod",
        "class_codes",
        "waiver_of_subrogation",
        "states_covered",
        "other_states_coverage",
        "usl_h_coverage",
        "voluntary_compensation",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.WORKERS_COMP_PROMPT


class UmbrellaExcessStrategy(CategoryStrategy):
    name = "umbrella_excess"
    categories = (CoverageCategory.UMBRELLA_EXCESS,)
    detail_keys = (
        "self_insured_retention",
        "is_following_form",
        "underlying_requirements",
        "defense_coverage",
        "retained_limit_gl",
        "retained_limit_auto",
        "retained_limit_el",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.UMBRELLA_EXCESS_PROMPT
