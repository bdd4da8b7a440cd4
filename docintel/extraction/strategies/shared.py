"""
Shared strategies: one prompt/shape for a cluster of categories whose
fields overlap closely. The category id still reaches the model through
the user content, plus a per-category context sentence.
"""

from __future__ import annotations

import dataclasses
from typing import Any

from docintel.extraction.categories import CoverageCategory
from docintel.extraction.coercion import to_date
from docintel.extraction.models import CommonFields
from docintel.extraction.strategies import prompts
from docintel.extraction.strategies.base import CategoryStrategy


class ClaimsMadeLiabilityStrategy(CategoryStrategy):
    """E&O, D&O, EPL, cyber and medical malpractice: retro dates, ERPs, sublimits."""

    name = "claims_made_liability"
    categories = (
        CoverageCategory.PROFESSIONAL_LIABILITY,
        CoverageCategory.DIRECTORS_OFFICERS,
        CoverageCategory.EMPLOYMENT_PRACTICES,
        CoverageCategory.CYBER_LIABILITY,
        CoverageCategory.MEDICAL_MALPRACTICE,
    )
    detail_keys = (
        "defense_inside_limits",
        "extended_reporting_period_days",
        "prior_acts_date",
        "coverage_trigger",
        "sublimits",
        "exclusions",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.CLAIMS_MADE_PROMPT

    def coverage_context(self, category_id: str) -> str:
        return prompts.CLAIMS_MADE_CONTEXT.get(category_id, "")

    def common_fields(self, data: dict[str, Any]) -> CommonFields:
        common = super().common_fields(data)
        nested = data.get("details") if isinstance(data.get("details"), dict) else {}
        retro = common.retroactive_date or to_date(data.get("prior_acts_date") or nested.get("prior_acts_date"))
        return dataclasses.replace(
            common,
            is_claims_made=True if common.is_claims_made is None else common.is_claims_made,
            is_occurrence_form=False if common.is_occurrence_form is None else common.is_occurrence_form,
            retroactive_date=retro,
        )


class PropertyExtensionStrategy(CategoryStrategy):
    """Wind/hail, flood, earthquake, DIC: percentage vs flat deductibles, waiting periods."""

    name = "property_extension"
    categories = (
        CoverageCategory.WIND_HAIL,
        CoverageCategory.FLOOD,
        CoverageCategory.EARTHQUAKE,
        CoverageCategory.DIFFERENCE_IN_CONDITIONS,
    )
    detail_keys = (
        "deductible_type",
        "deductible_percentage",
        "deductible_minimum",
        "deductible_maximum",
        "waiting_period_hours",
        "sublimit",
        "covered_perils",
        "excluded_perils",
        "locations",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.PROPERTY_EXTENSION_PROMPT

    def coverage_context(self, category_id: str) -> str:
        return prompts.PROPERTY_EXTENSION_CONTEXT.get(category_id, "")


class MarineEquipmentStrategy(CategoryStrategy):
    """Inland/ocean marine, builders risk, boiler & machinery: schedules, valuation, projects."""

    name = "marine_equipment"
    categories = (
        CoverageCategory.INLAND_MARINE,
        CoverageCategory.OCEAN_MARINE,
        CoverageCategory.BUILDERS_RISK,
        CoverageCategory.BOILER_MACHINERY,
    )
    detail_keys = (
        "covered_property_types",
        "valuation",
        "territory",
        "transit_coverage",
        "installation_coverage",
        "blanket_limit",
        "scheduled_items",
        "leased_equipment",
        "project_address",
        "project_start_date",
        "project_end_date",
        "project_value",
        "soft_costs_included",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.MARINE_EQUIPMENT_PROMPT

    def coverage_context(self, category_id: str) -> str:
        return prompts.MARINE_EQUIPMENT_CONTEXT.get(category_id, "")


class SpecializedLiabilityStrategy(CategoryStrategy):
    """Pollution, garage, liquor, standalone product liability: one prompt per line."""

    name = "specialized_liability"
    categories = (
        CoverageCategory.POLLUTION_LIABILITY,
        CoverageCategory.GARAGE_LIABILITY,
        CoverageCategory.LIQUOR_LIABILITY,
        CoverageCategory.PRODUCT_LIABILITY,
    )
    detail_keys = (
        "cleanup_costs_limit", "first_party_coverage", "third_party_coverage",
        "mold_coverage", "asbestos_exclusion", "transportation_coverage", "covered_locations",
        "garagekeepers_limit", "garagekeepers_deductible", "dealers_coverage",
        "false_pretense_limit", "customer_auto_coverage", "covered_autos_symbol",
        "assault_battery_coverage", "host_liquor_vs_vendor", "liquor_license_required",
        "minors_exclusion", "states_covered",
        "products_aggregate", "completed_ops_aggregate", "recall_coverage",
        "recall_limit", "vendor_coverage", "worldwide_coverage",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.SPECIALIZED_LIABILITY_PROMPTS.get(category_id, prompts.GENERIC_PROMPT)


class CrimeSuretyStrategy(CategoryStrategy):
    """Crime/fidelity, surety bonds and aviation: one prompt per line."""

    name = "crime_surety"
    categories = (
        CoverageCategory.CRIME_FIDELITY,
        CoverageCategory.SURETY_BOND,
        CoverageCategory.AVIATION,
    )
    detail_keys = (
        "employee_theft_limit", "forgery_limit", "computer_fraud_limit",
        "funds_transfer_fraud_limit", "social_engineering_limit",
        "money_securities_inside_limit", "money_securities_outside_limit",
        "robbery_safe_burglary_limit", "client_coverage", "erisa_coverage", "faithful_performance",
        "bond_type", "penal_sum", "principal", "obligee", "bond_term",
        "underlying_contract", "conditions",
        "hull_coverage", "hull_deductible", "liability_limit", "medical_payments_limit",
        "passenger_liability_limit", "territory", "pilot_warranty", "use_limitations",
        "aircraft_schedule",
    )

    def system_prompt(self, category_id: str) -> str:
        return prompts.CRIME_SURETY_PROMPTS.get(category_id, prompts.GENERIC_PROMPT)
