"""
System prompts and per-category context sentences for category extraction.

Every prompt asks for the same envelope: the common fields at top level,
category-specific attributes in a "details" object, and a confidence.
"""

from __future__ import annotations

_ENVELOPE = """
Return numbers without currency symbols or commas, dates as YYYY-MM-DD and
null for anything not stated. Put the common fields at the top level and
everything else inside "details". Include "coverage_subtype" when the
document names a specific form or variant, and "confidence" (0.0-1.0).
Respond with one JSON object."""


def _prompt(specialty: str, body: str, example: str) -> str:
    return (
        f"You are an insurance document analyst specialising in {specialty}.\n\n"
        f"Extract the following from the provided policy text.\n\n{body.strip()}\n"
        f"{_ENVELOPE}\n\n```json\n{example.strip()}\n```"
    )


COMMON_FIELDS_TEXT = """
Common fields (top level):
- each_occurrence_limit, aggregate_limit, deductible, premium
- is_occurrence_form, is_claims_made, retroactive_date"""

# ---------------------------------------------------------------------------
# Dedicated strategies
# ---------------------------------------------------------------------------

GENERAL_LIABILITY_PROMPT = _prompt(
    "Commercial General Liability (CGL) and the liability part of Business Owners policies",
    COMMON_FIELDS_TEXT + """

Details:
- products_completed_ops_aggregate, personal_advertising_injury_limit,
  fire_damage_limit (damage to rented premises), medical_expense_limit
- aggregate_applies_to: "policy", "project" or "location"
- coverage_form_number (e.g. "CG 00 01")
- has_additional_insured, has_waiver_of_subrogation, has_primary_noncontributory,
  has_blanket_additional_insured
- endorsements: [{form_number, title, description}]
- exclusions: [text]
- classification_codes: [{code, description}]""",
    """
{
  "each_occurrence_limit": 1000000,
  "aggregate_limit": 2000000,
  "deductible": null,
  "premium": 5000,
  "is_occurrence_form": true,
  "is_claims_made": false,
  "retroactive_date": null,
  "details": {
    "products_completed_ops_aggregate": 2000000,
    "personal_advertising_injury_limit": 1000000,
    "fire_damage_limit": 100000,
    "medical_expense_limit": 5000,
    "aggregate_applies_to": "policy",
    "coverage_form_number": "CG 00 01",
    "has_additional_insured": true,
    "has_waiver_of_subrogation": true,
    "has_primary_noncontributory": false,
    "has_blanket_additional_insured": false,
    "endorsements": [{"form_number": "CG 20 10", "title": "Additional Insured - Owners, Lessees or Contractors"}],
    "exclusions": ["Pollution"],
    "classification_codes": [{"code": "91302", "description": "Contractors - General"}]
  },
  "confidence": 0.9
}""",
)

COMMERCIAL_PROPERTY_PROMPT = _prompt(
    "Commercial Property",
    COMMON_FIELDS_TEXT + """

Details:
- locations: [{address, building_limit, contents_limit, business_income_limit}]
- blanket_building_limit, blanket_contents_limit, blanket_bi_limit
- valuation: "replacement_cost", "actual_cash_value" or "agreed_value"
- coinsurance_percent
- covered_perils: "basic", "broad" or "special"
- equipment_breakdown_included, ordinance_or_law_included, flood_included, earthquake_included
- coverage_form_number, causes_of_loss_form""",
    """
{
  "each_occurrence_limit": 5000000,
  "aggregate_limit": null,
  "deductible": 5000,
  "premium": 12000,
  "details": {
    "locations": [{"address": "123 Main St, Minneapolis, MN", "building_limit": 3000000, "contents_limit": 1000000}],
    "valuation": "replacement_cost",
    "coinsurance_percent": 90,
    "covered_perils": "special",
    "equipment_breakdown_included": true,
    "flood_included": false,
    "coverage_form_number": "CP 00 10",
    "causes_of_loss_form": "CP 10 30"
  },
  "confidence": 0.88
}""",
)

BUSINESS_AUTO_PROMPT = _prompt(
    "Business Auto",
    COMMON_FIELDS_TEXT + """

Details:
- liability_limit_type: "csl" (combined single limit) or "split"
- liability_limit (CSL), bodily_injury_per_person, bodily_injury_per_accident, property_damage_limit
- um_uim_limit, medical_payments_limit
- comprehensive_deductible, collision_deductible
- hired_auto_included, non_owned_auto_included, rental_reimbursement
- vehicles: [{year, make, model, vin, symbol}]""",
    """
{
  "each_occurrence_limit": 1000000,
  "deductible": 1000,
  "premium": 8000,
  "details": {
    "liability_limit_type": "csl",
    "liability_limit": 1000000,
    "um_uim_limit": 1000000,
    "medical_payments_limit": 5000,
    "comprehensive_deductible": 500,
    "collision_deductible": 1000,
    "hired_auto_included": true,
    "non_owned_auto_included": true,
    "vehicles": [{"year": 2022, "make": "Ford", "model": "F-150", "vin": "1FTFW1E50NFA00000"}]
  },
  "confidence": 0.86
}""",
)

WORKERS_COMP_PROMPT = _prompt(
    "Workers Compensation and Employers Liability",
    COMMON_FIELDS_TEXT + """

Details:
- statutory_limits: true when Part One is statutory
- employers_liability_each_accident, employers_liability_disease_each,
  employers_liability_disease_policy
- experience_mod
- class_codes: [{code, description, payroll, rate}]
- waiver_of_subrogation
- states_covered: [state], other_states_coverage: [state]
- usl_h_coverage, voluntary_compensation""",
    """
{
  "each_occurrence_limit": 1000000,
  "premium": 25000,
  "details": {
    "statutory_limits": true,
    "employers_liability_each_accident": 1000000,
    "employers_liability_disease_each": 1000000,
    "employers_liability_disease_policy": 1000000,
    "experience_mod": 0.92,
    "class_codes": [{"code": "5403", "description": "Carpentry", "payroll": 500000, "rate": 8.12}],
    "waiver_of_subrogation": true,
    "states_covered": ["MN"],
    "other_states_coverage": ["WI", "IA"]
  },
  "confidence": 0.9
}""",
)

UMBRELLA_EXCESS_PROMPT = _prompt(
    "Umbrella and Excess Liability",
    COMMON_FIELDS_TEXT + """

Details:
- self_insured_retention
- is_following_form
- underlying_requirements: [{coverage, carrier, limit}]
- defense_coverage: "inside_limits" or "outside_limits"
- retained_limit_gl, retained_limit_auto, retained_limit_el""",
    """
{
  "each_occurrence_limit": 5000000,
  "aggregate_limit": 5000000,
  "premium": 9000,
  "details": {
    "self_insured_retention": 10000,
    "is_following_form": true,
    "underlying_requirements": [{"coverage": "general_liability", "limit": 1000000}],
    "defense_coverage": "outside_limits"
  },
  "confidence": 0.85
}""",
)

# ---------------------------------------------------------------------------
# Shared strategies
# ---------------------------------------------------------------------------

CLAIMS_MADE_PROMPT = _prompt(
    "claims-made liability lines (professional liability / E&O, D&O, EPL, cyber, medical malpractice)",
    COMMON_FIELDS_TEXT + """

These coverages are claims-made: is_claims_made is true and retroactive_date is
the prior-acts date.

Details:
- defense_inside_limits: true if defense costs erode the limit
- extended_reporting_period_days
- prior_acts_date
- coverage_trigger: "claims_made", "claims_made_reported" or "occurrence"
- sublimits: object of named sublimits (ransomware_limit, breach_response_limit,
  entity_coverage_limit, wage_hour_defense_limit, ...)
- exclusions: [text]""",
    """
{
  "each_occurrence_limit": 1000000,
  "aggregate_limit": 2000000,
  "deductible": 25000,
  "premium": 15000,
  "is_claims_made": true,
  "is_occurrence_form": false,
  "retroactive_date": "2020-01-01",
  "details": {
    "defense_inside_limits": true,
    "extended_reporting_period_days": 365,
    "prior_acts_date": "2020-01-01",
    "coverage_trigger": "claims_made",
    "sublimits": {"ransomware_limit": 250000},
    "exclusions": ["Prior knowledge"]
  },
  "confidence": 0.85
}""",
)

CLAIMS_MADE_CONTEXT = {
    "professional_liability": "This is a Professional Liability / Errors & Omissions policy. Look for professional services, wrongful acts and malpractice terms.",
    "directors_officers":     "This is a Directors & Officers policy. Look for Side A/B/C coverage, entity coverage and securities claims terms.",
    "employment_practices":   "This is an Employment Practices Liability policy. Look for discrimination, harassment, wrongful termination and wage & hour terms.",
    "cyber_liability":        "This is a Cyber Liability policy. Look for data breach, ransomware, business interruption and cyber extortion terms.",
    "medical_malpractice":    "This is a Medical Malpractice policy. Look for professional services, consent to settle and tail coverage terms.",
}

PROPERTY_EXTENSION_PROMPT = _prompt(
    "catastrophe property extensions (wind/hail, flood, earthquake, difference in conditions)",
    COMMON_FIELDS_TEXT + """

Details:
- deductible_type: "flat" or "percentage"
- deductible_percentage, deductible_minimum, deductible_maximum
- waiting_period_hours
- sublimit
- covered_perils: [peril], excluded_perils: [peril]
- locations: [{address, limit}]""",
    """
{
  "each_occurrence_limit": 2500000,
  "aggregate_limit": 2500000,
  "deductible": null,
  "premium": 6000,
  "details": {
    "deductible_type": "percentage",
    "deductible_percentage": 5,
    "deductible_minimum": 25000,
    "waiting_period_hours": 72,
    "covered_perils": ["earthquake", "earthquake sprinkler leakage"],
    "excluded_perils": ["tsunami"]
  },
  "confidence": 0.8
}""",
)

PROPERTY_EXTENSION_CONTEXT = {
    "wind_hail":                "This is Wind/Hail coverage. Look for named storm deductibles, windstorm coverage and hurricane terms.",
    "flood":                    "This is Flood coverage. Look for NFIP vs excess flood, waiting periods and building vs contents limits.",
    "earthquake":               "This is Earthquake coverage. Look for earth movement, percentage deductibles and masonry veneer exclusions.",
    "difference_in_conditions": "This is a Difference in Conditions policy. Look for flood/earthquake coverage that supplements primary property.",
}

MARINE_EQUIPMENT_PROMPT = _prompt(
    "inland marine, ocean marine, builders risk and equipment breakdown",
    COMMON_FIELDS_TEXT + """

Details:
- covered_property_types: [type]
- valuation, territory
- transit_coverage, installation_coverage
- blanket_limit
- scheduled_items: [{description, serial_number, value}]
- leased_equipment
- builders risk only: project_address, project_start_date, project_end_date,
  project_value, soft_costs_included""",
    """
{
  "each_occurrence_limit": 500000,
  "deductible": 1000,
  "premium": 3500,
  "details": {
    "covered_property_types": ["contractors equipment"],
    "valuation": "actual_cash_value",
    "territory": "USA and Canada",
    "transit_coverage": true,
    "scheduled_items": [{"description": "CAT 320 Excavator", "serial_number": "CAT0320XYZ", "value": 250000}],
    "leased_equipment": true
  },
  "confidence": 0.82
}""",
)

MARINE_EQUIPMENT_CONTEXT = {
    "inland_marine":    "This is Inland Marine coverage. Look for contractors equipment, installation floater or scheduled property terms.",
    "ocean_marine":     "This is Ocean Marine coverage. Look for cargo, hull, protection & indemnity or marine liability terms.",
    "builders_risk":    "This is Builder's Risk coverage. Look for construction project details, soft costs and completion dates.",
    "boiler_machinery": "This is Boiler & Machinery / Equipment Breakdown coverage. Look for equipment schedules, breakdown definitions and spoilage coverage.",
}

SPECIALIZED_LIABILITY_PROMPTS = {
    "pollution_liability": _prompt(
        "Pollution Liability",
        COMMON_FIELDS_TEXT + """

Details:
- cleanup_costs_limit
- first_party_coverage, third_party_coverage
- mold_coverage, asbestos_exclusion, transportation_coverage
- covered_locations: [address]""",
        """
{
  "each_occurrence_limit": 2000000,
  "aggregate_limit": 4000000,
  "deductible": 50000,
  "is_claims_made": true,
  "retroactive_date": "2020-01-01",
  "details": {"cleanup_costs_limit": 2000000, "first_party_coverage": true, "asbestos_exclusion": true},
  "confidence": 0.85
}""",
    ),
    "garage_liability": _prompt(
        "Garage Liability",
        COMMON_FIELDS_TEXT + """

Details:
- garagekeepers_limit, garagekeepers_deductible
- dealers_coverage, false_pretense_limit, customer_auto_coverage
- covered_autos_symbol""",
        """
{
  "each_occurrence_limit": 1000000,
  "aggregate_limit": 2000000,
  "details": {"garagekeepers_limit": 500000, "garagekeepers_deductible": 500, "covered_autos_symbol": "21"},
  "confidence": 0.82
}""",
    ),
    "liquor_liability": _prompt(
        "Liquor Liability",
        COMMON_FIELDS_TEXT + """

Details:
- assault_battery_coverage
- host_liquor_vs_vendor: "host" or "vendor"
- liquor_license_required, minors_exclusion
- states_covered: [state]""",
        """
{
  "each_occurrence_limit": 1000000,
  "aggregate_limit": 2000000,
  "details": {"assault_battery_coverage": true, "host_liquor_vs_vendor": "vendor", "states_covered": ["MN"]},
  "confidence": 0.85
}""",
    ),
    "product_liability": _prompt(
        "standalone Product Liability",
        COMMON_FIELDS_TEXT + """

Details:
- products_aggregate, completed_ops_aggregate
- recall_coverage, recall_limit
- vendor_coverage, worldwide_coverage""",
        """
{
  "each_occurrence_limit": 2000000,
  "aggregate_limit": 4000000,
  "deductible": 25000,
  "details": {"products_aggregate": 4000000, "recall_coverage": true, "recall_limit": 500000},
  "confidence": 0.8
}""",
    ),
}

CRIME_SURETY_PROMPTS = {
    "crime_fidelity": _prompt(
        "Crime and Fidelity",
        COMMON_FIELDS_TEXT + """

Details (each insuring agreement is a limit, or null when not purchased):
- employee_theft_limit, forgery_limit, computer_fraud_limit, funds_transfer_fraud_limit,
  social_engineering_limit, money_securities_inside_limit,
  money_securities_outside_limit, robbery_safe_burglary_limit
- client_coverage, erisa_coverage, faithful_performance""",
        """
{
  "each_occurrence_limit": 500000,
  "deductible": 10000,
  "premium": 8000,
  "details": {"employee_theft_limit": 500000, "computer_fraud_limit": 250000, "social_engineering_limit": 100000},
  "confidence": 0.85
}""",
    ),
    "surety_bond": _prompt(
        "Surety Bonds",
        COMMON_FIELDS_TEXT + """

Use the penal sum as each_occurrence_limit.

Details:
- bond_type (bid, performance, payment, license, permit ...)
- penal_sum, principal, obligee
- bond_term, underlying_contract
- conditions: [text]""",
        """
{
  "each_occurrence_limit": 250000,
  "premium": 2500,
  "details": {"bond_type": "performance", "penal_sum": 250000, "principal": "Acme Builders LLC", "obligee": "City of Minneapolis"},
  "confidence": 0.8
}""",
    ),
    "aviation": _prompt(
        "Aviation",
        COMMON_FIELDS_TEXT + """

Details:
- hull_coverage, hull_deductible
- liability_limit, medical_payments_limit, passenger_liability_limit
- territory, pilot_warranty, use_limitations
- aircraft_schedule: [{year, make, model, tail_number, hull_value}]""",
        """
{
  "each_occurrence_limit": 5000000,
  "premium": 18000,
  "details": {"hull_coverage": 1200000, "passenger_liability_limit": 250000, "territory": "USA, Canada, Mexico"},
  "confidence": 0.8
}""",
    ),
}

GENERIC_PROMPT = _prompt(
    "commercial insurance coverage of any kind",
    COMMON_FIELDS_TEXT + """

Details: every other coverage-specific attribute you can find, as key/value pairs.""",
    """
{
  "each_occurrence_limit": 1000000,
  "aggregate_limit": 2000000,
  "details": {"coverage_name": "Special Events Liability"},
  "confidence": 0.6
}""",
)


def format_category_content(category_id: str, context: str, text: str) -> str:
    header = f"Coverage Type: {category_id}\n"
    if context:
        header += f"{context}\n"
    return f"{header}\nPlease extract the coverage details from this text:\n\n{text}"
