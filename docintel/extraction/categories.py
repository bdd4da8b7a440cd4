"""
Insurance domain vocabulary: document types, section types and the known
coverage categories.

Category ids are the exact strings the classifier is asked to emit and the
keys of the strategy registry. CATEGORY_KEYWORDS drive chunk selection
for category extraction (see extraction.context).
"""

from __future__ import annotations

from enum import Enum


class DocumentType(str, Enum):
    POLICY       = "policy"
    QUOTE        = "quote"
    BINDER       = "binder"
    ENDORSEMENT  = "endorsement"
    DEC_PAGE     = "dec_page"
    CERTIFICATE  = "certificate"
    CONTRACT     = "contract"

    @classmethod
    def parse(cls, value: object) -> DocumentType:
        """Unknown or missing values fall back to POLICY."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.POLICY


class SectionType(str, Enum):
    DECLARATIONS  = "declarations"
    COVERAGE_FORM = "coverage_form"
    ENDORSEMENTS  = "endorsements"
    SCHEDULE      = "schedule"
    CONDITIONS    = "conditions"
    EXCLUSIONS    = "exclusions"
    DEFINITIONS   = "definitions"


class CoverageCategory(str, Enum):
    # Dedicated strategies
    GENERAL_LIABILITY        = "general_liability"
    COMMERCIAL_PROPERTY      = "commercial_property"
    BUSINESS_AUTO            = "business_auto"
    WORKERS_COMPENSATION     = "workers_compensation"
    UMBRELLA_EXCESS          = "umbrella_excess"
    BOP                      = "bop"
    # Property extensions
    WIND_HAIL                = "wind_hail"
    FLOOD                    = "flood"
    EARTHQUAKE               = "earthquake"
    DIFFERENCE_IN_CONDITIONS = "difference_in_conditions"
    # Marine & equipment
    BUILDERS_RISK            = "builders_risk"
    INLAND_MARINE            = "inland_marine"
    OCEAN_MARINE             = "ocean_marine"
    BOILER_MACHINERY         = "boiler_machinery"
    # Claims-made liability
    PROFESSIONAL_LIABILITY   = "professional_liability"
    DIRECTORS_OFFICERS       = "directors_officers"
    EMPLOYMENT_PRACTICES     = "employment_practices"
    CYBER_LIABILITY          = "cyber_liability"
    MEDICAL_MALPRACTICE      = "medical_malpractice"
    # Specialized liability
    POLLUTION_LIABILITY      = "pollution_liability"
    PRODUCT_LIABILITY        = "product_liability"
    LIQUOR_LIABILITY         = "liquor_liability"
    GARAGE_LIABILITY         = "garage_liability"
    # Crime, surety, aviation
    CRIME_FIDELITY           = "crime_fidelity"
    SURETY_BOND              = "surety_bond"
    AVIATION                 = "aviation"

    @classmethod
    def from_id(cls, value: str) -> CoverageCategory | None:
        try:
            return cls(value)
        except ValueError:
            return None


KNOWN_CATEGORY_IDS: frozenset[str] = frozenset(c.value for c in CoverageCategory)

# The classifier never emits "bop"; a business-owners policy is reported as
# general_liability + commercial_property.
DETECTABLE_CATEGORIES: tuple[CoverageCategory, ...] = tuple(
    c for c in CoverageCategory if c is not CoverageCategory.BOP
)

CLAIMS_MADE_CATEGORIES: frozenset[CoverageCategory] = frozenset({
    CoverageCategory.PROFESSIONAL_LIABILITY,
    CoverageCategory.DIRECTORS_OFFICERS,
    CoverageCategory.EMPLOYMENT_PRACTICES,
    CoverageCategory.CYBER_LIABILITY,
    CoverageCategory.MEDICAL_MALPRACTICE,
})

CATEGORY_KEYWORDS: dict[CoverageCategory, tuple[str, ...]] = {
    CoverageCategory.GENERAL_LIABILITY:        ("general liability", "commercial general", "cg 00 01", "each occurrence", "products-completed"),
    CoverageCategory.COMMERCIAL_PROPERTY:      ("commercial property", "building", "business personal property", "cp 00 10", "causes of loss", "coinsurance"),
    CoverageCategory.BUSINESS_AUTO:            ("business auto", "ca 00 01", "covered auto", "hired auto", "non-owned", "uninsured motorist"),
    CoverageCategory.WORKERS_COMPENSATION:     ("workers compensation", "workers' compensation", "employers liability", "experience mod", "wc 00"),
    CoverageCategory.UMBRELLA_EXCESS:          ("umbrella", "excess liability", "self-insured retention", "following form", "schedule of underlying"),
    CoverageCategory.BOP:                      ("businessowners", "business owners", "bp 00 03"),
    CoverageCategory.WIND_HAIL:                ("wind", "hail", "named storm", "hurricane"),
    CoverageCategory.FLOOD:                    ("flood", "nfip", "waiting period"),
    CoverageCategory.EARTHQUAKE:               ("earthquake", "earth movement"),
    CoverageCategory.DIFFERENCE_IN_CONDITIONS: ("difference in conditions", "dic"),
    CoverageCategory.BUILDERS_RISK:            ("builders risk", "builder's risk", "course of construction", "soft costs"),
    CoverageCategory.INLAND_MARINE:            ("inland marine", "contractors equipment", "installation floater", "scheduled equipment"),
    CoverageCategory.OCEAN_MARINE:             ("ocean marine", "cargo", "hull", "protection and indemnity", "p&i"),
    CoverageCategory.BOILER_MACHINERY:         ("boiler", "machinery", "equipment breakdown"),
    CoverageCategory.PROFESSIONAL_LIABILITY:   ("professional liability", "errors and omissions", "errors & omissions", "e&o", "wrongful act"),
    CoverageCategory.DIRECTORS_OFFICERS:       ("directors and officers", "directors & officers", "d&o", "side a"),
    CoverageCategory.EMPLOYMENT_PRACTICES:     ("employment practices", "epli", "wrongful termination", "harassment"),
    CoverageCategory.CYBER_LIABILITY:          ("cyber", "data breach", "ransomware", "network security"),
    CoverageCategory.MEDICAL_MALPRACTICE:      ("medical malpractice", "medical professional", "healthcare professional"),
    CoverageCategory.POLLUTION_LIABILITY:      ("pollution", "environmental", "pollution condition", "remediation"),
    CoverageCategory.PRODUCT_LIABILITY:        ("product liability", "products liability", "product recall"),
    CoverageCategory.LIQUOR_LIABILITY:         ("liquor", "dram shop", "alcoholic beverages"),
    CoverageCategory.GARAGE_LIABILITY:         ("garage", "garagekeepers", "dealers"),
    CoverageCategory.CRIME_FIDELITY:           ("crime", "fidelity", "employee theft", "funds transfer fraud", "forgery"),
    CoverageCategory.SURETY_BOND:              ("surety", "bond", "obligee", "principal", "penal sum"),
    CoverageCategory.AVIATION:                 ("aviation", "aircraft", "hull", "pilot"),
}


def normalize_category_id(value: object) -> str:
    if isinstance(value, Enum):
        value = value.value
    return str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
