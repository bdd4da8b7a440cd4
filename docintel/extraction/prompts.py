"""
Prompts for document classification and core-record extraction.

Category extraction prompts live beside their strategies in
extraction/strategies/prompts.py.
"""

from __future__ import annotations

from typing import Mapping

from docintel.extraction.categories import DETECTABLE_CATEGORIES, DocumentType, SectionType

_CATEGORY_LINES = "\n".join(f"   - {c.value}" for c in DETECTABLE_CATEGORIES)
_DOCUMENT_TYPE_LINES = "\n".join(f'   - "{d.value}"' for d in DocumentType)
_SECTION_TYPE_LINES = "\n".join(f'   - "{s.value}"' for s in SectionType)

# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

CLASSIFICATION_SYSTEM_PROMPT = f"""You are an insurance document classifier. Read the document text and report:

1. document_type, one of:
{_DOCUMENT_TYPE_LINES}

2. coverages_detected: every line of coverage present, using only these ids:
{_CATEGORY_LINES}

3. sections: the major sections with page ranges. section_type is one of:
{_SECTION_TYPE_LINES}

Rules:
- A Business Owners Policy (BOP) contains BOTH "general_liability" AND "commercial_property".
- Package policies usually contain several coverages.
- Form numbers (CG 00 01, CA 00 01, WC 00 00 00, CP 00 10 ...) identify coverages.
- The declarations page lists the purchased coverages.

Respond with one JSON object:
```json
{{
  "document_type": "policy",
  "coverages_detected": ["general_liability", "commercial_property"],
  "sections": [
    {{"section_type": "declarations", "start_page": 1, "end_page": 3, "form_numbers": ["CG 00 01"]}}
  ],
  "confidence": 0.95
}}
```"""


def format_classification_content(
    pages:     Mapping[int, str],
    file_name: str | None,
    max_pages: int,
) -> str:
    parts = ["Please classify this insurance document:\n"]
    if file_name:
        parts.append(f"Filename: {file_name}\n")

    ordered = sorted(pages)
    for page_number in ordered[:max_pages]:
        parts.append(f"\n--- Page {page_number} ---\n{pages[page_number]}")

    omitted = len(ordered) - max_pages
    if omitted > 0:
        parts.append(f"\n\n[Document continues for {omitted} more pages...]\n")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Core record (declarations) extraction
# ---------------------------------------------------------------------------

CORE_RECORD_SYSTEM_PROMPT = """You are an insurance document analyst. Extract the core policy information from the declarations text.

Fields:
- policy_number, quote_number
- effective_date, expiration_date, quote_expiration_date (YYYY-MM-DD)
- carrier_name, carrier_naic (5-digit NAIC code)
- insured_name, insured_address_line1, insured_address_line2, insured_city,
  insured_state (2-letter code), insured_zip
- total_premium (number only, no currency symbol)
- policy_status: "quote" for a proposal, "bound" for a binder, "active" for an issued policy
- confidence: 0.0-1.0, how sure you are of the extraction overall

Use null for anything you cannot find. The policy period is often printed as
"Policy Period: From ... To ...". Premium may be labelled Total, Annual or Policy Premium.

Respond with one JSON object:
```json
{
  "policy_number": "GL-2024-001234",
  "quote_number": null,
  "effective_date": "2024-01-01",
  "expiration_date": "2025-01-01",
  "quote_expiration_date": null,
  "carrier_name": "ABC Insurance Company",
  "carrier_naic": "12345",
  "insured_name": "Test Company LLC",
  "insured_address_line1": "123 Main Street",
  "insured_address_line2": "Suite 100",
  "insured_city": "Minneapolis",
  "insured_state": "MN",
  "insured_zip": "55401",
  "total_premium": 15000.00,
  "policy_status": "active",
  "confidence": 0.92
}
```"""

CHUNK_SEPARATOR = "\n\n---\n\n"


def format_core_record_content(declarations_text: str, document_type: str) -> str:
    return (
        f"Document Type: {document_type}\n\n"
        "Please extract the core policy information from this declarations section:\n\n"
        f"{declarations_text}"
    )
