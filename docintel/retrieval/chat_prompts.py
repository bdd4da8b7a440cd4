"""
Prompts for retrieval-augmented policy chat.

The user turn carries the retrieved excerpts, each labelled with its
document, page range and section so the model can cite them as
[Source: Page X] / [Source: Pages X-Y]. In balanced mode excerpts are
grouped per record so comparisons stay attributable.
"""

from __future__ import annotations

from typing import Final, Sequence

from docintel.retrieval.base import SearchHit

CHAT_SYSTEM_PROMPT: Final[str] = """\
You are an expert insurance policy analyst helping users understand their coverage.

## Your Role
- Answer questions about insurance policies accurately and helpfully
- Always cite specific sections when referencing policy language
- Use plain language while maintaining accuracy

## Citation Format
When referencing policy content, use this format: [Source: Page X]
For a page range: [Source: Pages X-Y]
For section-specific references: [Source: Page X, Section: Y]
Always include citations for factual claims about the user's specific coverage, limits, or exclusions.

## Important Guidelines
1. Answer using the policy excerpts AND your general insurance knowledge
2. Don't make up specific details about the USER'S policy - cite documents for their specific coverage
3. Distinguish between what IS covered and what is NOT covered
4. For limits and deductibles, quote exact figures from the documents
5. If several policies are provided, be clear about which policy you are referencing

You should NOT tell the user exactly what coverage to purchase, or guarantee that their
coverage is "enough" for their situation.
"""

DEGRADED_NOTE: Final[str] = (
    "[Note: Document search is temporarily unavailable. "
    "Please answer based on general knowledge about insurance policies.]"
)

NO_EXCERPTS_NOTE: Final[str] = "*No relevant policy excerpts found for this query.*"

_SECTION_LABELS: Final[dict[str, str]] = {
    "declarations":  "Declarations",
    "coverage_form": "Coverage Form",
    "endorsements":  "Endorsements",
    "schedule":      "Schedule",
    "conditions":    "Conditions",
    "exclusions":    "Exclusions",
    "definitions":   "Definitions",
}


def format_section_type(section_type: str) -> str:
    label = _SECTION_LABELS.get(section_type)
    if label:
        return label
    return " ".join(part.capitalize() for part in section_type.split("_") if part)


def format_excerpt(hit: SearchHit) -> str:
    label = f"[Document: {hit.document_name or 'Unknown document'}, {hit.page_label}"
    if hit.section_type:
        label += f", Section: {format_section_type(hit.section_type)}"
    return f"{label}]\n{hit.text}"


def _excerpt_block(hits: Sequence[SearchHit]) -> list[str]:
    lines: list[str] = []
    for hit in hits:
        lines.append("---")
        lines.append(format_excerpt(hit))
    lines.append("---")
    return lines


def build_context_prompt(hits: Sequence[SearchHit], question: str, balanced: bool = False) -> str:
    lines = ["## Policy Excerpts", ""]

    if not hits:
        lines.append(NO_EXCERPTS_NOTE)
    elif balanced:
        groups: dict[str, list[SearchHit]] = {}
        for hit in hits:
            groups.setdefault(hit.record_id, []).append(hit)
        for position, (record_id, group) in enumerate(groups.items(), start=1):
            name = next((h.document_name for h in group if h.document_name), record_id)
            lines.append(f"### Policy {position}: {name}")
            lines.extend(_excerpt_block(group))
            lines.append("")
    else:
        lines.extend(_excerpt_block(hits))

    lines.extend(["", "## Current Question", question])
    return "\n".join(lines)
