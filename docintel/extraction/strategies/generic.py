"""Fallback strategy for category ids no other strategy claims."""

from __future__ import annotations

from typing import Any

from docintel.extraction.models import CommonFields
from docintel.extraction.strategies import prompts
from docintel.extraction.strategies.base import COMMON_FIELD_KEYS, CategoryStrategy


class GenericCategoryStrategy(CategoryStrategy):
    """
    Populates details only. Limits and flags stay in details too, since
    nothing is known about what they mean for an unrecognised coverage.
    """

    name = "generic"

    def system_prompt(self, category_id: str) -> str:
        return prompts.GENERIC_PROMPT

    def common_fields(self, data: dict[str, Any]) -> CommonFields:
        return CommonFields()

    def details(self, data: dict[str, Any]) -> dict[str, Any]:
        nested = data.get("details")
        details = dict(nested) if isinstance(nested, dict) else {}
        for key in COMMON_FIELD_KEYS:
            if key not in details and data.get(key) is not None:
                details[key] = data[key]
        return details
