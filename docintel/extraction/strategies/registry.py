"""
Category → strategy dispatch table.

New categories are added by registering a mapping entry; existing
strategies are never edited for that. get_strategy() is total: any id
that was not registered resolves to the fallback.
"""

from __future__ import annotations

import logging

from docintel.extraction.categories import CoverageCategory, normalize_category_id
from docintel.extraction.strategies.base import CategoryStrategy
from docintel.extraction.strategies.dedicated import (
    BusinessAutoStrategy,
    CommercialPropertyStrategy,
    GeneralLiabilityStrategy,
    UmbrellaExcessStrategy,
    WorkersCompStrategy,
)
from docintel.extraction.strategies.generic import GenericCategoryStrategy
from docintel.extraction.strategies.shared import (
    ClaimsMadeLiabilityStrategy,
    CrimeSuretyStrategy,
    MarineEquipmentStrategy,
    PropertyExtensionStrategy,
    SpecializedLiabilityStrategy,
)
from docintel.llm.completion import CompletionService

logger = logging.getLogger(__name__)

STRATEGY_CLASSES: tuple[type[CategoryStrategy], ...] = (
    GeneralLiabilityStrategy,
    CommercialPropertyStrategy,
    BusinessAutoStrategy,
    WorkersCompStrategy,
    UmbrellaExcessStrategy,
    ClaimsMadeLiabilityStrategy,
    PropertyExtensionStrategy,
    MarineEquipmentStrategy,
    SpecializedLiabilityStrategy,
    CrimeSuretyStrategy,
)


class StrategyRegistry:

    def __init__(self, fallback: CategoryStrategy) -> None:
        self._fallback = fallback
        self._by_category: dict[str, CategoryStrategy] = {}

    @property
    def fallback(self) -> CategoryStrategy:
        return self._fallback

    def register(self, category: CoverageCategory | str, strategy: CategoryStrategy) -> None:
        key = normalize_category_id(category)
        previous = self._by_category.get(key)
        if previous is not None and previous is not strategy:
            logger.warning(
                "StrategyRegistry | re-registering category=%s old=%s new=%s",
                key, previous.name, strategy.name,
            )
        self._by_category[key] = strategy

    def get_strategy(self, category_id: str) -> CategoryStrategy:
        return self._by_category.get(normalize_category_id(category_id), self._fallback)

    def strategies(self) -> list[CategoryStrategy]:
        """Distinct registered strategies, in registration order, fallback excluded."""
        seen: dict[int, CategoryStrategy] = {}
        for strategy in self._by_category.values():
            seen.setdefault(id(strategy), strategy)
        return list(seen.values())

    def covered_categories(self) -> frozenset[str]:
        return frozenset(self._by_category)


def build_default_registry(completion: CompletionService) -> StrategyRegistry:
    registry = StrategyRegistry(fallback=GenericCategoryStrategy(completion))
    for strategy_cls in STRATEGY_CLASSES:
        strategy = strategy_cls(completion)
        for category in strategy.categories:
            registry.register(category, strategy)

    logger.debug(
        "StrategyRegistry | strategies=%d categories=%d",
        len(registry.strategies()), len(registry.covered_categories()),
    )
    return registry
