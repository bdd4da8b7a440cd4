from docintel.extraction.strategies.base import CategoryStrategy
from docintel.extraction.strategies.generic import GenericCategoryStrategy
from docintel.extraction.strategies.registry import StrategyRegistry, build_default_registry

__all__ = [
    "CategoryStrategy",
    "GenericCategoryStrategy",
    "StrategyRegistry",
    "build_default_registry",
]
