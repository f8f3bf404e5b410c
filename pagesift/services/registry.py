"""Name-keyed strategy lookup.

Both tables are built once at import and exposed read-only. Lookups are
exact and case-sensitive; an unknown name is a ConfigurationError.
"""

from types import MappingProxyType
from typing import Mapping

from pagesift.core.exceptions import ConfigurationError
from pagesift.schemas.strategy import StrategyDescriptor
from pagesift.services.extraction import (
    BrowserStrategy,
    ExtractionStrategy,
    FetchHeadersStrategy,
    FetchStrategy,
)
from pagesift.services.ip_strategy import DirectIP, IPStrategy, ProxiedIP


def _index(strategies) -> Mapping:
    table = {}
    for strategy in strategies:
        if strategy.name in table:
            raise ConfigurationError(f"Duplicate strategy name: {strategy.name}")
        table[strategy.name] = strategy
    return MappingProxyType(table)


IP_STRATEGIES: Mapping[str, IPStrategy] = _index([DirectIP(), ProxiedIP()])

EXTRACTION_STRATEGIES: Mapping[str, ExtractionStrategy] = _index(
    [FetchStrategy(), FetchHeadersStrategy(), BrowserStrategy()]
)


def get_ip_strategy(name: str) -> IPStrategy:
    try:
        return IP_STRATEGIES[name]
    except KeyError:
        raise ConfigurationError(f"Unknown IP strategy: {name}") from None


def get_extraction_strategy(name: str) -> ExtractionStrategy:
    try:
        return EXTRACTION_STRATEGIES[name]
    except KeyError:
        raise ConfigurationError(f"Unknown extraction strategy: {name}") from None


def resolve_extraction_strategies(names) -> list[ExtractionStrategy]:
    """Look up every name up front so a typo fails before any network work."""
    return [get_extraction_strategy(name) for name in names]


def list_ip_strategies() -> list[StrategyDescriptor]:
    return [s.descriptor for s in IP_STRATEGIES.values()]


def list_extraction_strategies() -> list[StrategyDescriptor]:
    return [s.descriptor for s in EXTRACTION_STRATEGIES.values()]
