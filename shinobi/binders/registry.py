#!/usr/bin/env python3
# CUI // SP-CTI
"""Binder strategy registry.

Strategies are consulted in registration order. Each declares an explicit
compatibility matrix, and a strategy whose matrix overlaps an already
registered one is rejected with AmbiguousBinderError, so at most one
strategy can ever match a (source type, capability) pair.
"""

import logging
from typing import Iterable, List, Optional

from shinobi.binders.base import BinderStrategy
from shinobi.binders.strategies import BUILTIN_STRATEGIES
from shinobi.core.errors import AmbiguousBinderError, NoBinderFoundError

logger = logging.getLogger("shinobi.binders.registry")


class BinderRegistry:
    """Ordered collection of binder strategies."""

    def __init__(self, strategies: Optional[Iterable[BinderStrategy]] = None):
        self._strategies: List[BinderStrategy] = []
        for strategy in strategies or []:
            self.register(strategy)

    def register(self, strategy: BinderStrategy) -> None:
        if not strategy.name:
            raise ValueError(f"{type(strategy).__name__} has no name")
        if any(existing.name == strategy.name for existing in self._strategies):
            raise ValueError(f"Binder strategy '{strategy.name}' already registered")
        claimed = set(strategy.compatibility())
        for existing in self._strategies:
            overlap = sorted(claimed & set(existing.compatibility()))
            if overlap:
                raise AmbiguousBinderError(strategy.name, existing.name, overlap)
        self._strategies.append(strategy)
        logger.debug("Registered binder strategy %s (%d pairs)", strategy.name, len(claimed))

    def find(self, source_type: str, capability: str, name: str = "") -> BinderStrategy:
        for strategy in self._strategies:
            if strategy.can_handle(source_type, capability):
                return strategy
        raise NoBinderFoundError(source_type, capability, name=name)

    def strategies(self) -> List[BinderStrategy]:
        return list(self._strategies)

    def supported_bindings(self) -> List[dict]:
        rows = []
        for strategy in self._strategies:
            for source_type, capability in strategy.compatibility():
                rows.append({
                    "strategy": strategy.name,
                    "source_type": source_type,
                    "capability": capability,
                    "access": strategy.supported_access(capability),
                })
        return rows

    def __len__(self) -> int:
        return len(self._strategies)


def default_registry() -> BinderRegistry:
    """Registry holding the built-in strategies in their fixed order."""
    return BinderRegistry(cls() for cls in BUILTIN_STRATEGIES)
