"""
Fact definitions and the default fact provider.

A fact is a named input to rule evaluation. Its value is either a constant or
computed on demand by a callable ``(params, registry) -> value`` that may be a
coroutine function. Each fact carries a priority used to order the conditions
that reference it: higher priority facts are looked up first.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from .errors import RuleConfigurationError, UndefinedFactError
from .log import get_logger
from .models import coerce_priority

logger = get_logger(__name__)


class FactProvider(Protocol):
    """What a rule needs from a fact source."""

    async def resolve(self, fact: str, params: Optional[Dict[str, Any]] = None) -> Any:
        ...

    def lookup(self, fact: str) -> Optional["Fact"]:
        ...


@dataclass
class Fact:
    """A registered fact."""

    name: str
    value: Any = None
    priority: int = 1
    cache: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise RuleConfigurationError("Fact name is required")
        self.priority = coerce_priority(self.priority)

    @property
    def is_constant(self) -> bool:
        return not callable(self.value)

    async def calculate(self, params: Dict[str, Any], registry: "FactRegistry") -> Any:
        """Compute the fact value for the given params."""
        if self.is_constant:
            return self.value
        result = self.value(params, registry)
        if inspect.isawaitable(result):
            result = await result
        return result


def _cache_key(name: str, params: Mapping[str, Any]) -> Tuple[str, str]:
    return name, json.dumps(params, sort_keys=True, default=str)


class FactRegistry:
    """
    In-memory fact provider.

    Computed values of facts with ``cache=True`` are memoised per
    ``(fact, params)`` for the lifetime of the registry or until
    ``clear_cache`` is called. The pending computation is cached, so
    concurrent lookups of the same value share one call; failed computations
    are dropped from the cache.
    """

    def __init__(self, facts: Optional[Mapping[str, Any]] = None):
        """
        Initialize the registry.

        Args:
            facts: Optional constant facts, name -> value.
        """
        self._facts: Dict[str, Fact] = {}
        self._cache: Dict[Tuple[str, str], "asyncio.Future[Any]"] = {}
        for name, value in (facts or {}).items():
            self.add_fact(name, value)

    def add_fact(
        self,
        name: str | Fact,
        value: Any = None,
        priority: int = 1,
        cache: bool = True,
    ) -> Fact:
        """Register a fact, replacing any previous fact with the same name."""
        fact = name if isinstance(name, Fact) else Fact(name, value, priority, cache)
        self._facts[fact.name] = fact
        self._drop_cached(fact.name)
        logger.debug("fact_added", fact=fact.name, priority=fact.priority)
        return fact

    def remove_fact(self, name: str) -> bool:
        """Remove a fact. Returns False if it was not registered."""
        if name not in self._facts:
            return False
        del self._facts[name]
        self._drop_cached(name)
        return True

    def lookup(self, fact: str) -> Optional[Fact]:
        return self._facts.get(fact)

    async def resolve(self, fact: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Resolve a fact value.

        Raises:
            UndefinedFactError: If the fact is not registered.
        """
        definition = self.lookup(fact)
        if definition is None:
            raise UndefinedFactError(fact)

        params = params or {}
        if definition.is_constant:
            return definition.value

        if not definition.cache:
            return await definition.calculate(params, self)

        key = _cache_key(fact, params)
        pending = self._cache.get(key)
        if pending is None:
            pending = asyncio.ensure_future(definition.calculate(params, self))
            self._cache[key] = pending
        else:
            logger.debug("fact_cache_hit", fact=fact, params=params)

        try:
            return await asyncio.shield(pending)
        except Exception:
            if self._cache.get(key) is pending:
                del self._cache[key]
            raise

    def clear_cache(self) -> None:
        self._cache.clear()

    def _drop_cached(self, name: str) -> None:
        for key in [k for k in self._cache if k[0] == name]:
            del self._cache[key]

    def __contains__(self, name: str) -> bool:
        return name in self._facts

    def __len__(self) -> int:
        return len(self._facts)
