"""
Resolver - alias resolution and producer classification.

Both operations return plain result values; "cycle" and "unresolvable"
are ordinary outcomes here. The engine turns them into the typed errors
callers see.
"""

from typing import List, Optional
from dataclasses import dataclass
from enum import Enum

from .producers import AbstractFactoryProducer, FactoryProducer
from .registry import Registry


class Strategy(str, Enum):
    """How a canonical name will be produced."""

    EXPLICIT_FACTORY = "explicit_factory"
    ABSTRACT_FACTORY = "abstract_factory"
    UNRESOLVABLE = "unresolvable"


@dataclass(frozen=True, slots=True)
class CanonicalName:
    """
    Outcome of following an alias chain.

    ``cycle`` is set (and ``canonical`` is the name where the chain looped)
    when a name reappeared before the chain terminated.
    """
    requested: str
    canonical: str
    cycle: Optional[List[str]] = None

    @property
    def ok(self) -> bool:
        return self.cycle is None

    @property
    def is_alias(self) -> bool:
        return self.requested != self.canonical


@dataclass(frozen=True, slots=True)
class Classification:
    """Producer strategy chosen for a canonical name."""
    canonical: str
    strategy: Strategy
    factory: Optional[FactoryProducer] = None
    abstract_factory: Optional[AbstractFactoryProducer] = None

    @property
    def resolvable(self) -> bool:
        return self.strategy is not Strategy.UNRESOLVABLE

    def create(self, container, options=None):
        """Invoke the chosen producer for ``canonical``."""
        if self.strategy is Strategy.EXPLICIT_FACTORY:
            return self.factory.create(container, self.canonical, options)
        return self.abstract_factory.create(container, self.canonical, options)


class Resolver:
    """Read-only view over a Registry that answers routing questions."""

    __slots__ = ("_registry",)

    def __init__(self, registry: Registry):
        self._registry = registry

    def resolve_canonical(self, name: str) -> CanonicalName:
        """
        Follow the alias chain starting at ``name``.

        A non-alias passes through unchanged. A name that reappears ends
        the walk with ``cycle`` set to the chain, closed on the repeated name.
        """
        chain = [name]
        visited = {name}
        current = name
        get_alias = self._registry.get_alias

        while True:
            target = get_alias(current)
            if target is None:
                return CanonicalName(requested=name, canonical=current)
            chain.append(target)
            if target in visited:
                return CanonicalName(requested=name, canonical=target, cycle=chain)
            visited.add(target)
            current = target

    def classify(self, canonical: str, container=None) -> Classification:
        """
        Pick the producer for ``canonical``.

        Explicit factories win; otherwise abstract factories are asked in
        registration order and the first accepting one is used.
        """
        factory = self._registry.get_factory(canonical)
        if factory is not None:
            return Classification(canonical, Strategy.EXPLICIT_FACTORY, factory=factory)

        for abstract_factory in self._registry.abstract_factories:
            if abstract_factory.can_create(container, canonical):
                return Classification(
                    canonical,
                    Strategy.ABSTRACT_FACTORY,
                    abstract_factory=abstract_factory,
                )

        return Classification(canonical, Strategy.UNRESOLVABLE)

    def candidates(self, name: str) -> List[str]:
        """Registered names containing ``name``, for not-found diagnostics."""
        known = list(self._registry.factory_names) + list(self._registry.aliases)
        return sorted(key for key in known if name in key or key in name)
