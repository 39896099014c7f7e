"""
Registry - static mapping of service names to producers.

The registry is populated during setup (directly or from a ServiceConfig),
then frozen and handed by reference to a ServiceManager, which only reads
from it while serving requests.
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass
import logging

from .errors import DuplicateServiceError, RegistryFrozenError
from .producers import (
    AbstractFactoryProducer,
    DelegatorProducer,
    FactoryProducer,
    InitializerProducer,
)

logger = logging.getLogger("tessera.registry")


@dataclass(frozen=True)
class ValidationIssue:
    """A problem found by ``Registry.validate()``."""

    level: str  # "error" or "warning"
    name: str
    message: str

    def __str__(self) -> str:
        return f"[{self.level}] {self.name}: {self.message}"


class Registry:
    """
    Holds every producer registration plus the shared policy per name.

    Args:
        allow_override: If False, replacing an existing factory or alias
            raises DuplicateServiceError
        shared_by_default: Shared flag for names without an explicit one
        diagnostics: Optional Diagnostics coordinator for registration events
    """

    def __init__(
        self,
        *,
        allow_override: bool = True,
        shared_by_default: bool = True,
        diagnostics: Optional[Any] = None,
    ):
        self.allow_override = allow_override
        self.shared_by_default = shared_by_default
        self._diagnostics = diagnostics

        self._factories: Dict[str, FactoryProducer] = {}
        self._abstract_factories: List[AbstractFactoryProducer] = []
        self._aliases: Dict[str, str] = {}
        self._delegators: Dict[str, List[DelegatorProducer]] = {}
        self._initializers: List[InitializerProducer] = []
        self._shared: Dict[str, bool] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "Registry":
        """Reject any further registration. Returns self for chaining."""
        self._frozen = True
        logger.debug(
            "Registry frozen with %d factories, %d aliases, %d abstract factories",
            len(self._factories), len(self._aliases), len(self._abstract_factories),
        )
        return self

    def _check_mutable(self, name: Optional[str] = None) -> None:
        if self._frozen:
            raise RegistryFrozenError(name)

    def _emit(self, name: Optional[str], producer: Any, kind: str) -> None:
        if self._diagnostics is None:
            return
        from .diagnostics import EventType
        self._diagnostics.emit(
            EventType.REGISTRATION,
            name=name,
            producer=getattr(getattr(producer, "meta", None), "qualname", str(producer)),
            metadata={"kind": kind},
        )

    # ------------------------------------------------------------------
    # Registration surface
    # ------------------------------------------------------------------

    def register_factory(self, name: str, factory: Any) -> FactoryProducer:
        """
        Register the factory for ``name`` (last write wins).

        Args:
            name: Service name
            factory: Callable ``(container, name, options)``, a callable
                object, or a ``"package.module:attr"`` reference

        Returns:
            The normalized producer

        Raises:
            DuplicateServiceError: If overrides are disabled and ``name``
                already has a different factory or is an alias
        """
        self._check_mutable(name)
        _require_name(name)
        producer = factory if isinstance(factory, FactoryProducer) else FactoryProducer(factory, service=name)

        existing = self._factories.get(name)
        if existing is not None and existing != producer and not self.allow_override:
            raise DuplicateServiceError(name, kind="factory")
        if name in self._aliases:
            if not self.allow_override:
                raise DuplicateServiceError(name, kind="alias")
            del self._aliases[name]

        self._factories[name] = producer
        self._emit(name, producer, "factory")
        return producer

    def register_abstract_factory(self, factory: Any) -> AbstractFactoryProducer:
        """Append an abstract factory. Registering the same object twice is a no-op."""
        self._check_mutable()
        producer = (
            factory
            if isinstance(factory, AbstractFactoryProducer)
            else AbstractFactoryProducer(factory)
        )
        for existing in self._abstract_factories:
            if existing == producer:
                return existing

        self._abstract_factories.append(producer)
        self._emit(None, producer, "abstract_factory")
        return producer

    def register_alias(self, name: str, target: str) -> None:
        """
        Map ``name`` to ``target``.

        The target does not have to be resolvable yet; cycles are detected
        at request time.
        """
        self._check_mutable(name)
        _require_name(name)
        _require_name(target)

        existing = self._aliases.get(name)
        if existing is not None and existing != target and not self.allow_override:
            raise DuplicateServiceError(name, kind="alias")
        if name in self._factories:
            if not self.allow_override:
                raise DuplicateServiceError(name, kind="factory")
            del self._factories[name]

        self._aliases[name] = target
        self._emit(name, target, "alias")

    def register_delegator(self, name: str, delegator: Any) -> DelegatorProducer:
        """Append a delegator for ``name``; the last registered is outermost."""
        self._check_mutable(name)
        _require_name(name)
        producer = (
            delegator
            if isinstance(delegator, DelegatorProducer)
            else DelegatorProducer(delegator, service=name)
        )
        self._delegators.setdefault(name, []).append(producer)
        self._emit(name, producer, "delegator")
        return producer

    def register_initializer(self, initializer: Any) -> InitializerProducer:
        """Append an initializer applied to every newly built instance."""
        self._check_mutable()
        producer = (
            initializer
            if isinstance(initializer, InitializerProducer)
            else InitializerProducer(initializer)
        )
        self._initializers.append(producer)
        self._emit(None, producer, "initializer")
        return producer

    def set_shared(self, name: str, shared: bool) -> None:
        self._check_mutable(name)
        _require_name(name)
        self._shared[name] = bool(shared)

    # ------------------------------------------------------------------
    # Read access (used by the resolver and engine)
    # ------------------------------------------------------------------

    def get_factory(self, name: str) -> Optional[FactoryProducer]:
        return self._factories.get(name)

    def get_alias(self, name: str) -> Optional[str]:
        return self._aliases.get(name)

    def get_delegators(self, name: str) -> Tuple[DelegatorProducer, ...]:
        return tuple(self._delegators.get(name, ()))

    @property
    def abstract_factories(self) -> Tuple[AbstractFactoryProducer, ...]:
        return tuple(self._abstract_factories)

    @property
    def initializers(self) -> Tuple[InitializerProducer, ...]:
        return tuple(self._initializers)

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    @property
    def factory_names(self) -> List[str]:
        return list(self._factories)

    @property
    def delegated_names(self) -> List[str]:
        return [name for name, chain in self._delegators.items() if chain]

    @property
    def shared_flags(self) -> Dict[str, bool]:
        return dict(self._shared)

    def is_shared(self, name: str) -> bool:
        return self._shared.get(name, self.shared_by_default)

    def has_explicit_shared(self, name: str) -> bool:
        return name in self._shared

    # ------------------------------------------------------------------
    # Static analysis
    # ------------------------------------------------------------------

    def validate(self) -> List[ValidationIssue]:
        """
        Statically check the registrations without constructing anything.

        Reports:
        - alias cycles (error)
        - aliases whose target has no explicit factory (error, or warning
          when abstract factories are registered and might accept it)
        - delegators and shared flags for names that are never produced
          explicitly (warning)
        """
        from .resolver import Resolver

        resolver = Resolver(self)
        issues: List[ValidationIssue] = []
        dangling_level = "warning" if self._abstract_factories else "error"

        for alias in sorted(self._aliases):
            result = resolver.resolve_canonical(alias)
            if result.cycle is not None:
                issues.append(ValidationIssue(
                    "error", alias, "alias cycle: " + " -> ".join(result.cycle)
                ))
            elif result.canonical not in self._factories:
                issues.append(ValidationIssue(
                    dangling_level,
                    alias,
                    f"alias target '{result.canonical}' has no registered factory",
                ))

        explicit = set(self._factories) | set(self._aliases)
        # Abstract factories may accept any name.
        unknown_is_suspicious = not self._abstract_factories
        for name in sorted(self.delegated_names):
            if name in self._aliases:
                issues.append(ValidationIssue(
                    "warning", name,
                    "delegators registered on an alias are never applied; "
                    "register them on the canonical name",
                ))
            elif name not in explicit and unknown_is_suspicious:
                issues.append(ValidationIssue(
                    "warning", name, "delegators registered for a name with no factory"
                ))

        for name in sorted(self._shared):
            if name not in explicit and unknown_is_suspicious:
                issues.append(ValidationIssue(
                    "warning", name, "shared flag set for a name with no factory"
                ))

        return issues

    def describe(self) -> Dict[str, Any]:
        """Summary of registrations grouped by kind."""
        return {
            "factories": {
                name: producer.meta.qualname for name, producer in self._factories.items()
            },
            "aliases": dict(self._aliases),
            "abstract_factories": [p.meta.qualname for p in self._abstract_factories],
            "delegators": {
                name: [p.meta.qualname for p in chain]
                for name, chain in self._delegators.items()
            },
            "initializers": [p.meta.qualname for p in self._initializers],
            "shared": dict(self._shared),
            "shared_by_default": self.shared_by_default,
            "allow_override": self.allow_override,
            "frozen": self._frozen,
        }


def _require_name(name: str) -> None:
    if not isinstance(name, str) or not name:
        raise ValueError(f"service name must be a non-empty string, got {name!r}")
