"""
Core construction engine.

``ServiceManager`` turns a requested name plus construction options into a
fully built instance: alias resolution, shared-instance caching, delegator
chains, initializers and circular-dependency detection.
"""

from typing import Any, Dict, List, Optional, Set, Type, Union
from contextvars import ContextVar
import logging

from .cache import InstanceCache
from .delegators import LazyServiceDelegator, LazyServiceProxy, build_chain
from .diagnostics import Diagnostics, EventType
from .errors import (
    AliasCycleError,
    CircularDependencyError,
    DuplicateServiceError,
    ServiceNotFoundError,
)
from .producers import (
    AbstractFactoryProducer,
    DelegatorProducer,
    FactoryProducer,
    InitializerProducer,
    InvokableFactory,
    Options,
)
from .registry import Registry
from .resolver import Classification, Resolver, Strategy

logger = logging.getLogger("tessera.core")


class ResolveCtx:
    """
    Per-call resolution context.

    Tracks the resolution stack for cycle detection. One context exists per
    top-level ``get()``/``build()`` call; nested requests made by factories,
    delegators or initializers on the same thread reuse it.
    """
    __slots__ = ("manager", "stack")

    def __init__(self, manager: "ServiceManager"):
        self.manager = manager
        self.stack: List[str] = []

    def push(self, name: str) -> None:
        """Push a canonical name onto the resolution stack."""
        self.stack.append(name)

    def pop(self) -> None:
        """Pop the innermost name."""
        self.stack.pop()

    def in_cycle(self, name: str) -> bool:
        """Check if name is currently being resolved."""
        return name in self.stack

    def cycle_to(self, name: str) -> List[str]:
        """Cycle path from the first occurrence of ``name``, closed on ``name``."""
        start = self.stack.index(name)
        return self.stack[start:] + [name]

    def get_trace(self) -> List[str]:
        """Get current resolution trace for error messages."""
        return self.stack.copy()


class ServiceManager:
    """
    Service manager - builds services by name from an explicit Registry.

    Args:
        config: Optional ServiceConfig (or plain dict) applied immediately
        registry: Registry to serve from; a new empty one by default
        allow_override: Overrides the registry's override policy when given
        shared_by_default: Overrides the registry's default shared flag when given
        diagnostics: Diagnostics coordinator; a silent one by default

    Example:
        manager = ServiceManager()
        manager.register_factory("mailer", lambda c, name, options: Mailer())
        mailer = manager.get("mailer")
    """

    def __init__(
        self,
        config: Optional[Any] = None,
        *,
        registry: Optional[Registry] = None,
        allow_override: Optional[bool] = None,
        shared_by_default: Optional[bool] = None,
        diagnostics: Optional[Diagnostics] = None,
    ):
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._registry = registry if registry is not None else Registry(diagnostics=self._diagnostics)
        if allow_override is not None:
            self._registry.allow_override = allow_override
        if shared_by_default is not None:
            self._registry.shared_by_default = shared_by_default

        self._resolver = Resolver(self._registry)
        self._cache = InstanceCache()
        self._services: Set[str] = set()  # names installed through set_service()
        self._resolution: ContextVar[Optional[ResolveCtx]] = ContextVar(
            f"tessera.resolution.{id(self)}", default=None
        )

        if config is not None:
            self.configure(config)

    # ------------------------------------------------------------------
    # Public resolution API
    # ------------------------------------------------------------------

    def get(self, name: str, options: Options = None) -> Any:
        """
        Return the service registered as ``name``.

        Shared services are constructed once and cached. A cache hit
        returns the cached instance and ignores ``options``.

        Raises:
            ServiceNotFoundError: Nothing can create the service
            AliasCycleError: The alias chain for ``name`` loops
            CircularDependencyError: The service requires itself
        """
        return self._resolve(name, options, use_cache=True)

    def build(self, name: str, options: Options = None) -> Any:
        """Always construct a fresh instance; never reads or writes the cache."""
        return self._resolve(name, options, use_cache=False)

    def has(self, name: str) -> bool:
        """True if ``get(name)`` can find a producer. Constructs nothing."""
        if not isinstance(name, str) or not name:
            return False

        resolution = self._resolver.resolve_canonical(name)
        if not resolution.ok:
            return False

        canonical = resolution.canonical
        if canonical in self._services and canonical in self._cache:
            return True
        return self._resolver.classify(canonical, self).resolvable

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def resolve_canonical(self, name: str) -> str:
        """Canonical name for ``name``, following aliases."""
        resolution = self._resolver.resolve_canonical(name)
        if not resolution.ok:
            raise AliasCycleError(resolution.cycle)
        return resolution.canonical

    @property
    def resolution_stack(self) -> List[str]:
        """Names currently being resolved on this thread/context."""
        ctx = self._resolution.get()
        return ctx.get_trace() if ctx is not None else []

    def _resolve(self, name: str, options: Options, use_cache: bool) -> Any:
        if not isinstance(name, str) or not name:
            raise ValueError(f"service name must be a non-empty string, got {name!r}")

        resolution = self._resolver.resolve_canonical(name)
        if not resolution.ok:
            raise AliasCycleError(resolution.cycle)
        canonical = resolution.canonical

        # Fast path: shared and already built
        if use_cache and self._is_cacheable(canonical):
            cached = self._cache.get(canonical)
            if cached is not InstanceCache.MISSING:
                self._diagnostics.emit(EventType.CACHE_HIT, name=canonical, requested=name)
                return cached

        ctx = self._resolution.get()
        token = None
        if ctx is None:
            ctx = ResolveCtx(self)
            token = self._resolution.set(ctx)

        try:
            if ctx.in_cycle(canonical):
                raise CircularDependencyError(ctx.cycle_to(canonical))

            ctx.push(canonical)
            try:
                instance = self._construct(canonical, name, options)
            finally:
                ctx.pop()
        finally:
            if token is not None:
                self._resolution.reset(token)

        if use_cache and self._registry.is_shared(canonical):
            # First writer keeps the slot; a racing loser still gets its own instance
            self._cache.set_if_absent(canonical, instance)

        return instance

    def _construct(self, canonical: str, requested: str, options: Options) -> Any:
        classification = self._resolver.classify(canonical, self)
        if not classification.resolvable:
            raise ServiceNotFoundError(
                canonical,
                requested_as=requested,
                candidates=self._resolver.candidates(canonical),
            )

        with self._diagnostics.measure(
            name=canonical,
            requested=requested,
            producer=_producer_name(classification),
        ):
            def base() -> Any:
                return classification.create(self, options)

            delegators = self._registry.get_delegators(canonical)
            if delegators:
                instance = build_chain(delegators, base, self, canonical, options)()
            else:
                instance = base()

            if isinstance(instance, LazyServiceProxy) and not instance.lazy_initialized:
                instance.on_resolve(self._initialize)
            else:
                self._initialize(instance)

        logger.debug("Constructed service '%s' via %s", canonical, classification.strategy.value)
        return instance

    def _initialize(self, instance: Any) -> None:
        for initializer in self._registry.initializers:
            initializer.initialize(self, instance)

    def _is_cacheable(self, canonical: str) -> bool:
        return canonical in self._services or self._registry.is_shared(canonical)

    # ------------------------------------------------------------------
    # Instance management
    # ------------------------------------------------------------------

    def set_service(self, name: str, instance: Any) -> None:
        """
        Install a pre-built instance under ``name``.

        The instance is returned by ``get()`` whatever the shared flag says.

        Raises:
            DuplicateServiceError: Overrides are disabled and ``name``
                already holds an instance
        """
        canonical = self.resolve_canonical(name)
        if not self._registry.allow_override and canonical in self._cache:
            raise DuplicateServiceError(canonical, kind="service instance")

        self._cache.set(canonical, instance)
        self._services.add(canonical)
        logger.debug("Installed instance for service '%s'", canonical)

    def forget(self, name: str) -> bool:
        """Drop the cached instance for ``name`` (alias-aware)."""
        canonical = self.resolve_canonical(name)
        self._services.discard(canonical)
        removed = self._cache.forget(canonical)
        if removed:
            self._diagnostics.emit(EventType.CACHE_FORGET, name=canonical, requested=name)
        return removed

    def reset(self) -> None:
        """Drop every cached and installed instance."""
        self._cache.clear()
        self._services.clear()

    def is_cached(self, name: str) -> bool:
        return self.resolve_canonical(name) in self._cache

    # ------------------------------------------------------------------
    # Registration (setup phase)
    # ------------------------------------------------------------------

    def register_factory(self, name: str, factory: Any) -> FactoryProducer:
        """Register a factory; a cached instance of ``name`` is forgotten."""
        producer = self._registry.register_factory(name, factory)
        self._invalidate(name)
        return producer

    def register_invokable(self, name: str, cls: Union[Type[Any], str]) -> FactoryProducer:
        """Register ``cls`` to be constructed without collaborators."""
        return self.register_factory(name, InvokableFactory(cls))

    def register_abstract_factory(self, factory: Any) -> AbstractFactoryProducer:
        return self._registry.register_abstract_factory(factory)

    def register_alias(self, name: str, target: str) -> None:
        self._registry.register_alias(name, target)
        self._invalidate(name)

    def register_delegator(self, name: str, delegator: Any) -> DelegatorProducer:
        return self._registry.register_delegator(name, delegator)

    def register_lazy_service(self, name: str) -> DelegatorProducer:
        """Defer construction of ``name`` until first use."""
        return self._registry.register_delegator(name, LazyServiceDelegator())

    def register_initializer(self, initializer: Any) -> InitializerProducer:
        return self._registry.register_initializer(initializer)

    def set_shared(self, name: str, shared: bool) -> None:
        self._registry.set_shared(name, shared)

    def _invalidate(self, name: str) -> None:
        self._services.discard(name)
        if self._cache.forget(name):
            self._diagnostics.emit(EventType.CACHE_FORGET, name=name)

    def configure(self, config: Any) -> "ServiceManager":
        """
        Apply a declarative ServiceConfig (or a plain dict in the same shape).

        Sections are applied in a fixed order: policy flags, services,
        factories, invokables, abstract factories, aliases, delegators,
        lazy services, initializers, shared flags.
        """
        from .config import ServiceConfig

        if not isinstance(config, ServiceConfig):
            config = ServiceConfig.from_dict(config)

        if config.allow_override is not None:
            self._registry.allow_override = config.allow_override
        if config.shared_by_default is not None:
            self._registry.shared_by_default = config.shared_by_default

        for name, instance in config.services.items():
            self.set_service(name, instance)
        for name, factory in config.factories.items():
            self.register_factory(name, factory)
        for name, cls in config.invokables.items():
            self.register_invokable(name, cls)
        for factory in config.abstract_factories:
            self.register_abstract_factory(factory)
        for name, target in config.aliases.items():
            self.register_alias(name, target)
        for name, chain in config.delegators.items():
            for delegator in chain:
                self.register_delegator(name, delegator)
        for name in config.lazy_services:
            self.register_lazy_service(name)
        for initializer in config.initializers:
            self.register_initializer(initializer)
        for name, shared in config.shared.items():
            self.set_shared(name, shared)

        logger.debug("Applied service configuration: %s", config.summary())
        return self

    def freeze(self) -> "ServiceManager":
        """Freeze the registry; the manager keeps serving requests."""
        self._registry.freeze()
        return self

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def diagnostics(self) -> Diagnostics:
        return self._diagnostics

    def classify(self, name: str) -> Classification:
        """Producer strategy for ``name`` (alias-aware). Constructs nothing."""
        return self._resolver.classify(self.resolve_canonical(name), self)

    def describe(self) -> Dict[str, Any]:
        """Registry summary plus the names currently holding instances."""
        summary = self._registry.describe()
        summary["services"] = sorted(self._services)
        summary["cached"] = sorted(self._cache.names())
        return summary

    def __repr__(self) -> str:
        return (
            f"<ServiceManager factories={len(self._registry.factory_names)} "
            f"aliases={len(self._registry.aliases)} cached={len(self._cache)}>"
        )


def _producer_name(classification: Classification) -> Optional[str]:
    if classification.strategy is Strategy.EXPLICIT_FACTORY:
        return classification.factory.meta.qualname
    if classification.strategy is Strategy.ABSTRACT_FACTORY:
        return classification.abstract_factory.meta.qualname
    return None
