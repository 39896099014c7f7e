"""
Tessera Testing - service manager testing utilities.

Provides :class:`TestServiceManager`, :func:`override_service` and
:func:`spy_factory` for swapping and observing services in tests.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from .core import ServiceManager
from .producers import FactoryProducer, Options
from .registry import Registry


class _SpyFactory:
    """
    Factory that wraps a real factory, delegates to it, and tracks calls.
    """

    def __init__(self, real: FactoryProducer):
        self._real = real
        self.call_count = 0
        self.calls: List[tuple] = []
        self.created: List[Any] = []

    def __call__(self, container: Any, name: str, options: Options = None) -> Any:
        self.call_count += 1
        self.calls.append((name, options))
        instance = self._real.create(container, name, options)
        self.created.append(instance)
        return instance


class TestServiceManager(ServiceManager):
    """
    A :class:`ServiceManager` tailored for testing.

    Differences from the production manager:
    - Overrides always allowed (re-registering replaces silently).
    - Records every requested name in ``resolution_log``.
    - ``reset()`` also clears the resolution log.

    Usage::

        manager = TestServiceManager()
        manager.set_service("db", fake_db)
        assert manager.get("db") is fake_db
    """

    __test__ = False  # not a pytest test class

    def __init__(self, config: Optional[Any] = None, **kw):
        kw.setdefault("registry", Registry(allow_override=True))
        kw["allow_override"] = True
        self.resolution_log: List[str] = []
        super().__init__(config, **kw)

    def get(self, name: str, options: Options = None) -> Any:
        self.resolution_log.append(name)
        return super().get(name, options)

    def build(self, name: str, options: Options = None) -> Any:
        self.resolution_log.append(name)
        return super().build(name, options)

    def register_value(self, name: str, value: Any) -> None:
        """Shortcut: a factory that always returns ``value``."""
        self.register_factory(name, lambda container, requested, options=None: value)

    def reset(self) -> None:
        """Clear cached instances and the resolution log."""
        super().reset()
        self.resolution_log.clear()


@contextmanager
def override_service(
    manager: ServiceManager,
    name: str,
    instance: Any,
) -> Iterator[Any]:
    """
    Temporarily make ``get(name)`` return ``instance``.

    The previously cached instance (if any) is restored on exit.

    Usage::

        with override_service(manager, "mailer", FakeMailer()) as fake:
            send_welcome(manager)
            assert fake.sent
    """
    canonical = manager.resolve_canonical(name)
    cache = manager._cache
    original = cache.get(canonical)
    was_installed = canonical in manager._services

    cache.set(canonical, instance)
    manager._services.add(canonical)

    try:
        yield instance
    finally:
        if original is cache.MISSING:
            cache.forget(canonical)
        else:
            cache.set(canonical, original)
        if not was_installed:
            manager._services.discard(canonical)


@contextmanager
def spy_factory(manager: ServiceManager, name: str) -> Iterator[_SpyFactory]:
    """
    Wrap the factory registered for ``name`` with a spy that tracks calls.

    The real factory's behavior is preserved. The cached instance is
    dropped on entry and exit so the spy observes real constructions.

    Usage::

        with spy_factory(manager, "repo") as spy:
            manager.build("repo")
            assert spy.call_count == 1
    """
    registry = manager.registry
    canonical = manager.resolve_canonical(name)
    original = registry.get_factory(canonical)
    if original is None:
        raise KeyError(f"No factory registered for {name!r}")

    spy = _SpyFactory(original)
    registry._factories[canonical] = FactoryProducer(spy, service=canonical)
    manager.forget(canonical)

    try:
        yield spy
    finally:
        registry._factories[canonical] = original
        manager.forget(canonical)
