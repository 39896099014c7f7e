"""
Producer variants - the explicitly registered units that build services.

Every registration is normalized into one of four tagged producer types
(factory, abstract factory, delegator, initializer). The engine only ever
talks to these wrappers, so application code may register plain callables,
callable objects, or lazy ``"package.module:attr"`` references.
"""

from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Type,
    runtime_checkable,
)
from dataclasses import dataclass
from enum import Enum
import importlib
import inspect

from .errors import InvalidServiceError


Options = Optional[Mapping[str, Any]]


class ProducerKind(str, Enum):
    """Kinds of registered producers."""

    FACTORY = "factory"
    ABSTRACT_FACTORY = "abstract_factory"
    DELEGATOR = "delegator"
    INITIALIZER = "initializer"


@runtime_checkable
class Factory(Protocol):
    """Builds the service registered under ``name``."""

    def __call__(self, container: Any, name: str, options: Options = None) -> Any:
        ...


@runtime_checkable
class AbstractFactory(Protocol):
    """
    Fallback producer consulted when no explicit factory exists.

    ``can_create`` must not construct anything; it is also used by ``has()``.
    """

    def can_create(self, container: Any, name: str) -> bool:
        ...

    def __call__(self, container: Any, name: str, options: Options = None) -> Any:
        ...


@runtime_checkable
class DelegatorFactory(Protocol):
    """Decorates the instance produced by ``callback``."""

    def __call__(
        self,
        container: Any,
        name: str,
        callback: Callable[[], Any],
        options: Options = None,
    ) -> Any:
        ...


@runtime_checkable
class Initializer(Protocol):
    """Mutates every newly constructed instance."""

    def __call__(self, container: Any, instance: Any) -> None:
        ...


@dataclass(frozen=True, slots=True)
class ProducerMeta:
    """
    Compact, serializable producer metadata.

    Used for diagnostics, ``describe()`` and the CLI.
    """
    name: str
    kind: ProducerKind
    module: str = ""
    qualname: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "module": self.module,
            "qualname": self.qualname,
        }


def import_reference(reference: str) -> Any:
    """
    Import an object from a ``"package.module:attr"`` reference.

    Dotted attribute paths after the colon are followed
    (``"pkg.mod:Outer.inner"``).

    Raises:
        ImportError: If the module cannot be imported
        AttributeError: If the attribute path does not exist
        ValueError: If the reference has no ``:`` separator
    """
    if ":" not in reference:
        raise ValueError(f"reference '{reference}' must look like 'package.module:attr'")

    module_path, attr_path = reference.split(":", 1)
    obj: Any = importlib.import_module(module_path)
    for part in attr_path.split("."):
        obj = getattr(obj, part)
    return obj


def _describe(target: Any) -> Tuple[str, str, str]:
    """Return ``(name, module, qualname)`` for any producer target."""
    if isinstance(target, str):
        module, _, qualname = target.partition(":")
        return qualname.rsplit(".", 1)[-1], module, qualname

    obj = target if inspect.isroutine(target) or inspect.isclass(target) else type(target)
    module = getattr(obj, "__module__", "") or ""
    qualname = getattr(obj, "__qualname__", "") or repr(target)
    return getattr(obj, "__name__", qualname), module, qualname


class _Producer:
    """Shared plumbing: metadata and lazy resolution of string references."""

    __slots__ = ("_meta", "_source", "_target", "_service")

    kind: ProducerKind = ProducerKind.FACTORY
    # Classes obtained from string references are instantiated to get the producer.
    instantiate_classes: bool = True

    def __init__(self, source: Any, service: Optional[str] = None):
        name, module, qualname = _describe(source)
        self._meta = ProducerMeta(
            name=name,
            kind=self.kind,
            module=module,
            qualname=qualname,
        )
        self._source = source
        self._service = service or name
        self._target: Any = None

        if not isinstance(source, str):
            self._target = self._validate(source)

    @property
    def meta(self) -> ProducerMeta:
        return self._meta

    @property
    def source(self) -> Any:
        """The object or reference this producer was registered with."""
        return self._source

    @property
    def target(self) -> Any:
        """The resolved producer, importing a string reference on first use."""
        if self._target is None:
            try:
                obj = import_reference(self._source)
            except (ImportError, AttributeError, ValueError) as e:
                raise InvalidServiceError(self._service, f"cannot import '{self._source}': {e}")
            if self.instantiate_classes and inspect.isclass(obj):
                obj = obj()
            self._target = self._validate(obj)
        return self._target

    def _validate(self, obj: Any) -> Any:
        if not callable(obj):
            raise InvalidServiceError(
                self._service, f"{self.kind.value} {obj!r} is not callable"
            )
        return obj

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, _Producer):
            return NotImplemented
        return type(self) is type(other) and self._source is other._source

    def __hash__(self) -> int:
        return hash((type(self), id(self._source)))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._meta.qualname or self._meta.name}>"


class FactoryProducer(_Producer):
    """Explicit factory for one canonical name."""

    __slots__ = ()
    kind = ProducerKind.FACTORY

    def create(self, container: Any, name: str, options: Options = None) -> Any:
        return self.target(container, name, options)


class AbstractFactoryProducer(_Producer):
    """Abstract factory: a predicate and a creator behind one object."""

    __slots__ = ()
    kind = ProducerKind.ABSTRACT_FACTORY

    def _validate(self, obj: Any) -> Any:
        if inspect.isclass(obj):
            obj = obj()
        if not callable(getattr(obj, "can_create", None)):
            raise InvalidServiceError(
                self._service, f"abstract factory {obj!r} has no can_create() method"
            )
        return super()._validate(obj)

    def can_create(self, container: Any, name: str) -> bool:
        return bool(self.target.can_create(container, name))

    def create(self, container: Any, name: str, options: Options = None) -> Any:
        return self.target(container, name, options)


class DelegatorProducer(_Producer):
    """One stage of a delegator chain."""

    __slots__ = ()
    kind = ProducerKind.DELEGATOR

    def wrap(
        self,
        container: Any,
        name: str,
        callback: Callable[[], Any],
        options: Options = None,
    ) -> Any:
        return self.target(container, name, callback, options)


class InitializerProducer(_Producer):
    """Post-construction hook applied to every new instance."""

    __slots__ = ()
    kind = ProducerKind.INITIALIZER

    def initialize(self, container: Any, instance: Any) -> None:
        self.target(container, instance)


# ============================================================================
# Built-in producers
# ============================================================================


class InvokableFactory:
    """
    Factory for classes that need no collaborators.

    Constructs ``cls()``, or ``cls(options)`` when options are supplied.
    """

    __slots__ = ("cls",)

    def __init__(self, cls: Type[Any] | str):
        self.cls = cls

    def __call__(self, container: Any, name: str, options: Options = None) -> Any:
        cls = import_reference(self.cls) if isinstance(self.cls, str) else self.cls
        if options is None:
            return cls()
        return cls(options)

    def __repr__(self) -> str:
        return f"InvokableFactory({self.cls!r})"


class CallableAbstractFactory:
    """
    Abstract factory assembled from a predicate and a creator.

    Example:
        factory = CallableAbstractFactory(
            lambda container, name: name.startswith("repo."),
            lambda container, name, options: Repository(name[5:]),
        )
    """

    __slots__ = ("_can_create", "_create")

    def __init__(
        self,
        can_create: Callable[[Any, str], bool],
        create: Callable[[Any, str, Options], Any],
    ):
        self._can_create = can_create
        self._create = create

    def can_create(self, container: Any, name: str) -> bool:
        return self._can_create(container, name)

    def __call__(self, container: Any, name: str, options: Options = None) -> Any:
        return self._create(container, name, options)


class ConfigAbstractFactory:
    """
    Abstract factory driven by explicit dependency lists.

    ``mapping`` maps a service name to ``(cls, [dependency names])``; the
    dependencies are fetched from the container with ``get()`` and passed
    positionally to ``cls``. Nothing is discovered by reflection.

    Example:
        ConfigAbstractFactory({
            "mailer": (Mailer, ["transport", "renderer"]),
        })
    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: Mapping[str, Tuple[Any, Sequence[str]]]):
        self._mapping = dict(mapping)

    def can_create(self, container: Any, name: str) -> bool:
        return name in self._mapping

    def __call__(self, container: Any, name: str, options: Options = None) -> Any:
        cls, dependencies = self._mapping[name]
        if isinstance(cls, str):
            cls = import_reference(cls)
        return cls(*[container.get(dependency) for dependency in dependencies])
