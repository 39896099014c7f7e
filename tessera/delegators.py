"""
Delegator chain composition and the built-in lazy-service delegator.
"""

from typing import Any, Callable, Optional, Sequence
from functools import reduce
import threading

from .errors import CircularDependencyError
from .producers import DelegatorProducer, Options


Callback = Callable[[], Any]


def build_chain(
    delegators: Sequence[DelegatorProducer],
    base: Callback,
    container: Any,
    name: str,
    options: Options = None,
) -> Callback:
    """
    Compose ``delegators`` around ``base``.

    The fold is iterative: ``callback_1`` wraps ``base`` via ``d1``,
    ``callback_2`` wraps ``callback_1`` via ``d2`` and so on; the returned
    callback is the outermost one. Nothing is invoked here. Each delegator
    decides whether and how often to call its inner callback.
    """

    def wrap(inner: Callback, delegator: DelegatorProducer) -> Callback:
        def callback() -> Any:
            return delegator.wrap(container, name, inner, options)
        return callback

    return reduce(wrap, delegators, base)


class LazyServiceProxy:
    """
    Stand-in that builds the real service on first use.

    Attribute access, calls and the common container/context-manager
    protocols are forwarded to the real instance, which is produced exactly
    once even when first touched from several threads. An ``on_resolve``
    hook runs on the real instance before it is handed out.
    """

    __slots__ = ("_callback", "_instance", "_lock", "_name", "_on_resolve", "_ready")

    def __init__(
        self,
        name: str,
        callback: Callback,
        on_resolve: Optional[Callable[[Any], None]] = None,
    ):
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_callback", callback)
        object.__setattr__(self, "_instance", None)
        object.__setattr__(self, "_lock", threading.RLock())
        object.__setattr__(self, "_on_resolve", on_resolve)
        object.__setattr__(self, "_ready", False)

    def on_resolve(self, hook: Optional[Callable[[Any], None]]) -> None:
        """Set the hook applied to the real instance when it is built."""
        object.__setattr__(self, "_on_resolve", hook)

    def _resolve(self) -> Any:
        if self._ready:
            return self._instance

        with self._lock:
            if self._ready:
                return self._instance

            callback = self._callback
            if callback is None:
                # Touched again by its own factory or hook on this thread
                if self._instance is None:
                    raise CircularDependencyError([self._name, self._name])
                return self._instance

            object.__setattr__(self, "_callback", None)
            try:
                instance = callback()
                object.__setattr__(self, "_instance", instance)
                if self._on_resolve is not None:
                    self._on_resolve(instance)
            except BaseException:
                # Failed builds are retried on next use
                object.__setattr__(self, "_instance", None)
                object.__setattr__(self, "_callback", callback)
                raise

            object.__setattr__(self, "_ready", True)
            return instance

    @property
    def lazy_initialized(self) -> bool:
        return self._ready

    def __getattr__(self, attr: str) -> Any:
        return getattr(self._resolve(), attr)

    def __setattr__(self, attr: str, value: Any) -> None:
        setattr(self._resolve(), attr, value)

    def __delattr__(self, attr: str) -> None:
        delattr(self._resolve(), attr)

    def __call__(self, *args, **kwargs):
        return self._resolve()(*args, **kwargs)

    # Special methods are looked up on the type, so they are spelled out.

    def __getitem__(self, key):
        return self._resolve()[key]

    def __setitem__(self, key, value):
        self._resolve()[key] = value

    def __delitem__(self, key):
        del self._resolve()[key]

    def __len__(self) -> int:
        return len(self._resolve())

    def __iter__(self):
        return iter(self._resolve())

    def __contains__(self, item) -> bool:
        return item in self._resolve()

    def __eq__(self, other) -> bool:
        if isinstance(other, LazyServiceProxy):
            other = other._resolve()
        return self._resolve() == other

    def __ne__(self, other) -> bool:
        return not self == other

    def __hash__(self) -> int:
        return hash(self._resolve())

    def __bool__(self) -> bool:
        return bool(self._resolve())

    def __enter__(self):
        return self._resolve().__enter__()

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self._resolve().__exit__(exc_type, exc_val, exc_tb)

    def __str__(self) -> str:
        return str(self._resolve())

    def __repr__(self) -> str:
        state = "initialized" if self._ready else "pending"
        return f"<LazyServiceProxy {self._name} ({state})>"


class LazyServiceDelegator:
    """
    Delegator that defers construction until the service is first used.

    Register it as the outermost delegator of a service (or list the name
    under ``lazy_services``). The engine runs initializers on the real
    instance once the proxy resolves it, not on the proxy.
    """

    def __call__(
        self,
        container: Any,
        name: str,
        callback: Callback,
        options: Options = None,
    ) -> LazyServiceProxy:
        return LazyServiceProxy(name, callback)
