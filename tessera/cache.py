"""
Instance cache for shared services.

A correctness cache: it guarantees that a shared service is a singleton
for the lifetime of its container. There is no eviction policy; entries
disappear only through ``forget()`` or ``clear()``.
"""

from typing import Any, Dict, Iterator, List, Tuple
import threading


_MISSING = object()


class InstanceCache:
    """
    Thread-safe mapping of canonical name -> instance.

    Every operation runs under a single lock, so a check-then-set through
    ``set_if_absent`` is atomic per name.
    """

    __slots__ = ("_instances", "_lock")

    MISSING = _MISSING

    def __init__(self):
        self._instances: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def get(self, canonical: str, default: Any = _MISSING) -> Any:
        """Return the cached instance, or ``default`` (``MISSING``) when absent."""
        with self._lock:
            return self._instances.get(canonical, default)

    def set(self, canonical: str, instance: Any) -> None:
        """Store ``instance``, overwriting any prior entry."""
        with self._lock:
            self._instances[canonical] = instance

    def set_if_absent(self, canonical: str, instance: Any) -> Any:
        """Store ``instance`` only if nothing is cached; return the cached winner."""
        with self._lock:
            return self._instances.setdefault(canonical, instance)

    def forget(self, canonical: str) -> bool:
        """Drop one entry. Returns True if something was removed."""
        with self._lock:
            return self._instances.pop(canonical, _MISSING) is not _MISSING

    def clear(self) -> None:
        with self._lock:
            self._instances.clear()

    def names(self) -> List[str]:
        with self._lock:
            return list(self._instances)

    def items(self) -> List[Tuple[str, Any]]:
        with self._lock:
            return list(self._instances.items())

    def __contains__(self, canonical: str) -> bool:
        with self._lock:
            return canonical in self._instances

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())
