"""
Tessera - runtime service manager.

Builds objects by symbolic name from explicitly registered producers.

Key Features:
- Explicit factories, with abstract factories as ordered fallbacks
- Aliases with cycle detection
- Delegator chains wrapping construction (including lazy services)
- Initializers applied to every new instance
- Shared instance cache, per-name or global shared policy
- Circular-dependency detection with the full cycle path
- Declarative configuration from YAML/JSON, .env and environment
"""

__version__ = "0.3.0"

from .core import (
    ServiceManager,
    ResolveCtx,
)

from .registry import (
    Registry,
    ValidationIssue,
)

from .resolver import (
    Resolver,
    Strategy,
    CanonicalName,
    Classification,
)

from .cache import InstanceCache

from .producers import (
    ProducerKind,
    ProducerMeta,
    Factory,
    AbstractFactory,
    DelegatorFactory,
    Initializer,
    InvokableFactory,
    CallableAbstractFactory,
    ConfigAbstractFactory,
)

from .delegators import (
    build_chain,
    LazyServiceDelegator,
    LazyServiceProxy,
)

from .config import (
    ServiceConfig,
    ConfigLoader,
)

from .diagnostics import (
    Diagnostics,
    EventType,
    LoggingListener,
    RecordingListener,
)

from .errors import (
    ServiceManagerError,
    ServiceNotFoundError,
    AliasCycleError,
    CircularAliasError,
    CircularDependencyError,
    DuplicateServiceError,
    RegistryFrozenError,
    InvalidServiceError,
    ConfigError,
)

__all__ = [
    # Engine
    "ServiceManager",
    "ResolveCtx",

    # Registry / resolver
    "Registry",
    "ValidationIssue",
    "Resolver",
    "Strategy",
    "CanonicalName",
    "Classification",
    "InstanceCache",

    # Producers
    "ProducerKind",
    "ProducerMeta",
    "Factory",
    "AbstractFactory",
    "DelegatorFactory",
    "Initializer",
    "InvokableFactory",
    "CallableAbstractFactory",
    "ConfigAbstractFactory",

    # Delegators
    "build_chain",
    "LazyServiceDelegator",
    "LazyServiceProxy",

    # Config
    "ServiceConfig",
    "ConfigLoader",

    # Diagnostics
    "Diagnostics",
    "EventType",
    "LoggingListener",
    "RecordingListener",

    # Errors
    "ServiceManagerError",
    "ServiceNotFoundError",
    "AliasCycleError",
    "CircularAliasError",
    "CircularDependencyError",
    "DuplicateServiceError",
    "RegistryFrozenError",
    "InvalidServiceError",
    "ConfigError",
]
