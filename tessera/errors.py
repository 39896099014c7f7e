"""
Service manager error types with rich diagnostics.
"""

from typing import List, Optional


class ServiceManagerError(Exception):
    """Base exception for service manager errors."""
    pass


class ServiceNotFoundError(ServiceManagerError):
    """No alias, factory or accepting abstract factory for the requested name."""

    def __init__(
        self,
        name: str,
        requested_as: Optional[str] = None,
        candidates: Optional[List[str]] = None,
    ):
        self.name = name
        self.requested_as = requested_as
        self.candidates = candidates or []

        msg = f"Unable to resolve service '{name}'"
        if requested_as and requested_as != name:
            msg += f" (requested as alias '{requested_as}')"
        msg += ": no factory or abstract factory can create it"

        if self.candidates:
            msg += "\n\nSimilar names registered:"
            for candidate in self.candidates:
                msg += f"\n  - {candidate}"

        msg += "\n\nSuggested fixes:"
        msg += f"\n  - Register a factory for '{name}'"
        msg += "\n  - Register an abstract factory that accepts it"
        if requested_as and requested_as != name:
            msg += f"\n  - Check the alias target of '{requested_as}'"

        super().__init__(msg)


class AliasCycleError(ServiceManagerError):
    """An alias chain revisits a name before reaching a canonical name."""

    def __init__(self, chain: List[str]):
        self.chain = chain

        msg = "Alias cycle detected: " + " -> ".join(chain)
        msg += "\n\nSuggested fixes:"
        msg += f"\n  - Point one of the aliases at a concrete service instead"
        msg += "\n  - Remove the self-referencing alias"

        super().__init__(msg)


CircularAliasError = AliasCycleError


class CircularDependencyError(ServiceManagerError):
    """A service transitively requires itself within one resolution."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle

        msg = "Circular dependency detected while resolving:"
        for i, name in enumerate(cycle):
            arrow = " ->" if i < len(cycle) - 1 else ""
            msg += f"\n  {name}{arrow}"

        msg += "\n\nSuggested fixes:"
        msg += "\n  - Break the cycle by refactoring the factories involved"
        msg += "\n  - Defer one side with a lazy service (lazy_services)"
        msg += "\n  - Do not request a service from its own initializer"

        super().__init__(msg)


class DuplicateServiceError(ServiceManagerError):
    """A registration would overwrite an existing entry while overrides are disallowed."""

    def __init__(self, name: str, kind: str = "factory"):
        self.name = name
        self.kind = kind

        msg = (
            f"A {kind} is already registered for '{name}' and overrides are disabled"
            f"\n\nSuggested fixes:"
            f"\n  - Enable allow_override on the registry"
            f"\n  - Register the replacement under a different name"
        )

        super().__init__(msg)


class RegistryFrozenError(ServiceManagerError):
    """Registration attempted after the registry was frozen."""

    def __init__(self, name: Optional[str] = None):
        self.name = name
        target = f" for '{name}'" if name else ""
        super().__init__(
            f"Registry is frozen; registration{target} must happen during setup"
        )


class InvalidServiceError(ServiceManagerError):
    """A producer is not usable (not callable, or an unimportable reference)."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid producer for '{name}': {reason}")


class ConfigError(ServiceManagerError):
    """Declarative service configuration is malformed."""

    def __init__(self, errors: List[str], source: Optional[str] = None):
        self.errors = errors
        self.source = source

        msg = "Invalid service configuration"
        if source:
            msg += f" in '{source}'"
        msg += ":"
        for error in errors:
            msg += f"\n  - {error}"

        super().__init__(msg)
