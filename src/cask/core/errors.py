"""Exception hierarchy for clear error reporting in component creation.

This module defines the exception hierarchy for Cask's component engine. Each
exception type represents a specific failure mode with clear error messages and
contextual information to aid debugging.

Exception Hierarchy:
    CaskError: Base exception for all Cask errors
    ├── DefinitionStoreError: Unusable metadata at registration/merge time
    │   ├── ComponentClassNotFoundError: Class path cannot be imported
    │   └── DefinitionOverrideError: Overriding disabled
    ├── DefinitionNotFoundError: Unknown component name
    │   └── NoUniqueComponentError: Ambiguous by-type match
    ├── DefinitionValidationError: Malformed definition metadata
    ├── ComponentCreationError: Any failure while building a component
    │   ├── ComponentCurrentlyInCreationError: Unresolvable cycle
    │   ├── UnsatisfiedDependencyError: Injection point cannot be satisfied
    │   ├── ComponentCreationNotAllowedError: Registry is being destroyed
    │   └── ComponentIsAbstractError: Template-only definition requested
    ├── ComponentNotOfRequiredTypeError: Lookup type mismatch
    ├── ComponentIsNotAFactoryError: '&name' used on a plain component
    ├── SingletonAlreadyRegisteredError: Singleton produced elsewhere
    ├── ScopeError: Unknown or inactive custom scope
    ├── ConversionError: Value could not be converted
    └── NotWritablePropertyError: Property cannot be set

Usage Patterns:
    Each exception includes relevant context:
    - ComponentCreationError: component_name, cause, related_causes
    - UnsatisfiedDependencyError: injection_point
    - NoUniqueComponentError: required_type, candidates
    - ConversionError: value, target_type

Example:
    >>> try:
    ...     factory.get_component("service")
    ... except ComponentCreationError as e:
    ...     print(f"Failed to create: {e.component_name}")
    ...     print(f"Root cause: {e.root_cause()!r}")
"""

from __future__ import annotations

from typing import Any

# Maximum number of suppressed exceptions attached to a creation failure
SUPPRESSED_EXCEPTIONS_LIMIT = 100


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or str(tp)


class CaskError(Exception):
    """Base exception for all Cask-related errors."""

    pass


class DefinitionStoreError(CaskError):
    """Raised when definition metadata cannot be stored or merged.

    This occurs when:
    - A parent definition cannot be resolved
    - A parent chain is circular
    - A definition fails validation at registration
    """

    def __init__(
        self, message: str, component_name: str | None = None, cause: Exception | None = None
    ):
        if component_name:
            message = f"Invalid definition for component '{component_name}': {message}"
        super().__init__(message)
        self.component_name = component_name
        self.cause = cause


class ComponentClassNotFoundError(DefinitionStoreError):
    """Raised when a definition names a class that cannot be imported."""

    def __init__(self, component_name: str, class_name: str, cause: Exception | None = None):
        super().__init__(f"Cannot load class [{class_name}]", component_name, cause)
        self.class_name = class_name


class DefinitionOverrideError(DefinitionStoreError):
    """Raised when a definition would replace another and overriding is disabled."""

    def __init__(self, component_name: str):
        super().__init__(
            "there is already a definition bound under this name and overriding is disabled",
            component_name,
        )


class DefinitionNotFoundError(CaskError):
    """Raised when no definition exists for a requested name or type."""

    def __init__(
        self,
        name: str | None = None,
        *,
        required_type: Any = None,
        message: str | None = None,
        available: list[str] | None = None,
    ):
        self.name = name
        self.required_type = required_type
        self.available = available or []
        if message is None:
            if name is not None:
                message = f"No component named '{name}' available"
            else:
                message = f"No qualifying component of type '{_type_name(required_type)}' available"
        if self.available:
            message += f"\nAvailable components: {', '.join(self.available[:5])}"
            if len(self.available) > 5:
                message += f" (and {len(self.available) - 5} more)"
        super().__init__(message)


class NoUniqueComponentError(DefinitionNotFoundError):
    """Raised when several components match a single-valued injection point."""

    def __init__(self, required_type: Any, candidates: list[str], message: str | None = None):
        self.candidates = list(candidates)
        if message is None:
            message = (
                f"No qualifying component of type '{_type_name(required_type)}' available: "
                f"expected single matching component but found {len(self.candidates)}: "
                f"{', '.join(self.candidates)}"
            )
        super().__init__(required_type=required_type, message=message)


class DefinitionValidationError(CaskError):
    """Raised when definition metadata is malformed.

    This occurs when:
    - A method override names a method absent from the class
    - An enforced init or destroy method does not exist
    - A factory method is combined with method overrides
    """

    pass


class ComponentCreationError(CaskError):
    """Raised when a component cannot be created.

    Wraps any exception raised during instantiation, population or
    initialization, carrying the name of the failing component. Related
    causes collected while the creation was in progress are attached in
    ``related_causes``.
    """

    def __init__(
        self,
        component_name: str | None,
        message: str,
        cause: BaseException | None = None,
    ):
        self.component_name = component_name
        self.message = message
        self.cause = cause
        self.related_causes: list[BaseException] = []
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        text = self.message
        if self.component_name:
            text = f"Error creating component with name '{self.component_name}': {text}"
        if self.cause is not None:
            text += f"; nested exception is {type(self.cause).__name__}: {self.cause}"
        return text

    def add_related_cause(self, ex: BaseException) -> None:
        """Attach an exception suppressed while this creation was running."""
        if len(self.related_causes) < SUPPRESSED_EXCEPTIONS_LIMIT:
            self.related_causes.append(ex)

    def root_cause(self) -> BaseException:
        """Return the innermost cause of this failure."""
        current: BaseException = self
        seen = {id(current)}
        while True:
            nxt = getattr(current, "cause", None) or current.__cause__
            if nxt is None or id(nxt) in seen:
                return current
            seen.add(id(nxt))
            current = nxt

    def contains(self, exc_type: type[BaseException]) -> bool:
        """Check whether this error or any nested cause is of ``exc_type``."""
        current: BaseException | None = self
        seen: set[int] = set()
        while current is not None and id(current) not in seen:
            if isinstance(current, exc_type):
                return True
            seen.add(id(current))
            current = getattr(current, "cause", None) or current.__cause__
        return any(isinstance(related, exc_type) for related in self.related_causes)


class ComponentCurrentlyInCreationError(ComponentCreationError):
    """Raised when a component is requested while it is still being created.

    This signals a cycle that cannot be resolved: prototype cycles,
    constructor cycles, singleton cycles with circular references disabled,
    or an early reference that was later wrapped.
    """

    def __init__(self, component_name: str, message: str | None = None):
        super().__init__(
            component_name,
            message
            or "Requested component is currently in creation: "
            "Is there an unresolvable circular reference?",
        )


class UnsatisfiedDependencyError(ComponentCreationError):
    """Raised when a required injection point cannot be satisfied.

    Carries the injection point (a DependencyDescriptor or a property name)
    so the failure location is reported precisely.
    """

    def __init__(
        self,
        component_name: str | None,
        injection_point: Any,
        message: str,
        cause: BaseException | None = None,
    ):
        self.injection_point = injection_point
        location = injection_point if isinstance(injection_point, str) else repr(injection_point)
        super().__init__(
            component_name,
            f"Unsatisfied dependency expressed through {location}: {message}",
            cause,
        )


class ComponentCreationNotAllowedError(ComponentCreationError):
    """Raised when a singleton is requested while the registry is shutting down."""

    def __init__(self, component_name: str):
        super().__init__(
            component_name,
            "Singleton creation not allowed while singletons of this factory are "
            "in destruction (Do not request a component from a factory in a destroy "
            "method implementation!)",
        )


class ComponentIsAbstractError(ComponentCreationError):
    """Raised when an abstract (template-only) definition is instantiated."""

    def __init__(self, component_name: str):
        super().__init__(component_name, "Definition is abstract")


class ComponentNotOfRequiredTypeError(CaskError):
    """Raised when a component does not match the requested type."""

    def __init__(self, name: str, required_type: Any, actual_type: Any):
        self.name = name
        self.required_type = required_type
        self.actual_type = actual_type
        super().__init__(
            f"Component named '{name}' is expected to be of type "
            f"'{_type_name(required_type)}' but was actually of type '{_type_name(actual_type)}'"
        )


class ComponentIsNotAFactoryError(CaskError):
    """Raised when '&name' dereferences a component that is not a factory."""

    def __init__(self, name: str, actual_type: Any):
        self.name = name
        self.actual_type = actual_type
        super().__init__(
            f"Component named '{name}' is expected to be a FactoryComponent "
            f"but was actually of type '{_type_name(actual_type)}'"
        )


class SingletonAlreadyRegisteredError(CaskError):
    """Raised when a singleton name is already bound.

    During creation this signals that the singleton was produced elsewhere;
    the registry then hands out the existing object.
    """

    def __init__(self, name: str, existing: Any):
        self.name = name
        self.existing = existing
        super().__init__(
            f"Could not register object under component name '{name}': "
            f"there is already object [{existing!r}] bound"
        )


class ScopeError(CaskError):
    """Raised when scope-related operations fail.

    This occurs when:
    - A definition names a scope that was never registered
    - A scoped component is resolved outside an active scope
    """

    pass


class ConversionError(CaskError):
    """Raised when a value cannot be converted to the required type."""

    def __init__(self, value: Any, target_type: Any, reason: str = "", path: str | None = None):
        self.value = value
        self.target_type = target_type
        self.path = path
        message = (
            f"Failed to convert value of type '{type(value).__name__}' "
            f"to required type '{_type_name(target_type)}'"
        )
        if path:
            message += f" for '{path}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NotWritablePropertyError(CaskError):
    """Raised when a property value targets an attribute that cannot be set."""

    def __init__(self, owner: type, property_name: str, reason: str = ""):
        self.owner = owner
        self.property_name = property_name
        message = f"Invalid property '{property_name}' of class [{owner.__qualname__}]"
        if reason:
            message += f": {reason}"
        else:
            message += (
                ": Property is not writable; declare it with a type annotation "
                "or a property setter"
            )
        super().__init__(message)
