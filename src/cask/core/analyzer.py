"""Type hint analysis used by autowiring and property population.

This module holds the rules Cask applies to type hints when deciding what an
injection point needs: whether it is optional, whether it asks for a
collection of components, whether it carries a qualifier, and whether a
declared type is "simple" (never autowired).

Functions:
    get_type_hints_safe: Extract type hints, tolerating unresolved references
    is_optional: Check if a type is Optional[T]
    get_optional_inner: Extract T from Optional[T]
    strip_annotated: Split Annotated[T, ...] into T and its metadata
    get_qualifier: Find a Qualifier in Annotated metadata
    collection_kind: Detect list/set/tuple/dict injection points
    is_simple_type: Check if a type is a value type that is never autowired
    is_assignable: issubclass() that understands generics, Any and Protocols

Rules:
    1. Never autowire simple types (str, int, list, Enum, Path, ...)
    2. Optional[T] is an optional dependency on T
    3. Annotated[T, Qualifier("x")] narrows candidates to qualifier "x"
    4. list[T], set[T], tuple[T, ...] and dict[str, T] collect every match
"""

from __future__ import annotations

import datetime
import decimal
import enum
import inspect
import pathlib
import types
import uuid
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

_UNION_TYPES: tuple[Any, ...] = (Union, types.UnionType)

# Value types that are never satisfied from the component registry
SIMPLE_TYPES: frozenset[type] = frozenset(
    {
        str,
        int,
        float,
        bool,
        complex,
        bytes,
        bytearray,
        type(None),
        object,
        type,
        decimal.Decimal,
        pathlib.Path,
        pathlib.PurePath,
        uuid.UUID,
        datetime.date,
        datetime.datetime,
        datetime.time,
        datetime.timedelta,
    }
)

COLLECTION_ORIGINS: frozenset[Any] = frozenset({list, set, frozenset, tuple, dict})


@dataclass(frozen=True)
class Qualifier:
    """Annotated metadata narrowing autowiring candidates.

    Example:
        >>> def __init__(self, repo: Annotated[Repository, Qualifier("main")]):
        ...     ...
    """

    value: str


def get_type_hints_safe(obj: Any) -> dict[str, Any]:
    """Safely get type hints, handling errors gracefully.

    Forward references that cannot be resolved are returned as their raw
    annotation strings instead of failing the whole lookup.
    """
    try:
        return get_type_hints(obj, include_extras=True)
    except (NameError, AttributeError, TypeError):
        annotations: dict[str, Any] = {}
        targets = reversed(obj.__mro__) if isinstance(obj, type) else [obj]
        for target in targets:
            annotations.update(getattr(target, "__annotations__", {}) or {})
        return annotations


def is_union(type_hint: Any) -> bool:
    return get_origin(type_hint) in _UNION_TYPES


def is_optional(type_hint: Any) -> bool:
    """Check if a type hint is Optional[T] (Union[T, None])."""
    type_hint, _ = strip_annotated(type_hint)
    return is_union(type_hint) and type(None) in get_args(type_hint)


def get_optional_inner(type_hint: Any) -> Any:
    """Return T for Optional[T]; other hints are returned unchanged."""
    stripped, metadata = strip_annotated(type_hint)
    if not is_optional(stripped):
        return type_hint
    members = [arg for arg in get_args(stripped) if arg is not type(None)]
    inner = members[0] if len(members) == 1 else Union[tuple(members)]
    if metadata:
        return Annotated[(inner, *metadata)]
    return inner


def strip_annotated(type_hint: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split Annotated[T, *metadata] into (T, metadata)."""
    if get_origin(type_hint) is Annotated:
        base, *metadata = get_args(type_hint)
        return base, tuple(metadata)
    return type_hint, ()


def get_qualifier(type_hint: Any) -> str | None:
    """Return the Qualifier value carried by an Annotated hint, if any."""
    _, metadata = strip_annotated(get_optional_inner(type_hint))
    for item in metadata:
        if isinstance(item, Qualifier):
            return item.value
    return None


def is_class_var(type_hint: Any) -> bool:
    return type_hint is ClassVar or get_origin(type_hint) is ClassVar


def collection_kind(type_hint: Any) -> tuple[Any, Any] | None:
    """Detect collection injection points.

    Returns:
        (origin, element_type) for list[T], set[T], frozenset[T],
        tuple[T, ...] and dict[str, T]; None for anything else
    """
    base, _ = strip_annotated(get_optional_inner(type_hint))
    origin = get_origin(base)
    if origin not in COLLECTION_ORIGINS:
        return None
    args = get_args(base)
    if origin is dict:
        if len(args) != 2 or args[0] is not str:
            return None
        return dict, args[1]
    if origin is tuple:
        if len(args) != 2 or args[1] is not Ellipsis:
            return None
        return tuple, args[0]
    if len(args) != 1:
        return None
    return origin, args[0]


def is_simple_type(type_hint: Any) -> bool:
    """Check if a type is a plain value type that is never autowired.

    Simple types are built-ins, Enums, common stdlib value types, and
    containers of simple types.
    """
    base, _ = strip_annotated(get_optional_inner(type_hint))
    if base in SIMPLE_TYPES or base is Any:
        return True
    if inspect.isclass(base) and issubclass(base, enum.Enum):
        return True
    origin = get_origin(base)
    if origin in COLLECTION_ORIGINS:
        args = [arg for arg in get_args(base) if arg is not Ellipsis]
        return all(is_simple_type(arg) for arg in args)
    if base in COLLECTION_ORIGINS:
        return True
    return False


def raw_class(type_hint: Any) -> Any:
    """Return the runtime class behind a hint (List[int] -> list)."""
    base, _ = strip_annotated(type_hint)
    origin = get_origin(base)
    return origin if origin is not None else base


def is_assignable(candidate: Any, required: Any) -> bool:
    """Check if a candidate type can be injected where ``required`` is declared.

    Handles Any/object, Optional and Union members, parameterized generics
    (compared by origin), and runtime-checkable Protocols.
    """
    if candidate is None:
        return False
    required, _ = strip_annotated(get_optional_inner(required))
    if required is Any or required is object:
        return True
    if is_union(required):
        return any(is_assignable(candidate, member) for member in get_args(required))
    required_cls = raw_class(required)
    candidate_cls = raw_class(candidate)
    if not inspect.isclass(candidate_cls) or not inspect.isclass(required_cls):
        return candidate_cls == required_cls
    try:
        return issubclass(candidate_cls, required_cls)
    except TypeError:
        # Protocols with data members reject issubclass()
        return False


def is_instance_of(value: Any, required: Any) -> bool:
    """isinstance() with the same rules as is_assignable()."""
    if value is None:
        return is_optional(required) or required is Any
    return is_assignable(type(value), required)


def type_name(type_hint: Any) -> str:
    return getattr(type_hint, "__qualname__", None) or str(type_hint)
