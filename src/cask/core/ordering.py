"""Ordering and priority metadata for components and post-processors.

Post-processors and collection injection points are sorted by the order
declared on each object. An object declares order either by implementing
``Ordered`` (``get_order()``) or by carrying the ``@order(n)`` decorator.
``PriorityOrdered`` objects always sort before plain ordered ones.

Priority is separate metadata used only to break ties between autowiring
candidates: ``@priority(n)`` on a class, or ``priority=`` on its definition.

Lower values mean higher precedence in both cases.

Example:
    >>> @order(10)
    ... class AuditProcessor(ComponentPostProcessor):
    ...     ...
    >>>
    >>> @priority(1)
    ... class PrimaryRepository(Repository):
    ...     ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, TypeVar

T = TypeVar("T")

HIGHEST_PRECEDENCE = -(2**31)
LOWEST_PRECEDENCE = 2**31 - 1

_ORDER_ATTR = "__cask_order__"
_PRIORITY_ATTR = "__cask_priority__"


class Ordered(ABC):
    """Interface for objects that declare their position in a sorted chain."""

    @abstractmethod
    def get_order(self) -> int:
        """Return the order value; lower values run first."""


class PriorityOrdered(Ordered):
    """Marker for ordered objects that run before every plain ``Ordered`` one."""


def order(value: int) -> Callable[[T], T]:
    """Decorator declaring an order value on a class or function."""

    def decorator(target: T) -> T:
        setattr(target, _ORDER_ATTR, value)
        return target

    return decorator


def priority(value: int) -> Callable[[T], T]:
    """Decorator declaring autowiring priority on a class."""

    def decorator(target: T) -> T:
        setattr(target, _PRIORITY_ATTR, value)
        return target

    return decorator


def is_priority_ordered(obj: Any) -> bool:
    return isinstance(obj, PriorityOrdered)


def is_ordered(obj: Any) -> bool:
    """Check whether an object declares any explicit order."""
    return isinstance(obj, Ordered) or find_order(obj) is not None


def find_order(obj: Any) -> int | None:
    """Return the declared order of an object or its class, if any."""
    if isinstance(obj, Ordered):
        return obj.get_order()
    value = getattr(obj, _ORDER_ATTR, None)
    if value is None and not isinstance(obj, type):
        value = getattr(type(obj), _ORDER_ATTR, None)
    return value


def get_order(obj: Any, default: int = LOWEST_PRECEDENCE) -> int:
    value = find_order(obj)
    return default if value is None else value


def get_priority(obj: Any) -> int | None:
    """Return the ``@priority`` value declared on an object's class."""
    target = obj if isinstance(obj, type) else type(obj)
    return getattr(target, _PRIORITY_ATTR, None)


def order_key(obj: Any) -> tuple[int, int]:
    return (0 if is_priority_ordered(obj) else 1, get_order(obj))


def sort_by_order(items: Iterable[T]) -> list[T]:
    """Stable sort: priority-ordered first, then by ascending order value."""
    return sorted(items, key=order_key)
