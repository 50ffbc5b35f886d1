"""Class and callable introspection for injection.

Properties:
    A component's writable properties are its public class-level annotations
    (dataclass fields included, ClassVar excluded) and its ``property``
    objects that define a setter. Attributes already present in an
    instance's ``__dict__`` are writable too, with an unknown type.

Parameters:
    ``get_parameters`` lists a callable's injectable parameters with their
    resolved type hints, skipping ``self``/``cls`` and ``*args``/``**kwargs``.

ComponentWrapper:
    Reads and writes property values on one instance, converting values to
    the declared property type.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable

from .analyzer import get_type_hints_safe, is_class_var
from .conversion import DefaultValueConverter
from .errors import NotWritablePropertyError


@dataclass(frozen=True)
class PropertyDescriptor:
    name: str
    type_hint: Any
    is_property: bool = False


@dataclass(frozen=True)
class Parameter:
    """One injectable parameter of a constructor or factory method."""

    name: str
    index: int
    type_hint: Any
    default: Any = inspect.Parameter.empty
    kind: Any = inspect.Parameter.POSITIONAL_OR_KEYWORD

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty

    @property
    def keyword_only(self) -> bool:
        return self.kind is inspect.Parameter.KEYWORD_ONLY


@lru_cache(maxsize=512)
def writable_properties(cls: type) -> dict[str, PropertyDescriptor]:
    """Return the writable properties declared on a class, keyed by name."""
    result: dict[str, PropertyDescriptor] = {}
    hints = get_type_hints_safe(cls)

    for name, hint in hints.items():
        if name.startswith("_") or is_class_var(hint):
            continue
        result[name] = PropertyDescriptor(name, hint)

    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if name.startswith("_") or not isinstance(attr, property):
                continue
            if attr.fset is None:
                result.pop(name, None)
                continue
            hint = Any
            if attr.fget is not None:
                hint = get_type_hints_safe(attr.fget).get("return", Any)
            if hint is Any:
                setter_hints = get_type_hints_safe(attr.fset)
                setter_hints.pop("return", None)
                if setter_hints:
                    hint = next(iter(setter_hints.values()))
            result[name] = PropertyDescriptor(name, hint, is_property=True)

    return result


def get_parameters(func: Callable) -> tuple[Parameter, ...]:
    """Return the injectable parameters of a callable (or a class's __init__).

    Bound methods and classes report their parameters without ``self``/``cls``.
    """
    if isinstance(func, type):
        if func.__init__ is object.__init__:
            return ()
        hints = get_type_hints_safe(func.__init__)
    else:
        hints = get_type_hints_safe(func)
    try:
        signature = inspect.signature(func)
    except (ValueError, TypeError):
        return ()
    params = []
    for param in signature.parameters.values():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        hint = hints.get(param.name, param.annotation)
        if hint is inspect.Parameter.empty:
            hint = Any
        params.append(Parameter(param.name, len(params), hint, param.default, param.kind))
    return tuple(params)


class ComponentWrapper:
    """Property access on a single component instance with type conversion."""

    def __init__(self, instance: Any, converter: DefaultValueConverter | None = None):
        self.instance = instance
        self.converter = converter or DefaultValueConverter()
        self._properties = writable_properties(type(instance))

    @property
    def wrapped_class(self) -> type:
        return type(self.instance)

    def properties(self) -> dict[str, PropertyDescriptor]:
        return dict(self._properties)

    def is_writable(self, name: str) -> bool:
        if name in self._properties:
            return True
        instance_dict = getattr(self.instance, "__dict__", None)
        return instance_dict is not None and name in instance_dict and not name.startswith("_")

    def property_type(self, name: str) -> Any:
        descriptor = self._properties.get(name)
        return descriptor.type_hint if descriptor is not None else Any

    def is_set(self, name: str) -> bool:
        """Check if the instance currently holds a non-None value for a property."""
        try:
            return getattr(self.instance, name) is not None
        except AttributeError:
            return False

    def get_property_value(self, name: str) -> Any:
        return getattr(self.instance, name)

    def set_property_value(
        self, name: str, value: Any, optional: bool = False, convert: bool = True
    ) -> None:
        """Assign a property value, converting it to the declared type unless told not to.

        Raises:
            NotWritablePropertyError: If the property does not exist and is not optional
            ConversionError: If the value cannot be converted to the property's type
        """
        if not self.is_writable(name):
            if optional:
                return
            raise NotWritablePropertyError(self.wrapped_class, name)
        converted = value
        if convert:
            converted = self.converter.convert(
                value, self.property_type(name), f"{self.wrapped_class.__qualname__}.{name}"
            )
        try:
            setattr(self.instance, name, converted)
        except AttributeError as e:
            raise NotWritablePropertyError(self.wrapped_class, name, str(e)) from e
