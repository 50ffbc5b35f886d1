"""Type conversion for injected values.

Values declared on definitions (constructor arguments, property values,
TypedValue holders) are frequently plain strings or dicts. Before they are
injected they are converted to the type declared at the injection point.

Conversion rules, in order:
    1. None stays None
    2. A registered custom converter for the target type wins
    3. A value that already has the target type is returned unchanged
    4. Optional[T] / Union members are tried in declaration order
    5. bool accepts "true/yes/1/on" and "false/no/0/off"
    6. Enum accepts a member, a member name or a member value
    7. list/set/frozenset/tuple accept iterables or comma-separated strings
    8. dict[K, V] converts keys and values
    9. Dataclasses are built from dicts
    10. type accepts a dotted class path
    11. Anything else is passed to the target type's constructor

Example:
    >>> converter = DefaultValueConverter()
    >>> converter.convert("1, 2, 3", list[int])
    [1, 2, 3]
    >>> converter.register_converter(Money, Money.parse)
"""

from __future__ import annotations

import dataclasses
import enum
import importlib
import inspect
from typing import Any, Callable, get_args, get_origin, get_type_hints

from .analyzer import is_union, strip_annotated, type_name
from .errors import ConversionError

_TRUE_VALUES = frozenset({"true", "yes", "1", "on"})
_FALSE_VALUES = frozenset({"false", "no", "0", "off"})


def load_class(path: str) -> type:
    """Import a class from a dotted path such as ``package.module.ClassName``."""
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ImportError(f"'{path}' is not a fully qualified class name")
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        # Nested class: package.module.Outer.Inner
        outer = load_class(module_name)
        return getattr(outer, attr)
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ImportError(f"Module '{module_name}' has no attribute '{attr}'") from e


class DefaultValueConverter:
    """Converts raw values to declared types, with pluggable per-type converters."""

    def __init__(self) -> None:
        self._converters: dict[Any, Callable[[Any], Any]] = {}

    def register_converter(self, target_type: Any, converter: Callable[[Any], Any]) -> None:
        """Register a callable converting raw values to ``target_type``."""
        self._converters[target_type] = converter

    def has_converter(self, target_type: Any) -> bool:
        return target_type in self._converters

    def convert(self, value: Any, target_type: Any, path: str = "") -> Any:
        """Convert a value to the target type.

        Args:
            value: Value to convert
            target_type: Declared type of the injection point (None or Any = no-op)
            path: Injection point description for error messages

        Returns:
            Converted value

        Raises:
            ConversionError: If conversion fails
        """
        if value is None or target_type is None or target_type is Any:
            return value

        target_type, _ = strip_annotated(target_type)

        custom = self._converters.get(target_type)
        if custom is not None:
            try:
                return custom(value)
            except (ValueError, TypeError) as e:
                raise ConversionError(value, target_type, str(e), path) from e

        origin = get_origin(target_type)

        if origin is None and inspect.isclass(target_type) and isinstance(value, target_type):
            # bool is an int subclass; keep ints strict
            if not (target_type is int and isinstance(value, bool)):
                return value

        if is_union(target_type):
            return self._convert_union(value, target_type, path)

        try:
            if target_type is bool:
                return self._convert_bool(value, path)

            if inspect.isclass(target_type) and issubclass(target_type, enum.Enum):
                return self._convert_enum(value, target_type, path)

            if target_type in (list, set, frozenset, tuple) or origin in (
                list,
                set,
                frozenset,
                tuple,
            ):
                return self._convert_collection(value, target_type, origin or target_type, path)

            if target_type is dict or origin is dict:
                return self._convert_dict(value, target_type, path)

            if dataclasses.is_dataclass(target_type) and isinstance(value, dict):
                return self._convert_dataclass(value, target_type, path)

            if target_type is type or origin is type:
                if isinstance(value, str):
                    return load_class(value)
                raise ConversionError(value, target_type, "expected a class or dotted path", path)

            if origin is not None:
                # Parameterized type without a rule: accept instances of the origin
                if isinstance(value, origin):
                    return value
                return origin(value)

            return target_type(value)

        except ConversionError:
            raise
        except (ValueError, TypeError, ImportError, AttributeError) as e:
            raise ConversionError(value, target_type, str(e), path) from e

    def _convert_union(self, value: Any, target_type: Any, path: str) -> Any:
        members = [arg for arg in get_args(target_type) if arg is not type(None)]
        for member in members:
            member_cls = get_origin(member) or member
            if inspect.isclass(member_cls) and isinstance(value, member_cls):
                return value
        errors = []
        for member in members:
            try:
                return self.convert(value, member, path)
            except ConversionError as e:
                errors.append(str(e))
        raise ConversionError(value, target_type, "; ".join(errors), path)

    def _convert_bool(self, value: Any, path: str) -> bool:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ConversionError(value, bool, "not a boolean literal", path)
        return bool(value)

    def _convert_enum(self, value: Any, target_type: type[enum.Enum], path: str) -> Any:
        if isinstance(value, str) and value in target_type.__members__:
            return target_type[value]
        try:
            return target_type(value)
        except ValueError as e:
            raise ConversionError(value, target_type, str(e), path) from e

    def _convert_collection(self, value: Any, target_type: Any, origin: Any, path: str) -> Any:
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",")] if value else []
        elif isinstance(value, (list, tuple, set, frozenset)):
            items = list(value)
        else:
            items = [value]

        args = [arg for arg in get_args(target_type) if arg is not Ellipsis]
        if origin is tuple and len(args) > 1 and Ellipsis not in get_args(target_type):
            if len(items) != len(args):
                raise ConversionError(
                    value, target_type, f"expected {len(args)} items, got {len(items)}", path
                )
            return tuple(
                self.convert(item, arg, f"{path}[{i}]")
                for i, (item, arg) in enumerate(zip(items, args))
            )
        if args:
            items = [self.convert(item, args[0], f"{path}[{i}]") for i, item in enumerate(items)]
        return origin(items)

    def _convert_dict(self, value: Any, target_type: Any, path: str) -> dict:
        if not isinstance(value, dict):
            raise ConversionError(value, target_type, "expected a mapping", path)
        args = get_args(target_type)
        if len(args) == 2:
            key_type, value_type = args
            return {
                self.convert(k, key_type, f"{path}.{k}"): self.convert(v, value_type, f"{path}.{k}")
                for k, v in value.items()
            }
        return dict(value)

    def _convert_dataclass(self, value: dict[str, Any], target_type: type, path: str) -> Any:
        hints = get_type_hints(target_type)
        kwargs = {}
        for f in dataclasses.fields(target_type):
            if f.name in value:
                field_path = f"{path}.{f.name}" if path else f.name
                kwargs[f.name] = self.convert(value[f.name], hints.get(f.name, f.type), field_path)
        try:
            return target_type(**kwargs)
        except TypeError as e:
            raise ConversionError(
                value, target_type, f"cannot build {type_name(target_type)}: {e}", path
            ) from e
