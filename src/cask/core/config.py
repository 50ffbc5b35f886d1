"""Factory configuration.

FactoryConfig collects the switches that change how a ComponentFactory
resolves and creates components. It is a plain dataclass so it can be
built in code, or loaded from environment variables with ``from_env``.

Environment variables use the ``CASK_`` prefix by default and the
upper-cased field name, e.g.::

    CASK_ALLOW_CIRCULAR_REFERENCES=false
    CASK_RAW_INJECTION_POLICY=strict

Example:
    >>> config = FactoryConfig(allow_circular_references=False)
    >>> factory = ComponentFactory(config=config)
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, get_type_hints

from loguru import logger

from .conversion import DefaultValueConverter


class RawInjectionPolicy(Enum):
    """What to do when a raw early reference was injected but the component was wrapped.

    STRICT fails whenever any dependent component received the raw object.
    IGNORE_TYPE_CHECK_ONLY fails only when a dependent that was actually
    created for use (not only for a type check) received the raw object.
    TOLERATE keeps the raw reference for those dependents and logs a warning.
    """

    STRICT = "strict"
    IGNORE_TYPE_CHECK_ONLY = "ignore_type_check_only"
    TOLERATE = "tolerate"


@dataclass
class FactoryConfig:
    """Configuration for a ComponentFactory.

    Attributes:
        allow_circular_references: Expose early singleton references to break cycles
        raw_injection_policy: Reconciliation policy for wrapped early references
        allow_definition_overriding: Allow re-registering a name with a new definition
        cache_metadata: Cache merged definitions between lookups
        allow_eager_class_loading: Import dotted class paths when predicting types
    """

    allow_circular_references: bool = True
    raw_injection_policy: RawInjectionPolicy = RawInjectionPolicy.IGNORE_TYPE_CHECK_ONLY
    allow_definition_overriding: bool = True
    cache_metadata: bool = True
    allow_eager_class_loading: bool = True

    @classmethod
    def from_env(
        cls, prefix: str = "CASK_", environ: dict[str, str] | None = None
    ) -> FactoryConfig:
        """Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables
            environ: Mapping to read instead of os.environ

        Returns:
            FactoryConfig with defaults for every unset variable
        """
        environ = os.environ if environ is None else environ
        prefix = prefix.upper()
        converter = DefaultValueConverter()
        hints = get_type_hints(cls)
        values: dict[str, Any] = {}

        for f in dataclasses.fields(cls):
            key = f"{prefix}{f.name.upper()}"
            if key not in environ:
                continue
            raw = environ[key]
            values[f.name] = converter.convert(raw, hints[f.name], key)
            logger.debug(f"Factory config {f.name}={values[f.name]!r} from {key}")

        return cls(**values)
