"""Built-in validators for ruleforge.

These validators ship with the engine and are referenced by kind from rule
declarations. Every validator has the signature::

    (handle, value, attr, parameter, entity, computed)

and settles ``handle`` exactly once.

Available validators:
- required: Value must be present (or, when optional and empty, skip the rest)
- acceptance: Value must be True or "true"
- min / max / range: Numeric bounds, inclusive
- length / minLength / maxLength / rangeLength: Trimmed string length bounds
- oneOf: Value must be one of the listed values
- equalTo: Value must equal another attribute's value
- pattern: Value must match a named or custom regular expression
- fn: Delegate to a custom function or entity method
"""

import re
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from ruleforge.validation.flatten import lookup
from ruleforge.validation.messages import PATTERNS
from ruleforge.validation.registry import ValidatorRegistry


# =============================================================================
# Helpers
# =============================================================================


def _trim(value: Any) -> str:
    return "" if value is None else str(value).strip()


def has_value(value: Any) -> bool:
    """False for None and for strings that are blank after trimming."""
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    return True


def to_number(value: Any) -> float | int | Decimal | None:
    """Parse a native number or a numeric string; None if not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return value
    if isinstance(value, str) and PATTERNS["number"].match(value):
        return float(value.replace(",", ""))
    return None


def _pattern_name(pattern: Any) -> str:
    if isinstance(pattern, re.Pattern):
        return pattern.pattern
    return str(pattern)


# =============================================================================
# Presence
# =============================================================================


def required(handle, value, attr, parameter, entity, computed) -> None:
    """Validates that the attribute has a value when it is required.

    ``parameter`` is a bool or a predicate called as
    ``parameter(value, attr, computed)``. An empty value on an attribute that
    is not required halts the chain: no other rule for it runs.
    """
    is_required = parameter(value, attr, computed) if callable(parameter) else parameter
    if not has_value(value):
        if is_required:
            return handle.fail("required")
        return handle.halt()
    handle.resolve()


def acceptance(handle, value, attr, parameter, entity, computed) -> None:
    # e.g. terms of use; True or "true" are accepted
    if value is True or value == "true":
        return handle.resolve()
    handle.fail("acceptance")


# =============================================================================
# Numeric Bounds
# =============================================================================


def min_(handle, value, attr, parameter, entity, computed) -> None:
    number = to_number(value)
    if number is None or number < parameter:
        return handle.fail("min", parameter)
    handle.resolve()


def max_(handle, value, attr, parameter, entity, computed) -> None:
    number = to_number(value)
    if number is None or number > parameter:
        return handle.fail("max", parameter)
    handle.resolve()


def range_(handle, value, attr, parameter, entity, computed) -> None:
    low, high = parameter
    number = to_number(value)
    if number is None or number < low or number > high:
        return handle.fail("range", low, high)
    handle.resolve()


# =============================================================================
# Length Bounds
# =============================================================================


def length(handle, value, attr, parameter, entity, computed) -> None:
    if not has_value(value) or len(_trim(value)) != parameter:
        return handle.fail("length", parameter)
    handle.resolve()


def min_length(handle, value, attr, parameter, entity, computed) -> None:
    if not has_value(value) or len(_trim(value)) < parameter:
        return handle.fail("minLength", parameter)
    handle.resolve()


def max_length(handle, value, attr, parameter, entity, computed) -> None:
    if not has_value(value) or len(_trim(value)) > parameter:
        return handle.fail("maxLength", parameter)
    handle.resolve()


def range_length(handle, value, attr, parameter, entity, computed) -> None:
    low, high = parameter
    if not has_value(value) or not low <= len(_trim(value)) <= high:
        return handle.fail("rangeLength", low, high)
    handle.resolve()


# =============================================================================
# Comparison
# =============================================================================


def one_of(handle, value, attr, parameter, entity, computed) -> None:
    """Case sensitive membership check."""
    if value not in parameter:
        return handle.fail("oneOf", ", ".join(str(v) for v in parameter))
    handle.resolve()


def equal_to(handle, value, attr, parameter, entity, computed) -> None:
    """Validates that the value equals the attribute named by ``parameter``.

    The other value is read from ``computed``, the prospective attribute set of
    the current run, so proposed changes are compared with each other.
    """
    other = lookup(computed, parameter) if isinstance(computed, Mapping) else None
    if value != other:
        return handle.fail("equalTo", handle.label(parameter))
    handle.resolve()


def pattern(handle, value, attr, parameter, entity, computed) -> None:
    """Validates that the value matches a pattern.

    ``parameter`` is a name from ``PATTERNS`` ("digits", "number", "email",
    "url"), a regular expression string, or a compiled pattern.
    """
    regex = PATTERNS.get(parameter) if isinstance(parameter, str) else None
    if regex is None:
        regex = parameter if isinstance(parameter, re.Pattern) else re.compile(parameter)
    if not has_value(value) or not regex.search(str(value)):
        return handle.fail("pattern", _pattern_name(parameter))
    handle.resolve()


# =============================================================================
# Custom Function
# =============================================================================


def fn(handle, value, attr, parameter, entity, computed) -> Any:
    """Delegates to a custom function.

    ``parameter`` is a callable or the name of a method on the entity. It is
    called as ``parameter(handle, value, attr, entity, computed)`` and must
    settle the handle itself; it may return a coroutine.

    This is the built-in contract minus ``parameter``, which would only be
    the function itself. The handle comes first as it does for built-ins,
    so ``handle.label()`` and ``handle.fail()`` are available.
    """
    func = getattr(entity, parameter) if isinstance(parameter, str) else parameter
    return func(handle, value, attr, entity, computed)


# =============================================================================
# Registration
# =============================================================================

BUILTIN_VALIDATORS = {
    "required": required,
    "acceptance": acceptance,
    "min": min_,
    "max": max_,
    "range": range_,
    "length": length,
    "minLength": min_length,
    "maxLength": max_length,
    "rangeLength": range_length,
    "oneOf": one_of,
    "equalTo": equal_to,
    "pattern": pattern,
    "fn": fn,
}


def register_builtin_validators() -> None:
    """Register all built-in validators with the ValidatorRegistry.

    Call this at application startup. Idempotent.
    """
    for kind, func in BUILTIN_VALIDATORS.items():
        ValidatorRegistry.register(kind, func)
