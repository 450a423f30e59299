"""Rule declaration normalization.

A rule declaration for one attribute may be written as:
- a callable: ``{"username": check_username}``
- the name of a method on the entity: ``{"username": "check_username"}``
- a mapping of validator kind to parameter, optionally with a shared message:
  ``{"age": {"required": True, "min": 18, "msg": "Adults only"}}``
- a list of such mappings, each with its own message:
  ``{"age": [{"required": True, "msg": "Age?"}, {"min": 18, "msg": "Adults only"}]}``

Every form normalizes to an ordered list of ``ValidatorDescriptor``.
"""

from collections.abc import Mapping
from typing import Any

from ruleforge.validation.registry import resolve
from ruleforge.validation.types import ValidatorDescriptor

# Keys that carry the shared custom message instead of a validator kind
MESSAGE_KEYS = frozenset({"msg", "message"})


def normalize_rules(declaration: Any) -> list[ValidatorDescriptor]:
    """Normalize a single attribute's rule declaration.

    Validator kinds are not checked here; an unknown kind surfaces when the
    descriptor is invoked (or earlier, through ``check_rules``).

    Args:
        declaration: Callable, method name, mapping, list of those, or None

    Returns:
        Descriptors in declaration order (empty when nothing is declared)
    """
    if declaration is None:
        return []

    if callable(declaration) or isinstance(declaration, str):
        return [ValidatorDescriptor(kind="fn", parameter=declaration)]

    if isinstance(declaration, Mapping):
        entries: list[Any] = [declaration]
    else:
        entries = list(declaration)

    descriptors: list[ValidatorDescriptor] = []
    for entry in entries:
        if callable(entry) or isinstance(entry, str):
            descriptors.append(ValidatorDescriptor(kind="fn", parameter=entry))
            continue

        message = _message_of(entry)
        for kind, parameter in entry.items():
            if kind in MESSAGE_KEYS:
                continue
            descriptors.append(
                ValidatorDescriptor(kind=kind, parameter=parameter, message=message)
            )
    return descriptors


def _message_of(entry: Mapping[str, Any]) -> str | None:
    for key in ("msg", "message"):
        if entry.get(key):
            return str(entry[key])
    return None


def get_rules(entity: Any) -> Mapping[str, Any]:
    """The rule declarations attached to an entity (empty if none)."""
    return getattr(entity, "validation", None) or {}


def get_validators(entity: Any, attr: str) -> list[ValidatorDescriptor]:
    """Descriptors declared for ``attr`` on ``entity``."""
    return normalize_rules(get_rules(entity).get(attr))


def check_rules(rules: Mapping[str, Any]) -> list[ValidatorDescriptor]:
    """Normalize every attribute's rules and resolve every kind.

    Use this to surface misconfigured rule sets before any validation runs.

    Returns:
        All descriptors, in declaration order

    Raises:
        UnknownValidatorError: On the first unregistered kind
    """
    descriptors: list[ValidatorDescriptor] = []
    for declaration in rules.values():
        for descriptor in normalize_rules(declaration):
            resolve(descriptor.kind)
            descriptors.append(descriptor)
    return descriptors
