"""Attribute tree flattening.

Turns a nested attribute tree into dotted paths:

    {"address": {"street": "Main St", "zip": 1234}}

becomes:

    {"address.street": "Main St", "address.zip": 1234}
"""

import re
from collections.abc import Mapping
from datetime import date, time
from typing import Any

from ruleforge.validation.types import Entity, EntityCollection

_MISSING = object()


def is_leaf(value: Any) -> bool:
    """True if ``value`` must not be split into sub-paths.

    Only plain mappings are containers. Dates, times, compiled patterns,
    entities and collections are leaves even when they look composite.
    """
    if not isinstance(value, Mapping) or not value:
        return True
    return isinstance(value, (date, time, re.Pattern, Entity, EntityCollection))


def flatten(
    attrs: Mapping[str, Any] | None,
    into: dict[str, Any] | None = None,
    prefix: str = "",
) -> dict[str, Any]:
    """Flatten ``attrs`` into an ordered mapping of dotted path -> leaf value.

    Keys keep their encounter order. A path that is written twice keeps its
    original position and takes the later value.
    """
    into = {} if into is None else into
    for key, value in (attrs or {}).items():
        path = f"{prefix}{key}"
        if is_leaf(value):
            into[path] = value
        else:
            flatten(value, into, f"{path}.")
    return into


def lookup(attrs: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path from a nested attribute tree.

    Falls back to a literal key named ``path`` when the nested walk finds
    nothing.
    """
    node: Any = attrs
    for part in path.split("."):
        if isinstance(node, Mapping) and part in node:
            node = node[part]
        else:
            node = _MISSING
            break
    if node is not _MISSING:
        return node
    return attrs.get(path, default)
