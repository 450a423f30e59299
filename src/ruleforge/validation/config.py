"""Validation options and process-wide defaults.

Options are an explicit value: every binding and every run receives its own
``ValidationOptions``. The process-wide default only seeds new bindings and
is replaced (never mutated) by ``configure()``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any

from ruleforge.validation.types import InvalidCallback, ValidCallback

logger = logging.getLogger(__name__)


class LabelFormatter(Enum):
    """How attribute paths are rendered in built-in messages."""

    NONE = "none"  # Raw attribute path
    SENTENCE_CASE = "sentenceCase"  # someAttribute -> Some attribute
    LABEL = "label"  # Entity-declared label, falling back to sentence case


def _noop_valid(view: Any, attr: str, selector: str) -> None:
    logger.debug("Attribute '%s' is valid", attr)


def _noop_invalid(view: Any, attr: str, message: str, selector: str) -> None:
    logger.debug("Attribute '%s' is invalid: %s", attr, message)


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ValidationOptions:
    """Options controlling a validation binding or run.

    Attributes:
        force_update: Accept changes even when validation fails (callbacks still fire)
        selector: Forwarded to the callbacks to locate the attribute's widget
        label_formatter: How attribute names appear in built-in messages
        on_valid: Called as (view, attr, selector) for each valid attribute
        on_invalid: Called as (view, attr, message, selector) for each invalid attribute
    """

    force_update: bool = False
    selector: str = "name"
    label_formatter: LabelFormatter = LabelFormatter.SENTENCE_CASE
    on_valid: ValidCallback = _noop_valid
    on_invalid: InvalidCallback = _noop_invalid

    def merge(self, overrides: dict[str, Any] | None = None, **kwargs: Any) -> ValidationOptions:
        """Return a copy with the given option values replaced.

        Unknown option names raise ``TypeError``; ``None`` values are ignored so
        callers can forward optional arguments unchanged.
        """
        values = dict(overrides or {})
        values.update(kwargs)
        known = {f.name for f in fields(self)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise TypeError(f"Unknown validation option(s): {', '.join(unknown)}")

        changes = {k: v for k, v in values.items() if v is not None}
        if "label_formatter" in changes:
            changes["label_formatter"] = LabelFormatter(changes["label_formatter"])
        return replace(self, **changes)

    @classmethod
    def from_env(cls, base: ValidationOptions | None = None) -> ValidationOptions:
        """Create options from environment variables.

        Reads:
        1. RULEFORGE_FORCE_UPDATE ("true"/"1"/"yes"/"on" enable it)
        2. RULEFORGE_SELECTOR
        3. RULEFORGE_LABEL_FORMATTER ("none", "sentenceCase" or "label")
        """
        options = base or cls()

        force_update = os.environ.get("RULEFORGE_FORCE_UPDATE")
        selector = os.environ.get("RULEFORGE_SELECTOR")
        label_formatter = os.environ.get("RULEFORGE_LABEL_FORMATTER")

        return options.merge(
            force_update=force_update.strip().lower() in _TRUTHY if force_update else None,
            selector=selector or None,
            label_formatter=label_formatter or None,
        )


_default_options = ValidationOptions()


def default_options() -> ValidationOptions:
    """The process-wide default options used by new bindings."""
    return _default_options


def configure(**kwargs: Any) -> ValidationOptions:
    """Replace the process-wide default options.

    Existing bindings keep the options they were created with.

    Example:
        configure(label_formatter="label", force_update=True)
    """
    global _default_options
    _default_options = _default_options.merge(**kwargs)
    return _default_options


def reset_defaults() -> None:
    """Restore the built-in defaults. Primarily for testing."""
    global _default_options
    _default_options = ValidationOptions()
