"""Message templates, label formatters and named patterns.

Built-in validators report failures with positional templates such as
``"{0} must be greater than or equal to {1}"`` where ``{0}`` is the formatted
attribute label and the remaining placeholders are the rule's parameters.
"""

import re
from typing import Any

from ruleforge.validation.config import LabelFormatter


# =============================================================================
# Default Messages
# =============================================================================

DEFAULT_MESSAGES: dict[str, str] = {
    "required": "{0} is required",
    "acceptance": "{0} must be accepted",
    "min": "{0} must be greater than or equal to {1}",
    "max": "{0} must be less than or equal to {1}",
    "range": "{0} must be between {1} and {2}",
    "length": "{0} must be {1} characters",
    "minLength": "{0} must be at least {1} characters",
    "maxLength": "{0} must be at most {1} characters",
    "rangeLength": "{0} must be between {1} and {2} characters",
    "oneOf": "{0} must be one of: {1}",
    "equalTo": "{0} must be the same as {1}",
    "pattern": "{0} must be a valid {1}",
    "invalid": "{0} is invalid",
}


# =============================================================================
# Named Patterns
# =============================================================================

PATTERNS: dict[str, re.Pattern[str]] = {
    # Any digit(s), e.g. 0-9
    "digits": re.compile(r"^\d+$"),
    # Any number, e.g. 100.000 or -1,234.5
    "number": re.compile(r"^-?(?:\d+|\d{1,3}(?:,\d{3})+)(?:\.\d+)?$"),
    # Email address, e.g. mail@example.com
    "email": re.compile(
        r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?"
        r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)*\.[a-zA-Z]{2,}$",
        re.IGNORECASE,
    ),
    # URL with http, https or ftp scheme, e.g. http://www.example.com
    "url": re.compile(r"^(?:https?|ftp)://[^\s/$.?#][^\s]*$", re.IGNORECASE),
}


# =============================================================================
# Formatting
# =============================================================================

_PLACEHOLDER = re.compile(r"\{(\d+)\}")


def format_message(template: str, *args: Any) -> str:
    """Replace ``{n}`` placeholders with positional arguments.

    Placeholders without a matching argument are left untouched.
    """

    def replace(match: re.Match) -> str:
        index = int(match.group(1))
        if index < len(args):
            return str(args[index])
        return match.group(0)

    return _PLACEHOLDER.sub(replace, template)


_SENTENCE_BOUNDARY = re.compile(r"^\w|[A-Z]|\b\w")


def sentence_case(attr: str) -> str:
    """Convert ``someAttribute`` or ``some_attribute`` to ``Some attribute``."""

    def replace(match: re.Match) -> str:
        if match.start() == 0:
            return match.group(0).upper()
        return " " + match.group(0).lower()

    return _SENTENCE_BOUNDARY.sub(replace, attr).replace("_", " ")


def format_label(
    attr: str,
    entity: Any = None,
    formatter: LabelFormatter = LabelFormatter.SENTENCE_CASE,
) -> str:
    """Render an attribute path for use in a message."""
    if formatter is LabelFormatter.NONE:
        return attr
    if formatter is LabelFormatter.LABEL:
        labels = getattr(entity, "labels", None) or {}
        if labels.get(attr):
            return labels[attr]
    return sentence_case(attr)
