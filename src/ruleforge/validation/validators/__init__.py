"""Built-in validators for ruleforge.

This module provides the validators that can be referenced by kind from
rule declarations.
"""

from ruleforge.validation.validators.builtin import (
    BUILTIN_VALIDATORS,
    has_value,
    register_builtin_validators,
    to_number,
)

__all__ = [
    "BUILTIN_VALIDATORS",
    "has_value",
    "register_builtin_validators",
    "to_number",
]
