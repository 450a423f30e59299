"""ruleforge validation engine.

Rules are declared per attribute path and normalized into ordered validator
descriptors. A run walks every attribute, and every descriptor of an
attribute, strictly in order; validators may settle synchronously or after
awaiting something.

Usage:
    from ruleforge.entities import Model
    from ruleforge.validation import bind, register_builtin_validators

    class Signup(Model):
        validation = {"age": {"required": True, "min": 18}}

    register_builtin_validators()
    validation = bind(view)  # view.model is a Signup
    errors = await validation.validate({"age": 15})
    # {"age": "Age must be greater than or equal to 18"}
"""

from ruleforge.validation.config import (
    LabelFormatter,
    ValidationOptions,
    configure,
    default_options,
    reset_defaults,
)
from ruleforge.validation.engine import (
    ValidationHandle,
    invoke_validator,
    prospective_attributes,
    validate_attr,
    validate_entity,
)
from ruleforge.validation.flatten import flatten, lookup
from ruleforge.validation.lifecycle import (
    CollectionBinding,
    EntityValidation,
    apply_changes,
    bind,
    mixin,
    unbind,
    unbind_model,
    validation_for,
)
from ruleforge.validation.messages import (
    DEFAULT_MESSAGES,
    PATTERNS,
    format_label,
    format_message,
    sentence_case,
)
from ruleforge.validation.registry import ValidatorRegistry, validator
from ruleforge.validation.rules import (
    check_rules,
    get_validators,
    normalize_rules,
)
from ruleforge.validation.types import (
    BindingError,
    ConfigurationError,
    Entity,
    EntityCollection,
    OutcomeStatus,
    RuleforgeError,
    UnknownValidatorError,
    ValidationRunResult,
    ValidatorDescriptor,
    ValidatorOutcome,
)
from ruleforge.validation.validators import register_builtin_validators

__all__ = [
    # Types
    "BindingError",
    "ConfigurationError",
    "Entity",
    "EntityCollection",
    "OutcomeStatus",
    "RuleforgeError",
    "UnknownValidatorError",
    "ValidationRunResult",
    "ValidatorDescriptor",
    "ValidatorOutcome",
    # Configuration
    "LabelFormatter",
    "ValidationOptions",
    "configure",
    "default_options",
    "reset_defaults",
    # Rules
    "check_rules",
    "flatten",
    "get_validators",
    "lookup",
    "normalize_rules",
    # Registry
    "ValidatorRegistry",
    "register_builtin_validators",
    "validator",
    # Engine
    "ValidationHandle",
    "invoke_validator",
    "prospective_attributes",
    "validate_attr",
    "validate_entity",
    # Messages
    "DEFAULT_MESSAGES",
    "PATTERNS",
    "format_label",
    "format_message",
    "sentence_case",
    # Lifecycle
    "CollectionBinding",
    "EntityValidation",
    "apply_changes",
    "bind",
    "mixin",
    "unbind",
    "unbind_model",
    "validation_for",
]
