"""Core types for the ruleforge validation engine.

This module defines the types shared by every stage of a validation run:
- ValidatorDescriptor: one normalized rule (kind + parameter + message)
- ValidatorOutcome: how a single validator settled
- ValidationRunResult: the aggregated outcome of an entity run
- Entity / EntityCollection: the host boundary the engine reads from
- The ruleforge exception hierarchy
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable


# =============================================================================
# Errors
# =============================================================================


class RuleforgeError(Exception):
    """Base class for all ruleforge errors."""
    pass


class ConfigurationError(RuleforgeError):
    """Rules or bindings are set up incorrectly."""
    pass


class UnknownValidatorError(ConfigurationError, ValueError):
    """A rule references a validator kind that is not registered."""

    def __init__(self, kind: str, available: list[str] | None = None):
        self.kind = kind
        self.available = available or []
        message = f"Validator '{kind}' is not registered."
        if self.available:
            message += " Available types: " + ", ".join(self.available)
        super().__init__(message)


class BindingError(ConfigurationError):
    """Validation was bound to a view that has neither a model nor a collection."""
    pass


# =============================================================================
# Descriptors and outcomes
# =============================================================================


@dataclass(frozen=True)
class ValidatorDescriptor:
    """A single normalized validation step for one attribute.

    Attributes:
        kind: Registered validator name (e.g., "required", "pattern", "fn")
        parameter: Validator-specific parameter (bound, pattern, callable, ...)
        message: Custom message replacing the validator's own message on failure
    """

    kind: str
    parameter: Any = None
    message: str | None = None


class OutcomeStatus(Enum):
    """How a validator settled its handle.

    PASS: continue with the next descriptor
    HALT: pass and skip every remaining descriptor for the attribute
    FAIL: stop the attribute chain with a message
    """

    PASS = "pass"
    HALT = "halt"
    FAIL = "fail"


@dataclass(frozen=True)
class ValidatorOutcome:
    """Settled result of one validator invocation."""

    status: OutcomeStatus
    message: str | None = None

    @property
    def passed(self) -> bool:
        return self.status is not OutcomeStatus.FAIL


@dataclass
class ValidationRunResult:
    """Result of validating every attribute of an entity.

    Attributes:
        invalid_attrs: Attribute path -> error message, in evaluation order
        is_valid: True when no attribute failed
    """

    invalid_attrs: dict[str, str] = field(default_factory=dict)
    is_valid: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "invalidAttrs": dict(self.invalid_attrs),
        }


# =============================================================================
# Host boundary
# =============================================================================


@runtime_checkable
class Entity(Protocol):
    """Protocol for the host records the engine validates.

    Entities may additionally expose a ``validation`` mapping (attribute path
    -> rule declaration) and a ``labels`` mapping (attribute path -> display
    label). Both are read with ``getattr`` so they are optional.
    """

    attributes: dict[str, Any]

    def trigger(self, event: str, *args: Any) -> None:
        """Notify listeners of ``event``."""
        ...


@runtime_checkable
class EntityCollection(Protocol):
    """Protocol for host collections that announce membership changes."""

    models: list[Any]

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        ...

    def off(self, event: str, callback: Callable[..., Any] | None = None) -> None:
        ...


# Callback signatures used by the lifecycle integration
ValidCallback = Callable[[Any, str, str], None]
InvalidCallback = Callable[[Any, str, str, str], None]
