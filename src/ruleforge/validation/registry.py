"""Validator registry for ruleforge.

Provides registration and lookup for:
- Built-in validators (shipped with the engine)
- Custom validators (application-specific, explicitly registered)
"""

from collections.abc import Awaitable, Callable
from typing import Any

from ruleforge.validation.types import UnknownValidatorError

# Validator function signature:
#   (handle, value, attr, parameter, entity, computed) -> None | Awaitable[None]
ValidatorFn = Callable[..., Awaitable[None] | None]


class ValidatorRegistry:
    """Registry of validator functions keyed by rule kind.

    Validators must be registered before rules can reference them. The
    built-in kinds are registered by ``register_builtin_validators()``;
    applications register their own kinds at startup.

    Example:
        async def unique_username(handle, value, attr, parameter, entity, computed):
            if await accounts.exists(value):
                handle.reject("Username is taken")
            else:
                handle.resolve()

        ValidatorRegistry.register("uniqueUsername", unique_username)
    """

    _validators: dict[str, ValidatorFn] = {}

    @classmethod
    def register(cls, kind: str, fn: ValidatorFn, *, replace: bool = False) -> None:
        """Register a validator function under ``kind``.

        Idempotent - re-registering an existing kind is a no-op unless
        ``replace`` is set.

        Args:
            kind: Rule key that selects this validator (e.g., "minLength")
            fn: Validator function
            replace: Overwrite an existing registration
        """
        if kind in cls._validators and not replace:
            return
        cls._validators[kind] = fn

    @classmethod
    def get(cls, kind: str) -> ValidatorFn:
        """Get the validator function for ``kind``.

        Raises:
            UnknownValidatorError: If no validator is registered under ``kind``
        """
        if kind not in cls._validators:
            raise UnknownValidatorError(kind, cls.list_registered())
        return cls._validators[kind]

    @classmethod
    def is_registered(cls, kind: str) -> bool:
        """Check if a validator kind is registered."""
        return kind in cls._validators

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered validator kinds."""
        return sorted(cls._validators.keys())

    @classmethod
    def unregister(cls, kind: str) -> None:
        """Remove a registration if present."""
        cls._validators.pop(kind, None)

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._validators.clear()


def validator(kind: str, *, replace: bool = False) -> Callable[[ValidatorFn], ValidatorFn]:
    """Decorator to register a validator function.

    Usage:
        @validator("even")
        def even(handle, value, attr, parameter, entity, computed):
            if value % 2:
                handle.reject(f"{attr} must be even")
            else:
                handle.resolve()
    """

    def decorator(fn: ValidatorFn) -> ValidatorFn:
        ValidatorRegistry.register(kind, fn, replace=replace)
        return fn

    return decorator


def resolve(kind: str) -> ValidatorFn:
    """Look up ``kind``, registering the built-ins on first use."""
    if not ValidatorRegistry.is_registered(kind):
        from ruleforge.validation.validators import register_builtin_validators

        register_builtin_validators()
    return ValidatorRegistry.get(kind)


def describe(fn: Any) -> str:
    """Readable name of a validator function for log messages."""
    return getattr(fn, "__qualname__", None) or repr(fn)
