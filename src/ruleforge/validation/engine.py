"""Asynchronous validation pipeline.

Validation runs as two nested sequential chains inside a single task:

1. Entity chain: every flattened attribute path, one after another. Failures
   are recorded and the chain continues, so the result always holds the full
   invalid-attribute map.
2. Attribute chain: every descriptor declared for one path, one after another.
   The first failure ends the chain; a halt (``required`` on an empty,
   optional value) ends it as valid.

Descriptor k+1 is never invoked before descriptor k has settled, and attribute
i+1 never starts before attribute i has settled. Validators may settle their
handle immediately, from a later loop callback, or from a coroutine; the
chains only continue once the handle settles. A handle that never settles
stalls the run: there is no timeout or cancellation.
"""

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any

from ruleforge.validation.config import ValidationOptions, default_options
from ruleforge.validation.flatten import flatten, lookup
from ruleforge.validation.messages import DEFAULT_MESSAGES, format_label, format_message
from ruleforge.validation.registry import describe, resolve
from ruleforge.validation.rules import get_rules, get_validators
from ruleforge.validation.types import (
    OutcomeStatus,
    ValidationRunResult,
    ValidatorDescriptor,
    ValidatorOutcome,
)

logger = logging.getLogger(__name__)

# Coroutines returned by validators, kept alive until they finish
_background_tasks: set[asyncio.Future] = set()


# =============================================================================
# Validation Handle
# =============================================================================


class ValidationHandle:
    """Write-only result handle given to a validator function.

    The validator settles the handle exactly once with ``resolve()``,
    ``halt()`` or ``reject(message)``. Later settlements are ignored.

    The handle also carries the message helpers built-in validators use, so
    label formatting follows the options of the run that created it.
    """

    def __init__(
        self,
        attr: str,
        entity: Any,
        options: ValidationOptions,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.attr = attr
        self.entity = entity
        self.options = options
        loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[ValidatorOutcome] = loop.create_future()

    @property
    def settled(self) -> bool:
        return self._future.done()

    def resolve(self) -> None:
        """The value passed this validator."""
        self._settle(ValidatorOutcome(OutcomeStatus.PASS))

    def halt(self) -> None:
        """The value passed and no further validators should run for it."""
        self._settle(ValidatorOutcome(OutcomeStatus.HALT))

    def reject(self, message: str | None = None) -> None:
        """The value failed this validator."""
        self._settle(ValidatorOutcome(OutcomeStatus.FAIL, message))

    def label(self, attr: str | None = None) -> str:
        """Display label of ``attr`` (defaults to the attribute being validated)."""
        return format_label(attr or self.attr, self.entity, self.options.label_formatter)

    def message(self, kind: str, *args: Any) -> str:
        """Default message for ``kind`` with the label as ``{0}``."""
        return format_message(DEFAULT_MESSAGES[kind], self.label(), *args)

    def fail(self, kind: str, *args: Any) -> None:
        """Reject with the default message for ``kind``."""
        self.reject(self.message(kind, *args))

    async def wait(self) -> ValidatorOutcome:
        return await self._future

    def _settle(self, outcome: ValidatorOutcome) -> None:
        if self._future.done():
            logger.debug("Ignoring repeated settlement for '%s': %s", self.attr, outcome.status.value)
            return
        self._future.set_result(outcome)


# =============================================================================
# Validator Invoker
# =============================================================================


def _fault_message(descriptor: ValidatorDescriptor, handle: ValidationHandle) -> str:
    return descriptor.message or handle.message("invalid")


async def invoke_validator(
    descriptor: ValidatorDescriptor,
    value: Any,
    attr: str,
    entity: Any,
    computed: Mapping[str, Any],
    options: ValidationOptions | None = None,
) -> ValidatorOutcome:
    """Run one descriptor against one value and wait until it settles.

    A validator that raises before settling its handle (synchronously, or
    from the coroutine it returned) fails with the descriptor's message, or
    the generic "is invalid" message. The fault itself is only logged.

    Raises:
        UnknownValidatorError: If ``descriptor.kind`` is not registered
    """
    fn = resolve(descriptor.kind)
    handle = ValidationHandle(attr, entity, options or default_options())

    try:
        result = fn(handle, value, attr, descriptor.parameter, entity, computed)
    except Exception:
        logger.warning(
            "Validator '%s' (%s) failed for attribute '%s'",
            descriptor.kind,
            describe(fn),
            attr,
            exc_info=True,
        )
        if not handle.settled:
            return ValidatorOutcome(OutcomeStatus.FAIL, _fault_message(descriptor, handle))
    else:
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)
            task.add_done_callback(
                lambda t: _settle_on_fault(t, handle, descriptor)
            )

    outcome = await handle.wait()
    if outcome.status is OutcomeStatus.FAIL:
        message = descriptor.message or outcome.message or handle.message("invalid")
        return ValidatorOutcome(OutcomeStatus.FAIL, message)
    return outcome


def _settle_on_fault(
    task: asyncio.Future,
    handle: ValidationHandle,
    descriptor: ValidatorDescriptor,
) -> None:
    if task.cancelled():
        exc: BaseException | None = asyncio.CancelledError()
    else:
        exc = task.exception()
    if exc is None:
        return
    logger.warning(
        "Validator '%s' failed for attribute '%s': %r",
        descriptor.kind,
        handle.attr,
        exc,
        exc_info=exc,
    )
    if not handle.settled:
        handle.reject(_fault_message(descriptor, handle))


# =============================================================================
# Attribute Chain Runner
# =============================================================================


async def validate_attr(
    entity: Any,
    attr: str,
    value: Any,
    computed: Mapping[str, Any],
    options: ValidationOptions | None = None,
    descriptors: list[ValidatorDescriptor] | None = None,
) -> str | None:
    """Validate one attribute against its declared rules.

    Args:
        entity: The entity owning the rules
        attr: Attribute path
        value: Value to check (need not be the entity's current value)
        computed: Full prospective attribute set for cross-field rules
        options: Run options (label formatting)
        descriptors: Rules to apply; read from the entity when omitted

    Returns:
        The error message of the first failing rule, or None if valid
    """
    if descriptors is None:
        descriptors = get_validators(entity, attr)

    for descriptor in descriptors:
        outcome = await invoke_validator(descriptor, value, attr, entity, computed, options)
        if outcome.status is OutcomeStatus.HALT:
            return None
        if outcome.status is OutcomeStatus.FAIL:
            return outcome.message
    return None


# =============================================================================
# Entity Chain Runner
# =============================================================================


def prospective_attributes(
    entity: Any,
    attrs: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Current attributes overlaid with proposed changes.

    Every attribute with declared rules is present, ``None`` if unset.
    """
    result: dict[str, Any] = {key: None for key in get_rules(entity)}
    result.update(getattr(entity, "attributes", None) or {})
    result.update(attrs or {})
    return result


async def validate_entity(
    entity: Any,
    attrs: Mapping[str, Any],
    options: ValidationOptions | None = None,
) -> ValidationRunResult:
    """Validate every attribute of a prospective attribute set.

    Every path is validated even after earlier failures.

    Args:
        entity: The entity owning the rules
        attrs: The full attribute set to validate (see ``prospective_attributes``)
        options: Run options

    Returns:
        ValidationRunResult with the invalid-attribute map and overall validity
    """
    computed = dict(attrs)
    flattened = flatten(attrs)

    # Rules declared on a nested mapping validate the mapping itself
    for attr in get_rules(entity):
        if attr not in flattened:
            flattened[attr] = lookup(attrs, attr)

    result = ValidationRunResult()
    for attr, value in flattened.items():
        message = await validate_attr(entity, attr, value, computed, options)
        if message is not None:
            result.invalid_attrs[attr] = message
            result.is_valid = False

    logger.debug(
        "Validated %d attribute(s) of %s: %d invalid",
        len(flattened),
        type(entity).__name__,
        len(result.invalid_attrs),
    )
    return result
