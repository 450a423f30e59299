"""Lifecycle integration: binding validation to host entities.

Validation is attached to an entity through an ``EntityValidation`` wrapper
rather than by adding methods to the entity. ``bind(view)`` creates wrappers
for the view's model, or for every model in the view's collection (and for
models added to it later); ``validation_for(entity)`` returns the wrapper.

Lifecycle of ``EntityValidation.validate``:
1. Overlay proposed changes on the current attributes
2. Run every attribute's rule chain (see ``engine.validate_entity``)
3. Call ``on_valid`` / ``on_invalid`` per validated attribute
4. Schedule the ``validated`` events for after the current operation
5. Accept (``None``) or reject (the invalid-attribute map) the change

Concurrent runs against one entity are not coordinated: both read the live
attributes. Callers must let a run settle before starting the next.
"""

import asyncio
import logging
import weakref
from collections.abc import Iterable, Mapping
from typing import Any

from ruleforge.validation.config import ValidationOptions, default_options
from ruleforge.validation.engine import (
    prospective_attributes,
    validate_attr,
    validate_entity,
)
from ruleforge.validation.flatten import flatten
from ruleforge.validation.rules import get_rules
from ruleforge.validation.types import BindingError, ValidationRunResult

logger = logging.getLogger(__name__)

_model_bindings: "weakref.WeakKeyDictionary[Any, EntityValidation]" = weakref.WeakKeyDictionary()
_collection_bindings: "weakref.WeakKeyDictionary[Any, CollectionBinding]" = weakref.WeakKeyDictionary()
_background_runs: set[asyncio.Task] = set()


# =============================================================================
# Entity Validation
# =============================================================================


class EntityValidation:
    """Validation capability for one entity.

    Attributes:
        entity: The validated entity
        view: Passed through to the callbacks (may be None)
        options: Options used when a run does not override them
    """

    def __init__(
        self,
        entity: Any,
        view: Any = None,
        options: ValidationOptions | None = None,
    ):
        self.entity = entity
        self.view = view
        self.options = options or default_options()
        self._is_valid: bool | None = None
        self._invalid_attrs: dict[str, str] = {}

    @property
    def invalid_attrs(self) -> dict[str, str]:
        """Invalid-attribute map of the latest completed run."""
        return dict(self._invalid_attrs)

    async def pre_validate(self, attr: str, value: Any) -> str | None:
        """Check a value against ``attr``'s rules without touching the entity.

        Returns:
            The error message, or None if the value is valid
        """
        computed = dict(getattr(self.entity, "attributes", None) or {})
        return await validate_attr(self.entity, attr, value, computed, self.options)

    def is_valid(self, option: str | Iterable[str] | bool | None = None) -> bool:
        """Snapshot validity from the latest completed run.

        Args:
            option: An attribute path, a list of paths, or True to start a
                full validation run first

        An entity without rules is always valid. Before the first run an
        entity with rules reports False, both as a whole and for every path
        that has rules.
        """
        if isinstance(option, str):
            return self._path_is_valid(option)
        if option is not None and not isinstance(option, bool):
            return all(self._path_is_valid(attr) for attr in option)
        if option is True:
            self._run_in_background()
        if not get_rules(self.entity):
            return True
        return bool(self._is_valid)

    def _path_is_valid(self, attr: str) -> bool:
        if self._is_valid is None:
            return attr not in get_rules(self.entity)
        return attr not in self._invalid_attrs

    async def is_valid_async(self, option: str | Iterable[str] | bool | None = True) -> bool:
        """Run a full validation, then answer like ``is_valid``."""
        await self.validate()
        return self.is_valid(None if option is True else option)

    async def validate(
        self,
        attrs: Mapping[str, Any] | None = None,
        **run_options: Any,
    ) -> dict[str, str] | None:
        """Validate proposed changes (or the whole entity when ``attrs`` is None).

        Args:
            attrs: Proposed attribute changes
            **run_options: Option overrides for this run only

        Returns:
            None to accept the change, or the invalid-attribute map to reject
            it. With ``force_update`` the change is always accepted.
        """
        result = await self.run(attrs, **run_options)
        return self._verdict(result, attrs, self.options.merge(run_options))

    async def run(
        self,
        attrs: Mapping[str, Any] | None = None,
        **run_options: Any,
    ) -> ValidationRunResult:
        """Like ``validate`` but returns the full run result."""
        options = self.options.merge(run_options)
        validate_all = attrs is None
        validated_attrs = list(get_rules(self.entity))
        all_attrs = prospective_attributes(self.entity, attrs)
        changed = _changed_paths(attrs if attrs is not None else all_attrs)

        result = await validate_entity(self.entity, all_attrs, options)
        self._is_valid = result.is_valid
        self._invalid_attrs = dict(result.invalid_attrs)

        for attr in validated_attrs:
            if attr not in result.invalid_attrs:
                options.on_valid(self.view, attr, options.selector)

        # Attributes that were already invalid but not part of this change
        # are not announced again on partial validation
        for attr in validated_attrs:
            invalid = attr in result.invalid_attrs
            if invalid and (attr in changed or validate_all):
                options.on_invalid(self.view, attr, result.invalid_attrs[attr], options.selector)

        asyncio.get_running_loop().call_soon(self._announce, result)
        return result

    def _verdict(
        self,
        result: ValidationRunResult,
        attrs: Mapping[str, Any] | None,
        options: ValidationOptions,
    ) -> dict[str, str] | None:
        if options.force_update:
            return None
        changed = _changed_paths(attrs if attrs is not None else result.invalid_attrs)
        if any(attr in changed for attr in result.invalid_attrs):
            return dict(result.invalid_attrs)
        return None

    def _announce(self, result: ValidationRunResult) -> None:
        trigger = getattr(self.entity, "trigger", None)
        if trigger is None:
            return
        invalid_attrs = dict(result.invalid_attrs)
        trigger("validated", result.is_valid, self.entity, invalid_attrs)
        trigger(
            "validated:" + ("valid" if result.is_valid else "invalid"),
            self.entity,
            invalid_attrs,
        )

    def _run_in_background(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._run_and_flush())
            return
        task = loop.create_task(self.run())
        _background_runs.add(task)
        task.add_done_callback(_background_runs.discard)
        task.add_done_callback(self._log_background_failure)

    def _log_background_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background validation of %r failed: %s",
                self.entity,
                exc,
                exc_info=exc,
            )

    async def _run_and_flush(self) -> None:
        await self.run()
        # Let the scheduled "validated" events fire before the loop closes
        await asyncio.sleep(0)

    def __repr__(self) -> str:
        return f"EntityValidation({self.entity!r})"


def _changed_paths(attrs: Mapping[str, Any]) -> set[str]:
    return set(flatten(attrs)) | set(attrs)


# =============================================================================
# Binding
# =============================================================================


class CollectionBinding:
    """Keeps every member of a collection bound while attached."""

    def __init__(self, view: Any, collection: Any, options: ValidationOptions):
        self.view = view
        self.collection = collection
        self.options = options

    def attach(self) -> None:
        for model in list(self.collection.models):
            _bind_model(self.view, model, self.options)
        self.collection.on("add", self._on_add)
        self.collection.on("remove", self._on_remove)

    def detach(self) -> None:
        self.collection.off("add", self._on_add)
        self.collection.off("remove", self._on_remove)
        for model in list(self.collection.models):
            unbind_model(model)

    def _on_add(self, model: Any, *args: Any) -> None:
        _bind_model(self.view, model, self.options)

    def _on_remove(self, model: Any, *args: Any) -> None:
        unbind_model(model)


def mixin(
    entity: Any,
    options: ValidationOptions | None = None,
    view: Any = None,
) -> EntityValidation:
    """Create a validation wrapper for ``entity`` without registering it."""
    return EntityValidation(entity, view=view, options=options)


def _bind_model(view: Any, model: Any, options: ValidationOptions) -> EntityValidation:
    validation = EntityValidation(model, view=view, options=options)
    _model_bindings[model] = validation
    return validation


def unbind_model(model: Any) -> None:
    """Remove the validation wrapper bound to ``model``, if any."""
    _model_bindings.pop(model, None)


def validation_for(entity: Any) -> EntityValidation | None:
    """The wrapper bound to ``entity``, or None if it is not bound."""
    return _model_bindings.get(entity)


def bind(
    view: Any,
    options: ValidationOptions | None = None,
    **overrides: Any,
) -> EntityValidation | CollectionBinding:
    """Bind validation to ``view.model`` or to every model of ``view.collection``.

    Args:
        view: Object exposing ``model`` or ``collection``
        options: Base options (the process-wide defaults when omitted)
        **overrides: Option values replacing those in ``options``

    Raises:
        BindingError: If the view has neither a model nor a collection
    """
    model = getattr(view, "model", None)
    collection = getattr(view, "collection", None)
    options = (options or default_options()).merge(overrides)

    if model is None and collection is None:
        raise BindingError(
            "Before you execute the binding your view must have a model or a collection."
        )

    if model is not None:
        return _bind_model(view, model, options)

    previous = _collection_bindings.pop(collection, None)
    if previous is not None:
        previous.detach()

    binding = CollectionBinding(view, collection, options)
    binding.attach()
    _collection_bindings[collection] = binding
    logger.debug("Bound validation to %d model(s) of %r", len(collection.models), collection)
    return binding


def unbind(view: Any) -> None:
    """Remove validation from a view's model or collection."""
    model = getattr(view, "model", None)
    collection = getattr(view, "collection", None)

    if model is not None:
        unbind_model(model)
    if collection is not None:
        binding = _collection_bindings.pop(collection, None)
        if binding is not None:
            binding.detach()
        else:
            for member in list(collection.models):
                unbind_model(member)


async def apply_changes(
    entity: Any,
    attrs: Mapping[str, Any],
    **run_options: Any,
) -> dict[str, str] | None:
    """Validate proposed changes and write them to the entity if accepted.

    Uses the wrapper bound to ``entity``, or a fresh one with default options.

    Returns:
        None if the changes were written, else the invalid-attribute map
    """
    validation = validation_for(entity) or mixin(entity)
    errors = await validation.validate(attrs, **run_options)
    if errors is not None:
        return errors

    setter = getattr(entity, "set", None)
    if callable(setter):
        setter(dict(attrs))
    else:
        entity.attributes.update(attrs)
    return None
