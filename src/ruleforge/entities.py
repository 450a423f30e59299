"""Minimal host entities: evented models and collections.

The validation engine only needs the small surface declared by
``ruleforge.validation.types.Entity`` and ``EntityCollection``. These classes
provide that surface for applications without their own model layer.

Usage:
    class Signup(Model):
        validation = {
            "email": {"required": True, "pattern": "email"},
            "age": {"min": 18},
        }
        labels = {"email": "E-mail address"}

    signup = Signup({"email": "a@b.com", "age": 21})
    signup.on("validated", lambda is_valid, model, errors: ...)
"""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any, ClassVar

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class Events:
    """Named event subscriptions."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, callback: Listener) -> None:
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Listener | None = None) -> None:
        """Remove ``callback`` from ``event``, or every listener when omitted."""
        if callback is None:
            self._listeners.pop(event, None)
            return
        listeners = self._listeners.get(event, [])
        self._listeners[event] = [cb for cb in listeners if cb != callback]

    def trigger(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            callback(*args)


class Model(Events):
    """A record with a mutable attribute tree and optional validation rules.

    Class attributes:
        validation: Attribute path -> rule declaration
        labels: Attribute path -> display label used in messages
    """

    validation: ClassVar[Mapping[str, Any]] = {}
    labels: ClassVar[Mapping[str, str]] = {}

    def __init__(self, attributes: Mapping[str, Any] | None = None):
        super().__init__()
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.collection: "Collection | None" = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def set(self, attrs: Mapping[str, Any]) -> dict[str, Any]:
        """Write ``attrs`` and trigger ``change`` events.

        Returns:
            The attributes whose value actually changed
        """
        changes = {
            key: value
            for key, value in attrs.items()
            if key not in self.attributes or self.attributes[key] != value
        }
        self.attributes.update(attrs)
        for key, value in changes.items():
            self.trigger(f"change:{key}", self, value)
        if changes:
            self.trigger("change", self, changes)
        return changes

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.attributes!r})"


class Collection(Events):
    """An ordered set of models that announces ``add`` and ``remove``."""

    model: ClassVar[type[Model]] = Model

    def __init__(self, models: Iterable[Model | Mapping[str, Any]] = ()):
        super().__init__()
        self.models: list[Model] = []
        for item in models:
            self.add(item, silent=True)

    def add(self, item: Model | Mapping[str, Any], *, silent: bool = False) -> Model:
        model = item if isinstance(item, Model) else self.model(item)
        if model in self.models:
            return model
        self.models.append(model)
        model.collection = self
        if not silent:
            self.trigger("add", model, self)
        return model

    def remove(self, model: Model, *, silent: bool = False) -> None:
        if model not in self.models:
            logger.debug("Ignoring removal of %r: not a member", model)
            return
        self.models.remove(model)
        model.collection = None
        if not silent:
            self.trigger("remove", model, self)

    def __iter__(self) -> Iterator[Model]:
        return iter(list(self.models))

    def __len__(self) -> int:
        return len(self.models)
