"""Invertible commands for optimistic cache patches.

A command turns one cached value into its provisional successor and can
turn that successor back into the original value. Commands never mutate
their input: dicts, lists and models are copied, so a rollback restores a
value equal to the one observed before the patch.

``bind`` returns a copy of the command that remembers what it overwrites
in a given value. The mutation executor binds every command before
applying it, so inverting a bound command restores ``None`` fields and
absent dict keys exactly.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

from pydantic import BaseModel

from feedsync.services.keys import QueryKey, normalize_key


class _Sentinel:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


MISSING: Any = _Sentinel("MISSING")
"""Marks a dict field that did not exist before a patch."""

UNBOUND: Any = _Sentinel("UNBOUND")
"""Marks a command that has not captured its previous value."""


class Command(Protocol):
    """A reversible state transformation."""

    def bind(self, state: Any) -> Command: ...

    def apply(self, state: Any) -> Any: ...

    def invert(self, state: Any) -> Any: ...


def read_field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a mapping, pydantic model or plain object."""
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def write_field(obj: Any, name: str, value: Any) -> Any:
    """Return a copy of ``obj`` with one field replaced."""
    return write_fields(obj, {name: value})


def write_fields(obj: Any, values: Mapping[str, Any]) -> Any:
    """Return a copy of ``obj`` with several fields replaced."""
    if isinstance(obj, BaseModel):
        return obj.model_copy(update=dict(values))
    if isinstance(obj, Mapping):
        updated = dict(obj)
        updated.update(values)
        return updated
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.replace(obj, **values)
    msg = f"Cannot patch fields of {type(obj).__name__}"
    raise TypeError(msg)


def restore_fields(obj: Any, values: Mapping[str, Any]) -> Any:
    """Write captured field values back; ``MISSING`` drops the dict key."""
    present = {name: value for name, value in values.items() if value is not MISSING}
    restored = write_fields(obj, present) if present else obj
    absent = [name for name, value in values.items() if value is MISSING]
    if absent and isinstance(restored, Mapping):
        restored = {name: value for name, value in restored.items() if name not in absent}
    return restored


@dataclass(frozen=True)
class SetValue:
    """Replace the whole value; ``previous`` is what a rollback restores."""

    value: Any
    previous: Any = None

    def bind(self, state: Any) -> SetValue:
        return dataclasses.replace(self, previous=state)

    def apply(self, state: Any) -> Any:
        return self.value

    def invert(self, state: Any) -> Any:
        return self.previous


@dataclass(frozen=True)
class MergeFields:
    """Overwrite selected fields of a model or dict."""

    fields: Mapping[str, Any]
    previous: Mapping[str, Any]

    @classmethod
    def capture(cls, state: Any, fields: Mapping[str, Any]) -> MergeFields:
        """Build a merge that remembers the current values of ``fields``."""
        return cls(
            fields=dict(fields),
            previous={name: read_field(state, name, MISSING) for name in fields},
        )

    def bind(self, state: Any) -> MergeFields:
        return MergeFields.capture(state, self.fields)

    def apply(self, state: Any) -> Any:
        return write_fields(state, self.fields)

    def invert(self, state: Any) -> Any:
        return restore_fields(state, self.previous)


@dataclass(frozen=True)
class SetMappingItem:
    """Set or remove one item of a dict value.

    ``value=None`` removes the item. ``previous=None`` means the item was
    absent before the patch.
    """

    item_key: Any
    value: Any
    previous: Any = None

    def _write(self, state: Any, value: Any) -> dict[Any, Any]:
        updated = dict(state or {})
        if value is None:
            updated.pop(self.item_key, None)
        else:
            updated[self.item_key] = value
        return updated

    def bind(self, state: Any) -> SetMappingItem:
        if not isinstance(state, Mapping):
            return self
        return dataclasses.replace(self, previous=state.get(self.item_key))

    def apply(self, state: Any) -> Any:
        return self._write(state, self.value)

    def invert(self, state: Any) -> Any:
        return self._write(state, self.previous)


@dataclass(frozen=True)
class AdjustListItem:
    """Add ``delta`` to a numeric field of the list item with a given id.

    A ``None`` or absent field counts as zero. Unbound, ``invert``
    subtracts ``delta``; bound, it restores the captured field value.
    """

    item_id: Any
    field_name: str
    delta: int | float
    id_field: str = "id"
    previous: Any = UNBOUND

    def _rewrite(self, state: Any, update: Any) -> Any:
        if not isinstance(state, Sequence) or isinstance(state, (str, bytes)):
            return state
        return [update(item) if read_field(item, self.id_field) == self.item_id else item for item in state]

    def _adjusted(self, item: Any, delta: int | float) -> Any:
        return write_field(item, self.field_name, (read_field(item, self.field_name, 0) or 0) + delta)

    def bind(self, state: Any) -> AdjustListItem:
        if not isinstance(state, Sequence) or isinstance(state, (str, bytes)):
            return self
        for item in state:
            if read_field(item, self.id_field) == self.item_id:
                return dataclasses.replace(self, previous=read_field(item, self.field_name, MISSING))
        return self

    def apply(self, state: Any) -> Any:
        return self._rewrite(state, lambda item: self._adjusted(item, self.delta))

    def invert(self, state: Any) -> Any:
        if self.previous is UNBOUND:
            return self._rewrite(state, lambda item: self._adjusted(item, -self.delta))
        return self._rewrite(state, lambda item: restore_fields(item, {self.field_name: self.previous}))


@dataclass(frozen=True)
class AdjustField:
    """Add ``delta`` to a numeric field of a model or dict.

    Same ``None`` handling and binding as ``AdjustListItem``.
    """

    field_name: str
    delta: int | float
    previous: Any = UNBOUND

    def bind(self, state: Any) -> AdjustField:
        if state is None:
            return self
        return dataclasses.replace(self, previous=read_field(state, self.field_name, MISSING))

    def apply(self, state: Any) -> Any:
        if state is None:
            return state
        return write_field(state, self.field_name, (read_field(state, self.field_name, 0) or 0) + self.delta)

    def invert(self, state: Any) -> Any:
        if state is None:
            return state
        if self.previous is not UNBOUND:
            return restore_fields(state, {self.field_name: self.previous})
        return write_field(state, self.field_name, (read_field(state, self.field_name, 0) or 0) - self.delta)


@dataclass(frozen=True)
class Compose:
    """Apply commands in order; invert them in reverse order."""

    commands: tuple[Command, ...] = field(default_factory=tuple)

    def bind(self, state: Any) -> Compose:
        bound = []
        for command in self.commands:
            command = command.bind(state)
            bound.append(command)
            state = command.apply(state)
        return Compose(tuple(bound))

    def apply(self, state: Any) -> Any:
        for command in self.commands:
            state = command.apply(state)
        return state

    def invert(self, state: Any) -> Any:
        for command in reversed(self.commands):
            state = command.invert(state)
        return state


@dataclass(frozen=True)
class OptimisticPatch:
    """A command applied to every cached entry matching ``pattern``.

    Entries that hold no data are skipped.
    """

    pattern: QueryKey
    command: Command

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", normalize_key(self.pattern))


__all__ = [
    "MISSING",
    "UNBOUND",
    "AdjustField",
    "AdjustListItem",
    "Command",
    "Compose",
    "MergeFields",
    "OptimisticPatch",
    "SetMappingItem",
    "SetValue",
    "read_field",
    "restore_fields",
    "write_field",
    "write_fields",
]
