"""
Field-level change tracking for orders.

Editable order fields are declared once as ``MutableField`` descriptors.
``diff_fields`` compares a patch against an order through those descriptors
and returns a ``ChangeSet`` that can be applied to the order and serialized
into the ``{field: {"from": old, "to": new}}`` shape stored on history rows.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from operator import attrgetter
from typing import Any, Callable, Iterable, Mapping, Optional


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _identity(value: Any) -> Any:
    return value


@dataclass(frozen=True)
class MutableField:
    """Accessor pair for one editable attribute."""

    name: str
    getter: Callable[[Any], Any]
    setter: Callable[[Any, Any], None]
    normalize: Callable[[Any], Any] = _identity


def attribute_field(
    name: str, normalize: Callable[[Any], Any] = _identity
) -> MutableField:
    def setter(target: Any, value: Any) -> None:
        setattr(target, name, value)

    return MutableField(
        name=name,
        getter=attrgetter(name),
        setter=setter,
        normalize=normalize,
    )


ORDER_EDITABLE_FIELDS: tuple[MutableField, ...] = (
    attribute_field("sender_name"),
    attribute_field("sender_phone"),
    attribute_field("receiver_name"),
    attribute_field("receiver_phone"),
    attribute_field("cargo_type"),
    attribute_field("weight", normalize=_as_decimal),
    attribute_field("price", normalize=_as_decimal),
    attribute_field("notes"),
    attribute_field("photo_url"),
)

EDITABLE_FIELD_NAMES = frozenset(f.name for f in ORDER_EDITABLE_FIELDS)


def to_json_value(value: Any) -> Any:
    """Convert a field value into something JSON columns accept."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class FieldChange:
    old: Any
    new: Any


@dataclass
class ChangeSet:
    """Ordered mapping of field name to old/new values."""

    changes: dict[str, FieldChange] = field(default_factory=dict)

    def record(self, name: str, old: Any, new: Any) -> None:
        self.changes[name] = FieldChange(old=old, new=new)

    def __bool__(self) -> bool:
        return bool(self.changes)

    def __contains__(self, name: object) -> bool:
        return name in self.changes

    def __len__(self) -> int:
        return len(self.changes)

    def names(self) -> list[str]:
        return list(self.changes)

    def merge(self, other: "ChangeSet") -> None:
        self.changes.update(other.changes)

    def to_json(self) -> dict[str, dict[str, Any]]:
        return {
            name: {"from": to_json_value(c.old), "to": to_json_value(c.new)}
            for name, c in self.changes.items()
        }


def diff_fields(
    target: Any,
    patch: Mapping[str, Any],
    fields: Iterable[MutableField] = ORDER_EDITABLE_FIELDS,
) -> ChangeSet:
    """
    Compare ``patch`` against ``target`` through the given descriptors.

    Keys absent from ``patch`` are left alone; keys present with a value equal
    to the current one produce no change.
    """
    change_set = ChangeSet()
    for descriptor in fields:
        if descriptor.name not in patch:
            continue
        current = descriptor.getter(target)
        proposed = descriptor.normalize(patch[descriptor.name])
        if descriptor.normalize(current) != proposed:
            change_set.record(descriptor.name, current, proposed)
    return change_set


def apply_changes(
    target: Any,
    change_set: ChangeSet,
    fields: Iterable[MutableField] = ORDER_EDITABLE_FIELDS,
) -> None:
    """Write every recorded change that has a descriptor onto ``target``."""
    for descriptor in fields:
        if descriptor.name in change_set:
            descriptor.setter(target, change_set.changes[descriptor.name].new)
