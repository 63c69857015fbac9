"""Typed field accessors for shipment data.

Corrections travel over the wire as dot-paths (``shipment_boxes.0.receiver_address.city``).
Instead of building those strings by hand, callers use the constructors below;
each one is checked against the pydantic shipment schema so a typo fails at the
call site rather than silently writing a stray key into the draft.
"""

import types
import typing
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from booking_agent.schemas.shipment import (
    ADDRESS_ROLES,
    COLLECTION_FIELDS,
    ProductDetail,
    ShipmentAddress,
    ShipmentBox,
    ShipmentBoxItem,
    ShipmentData,
)

# Top-level keys the Drafts Service handles outside the shipment JSON.
DRAFT_LEVEL_FIELDS: frozenset[str] = frozenset({"seller_id", "xindus_customer_id"})

Segment = str | int


@dataclass(frozen=True)
class FieldPath:
    """A validated location inside a draft's shipment data."""

    segments: tuple[Segment, ...]

    def __post_init__(self) -> None:
        if not self.segments:
            raise ValueError("Field path must not be empty")
        _check_segments(self.segments)

    @classmethod
    def parse(cls, path: "str | FieldPath") -> "FieldPath":
        if isinstance(path, FieldPath):
            return path
        if not path or not path.strip():
            raise ValueError("Field path must not be empty")
        segments: list[Segment] = []
        for part in path.strip().split("."):
            segments.append(int(part) if part.isdigit() else part)
        return cls(tuple(segments))

    @property
    def path(self) -> str:
        return ".".join(str(s) for s in self.segments)

    @property
    def root(self) -> str:
        return str(self.segments[0])

    @property
    def is_collection(self) -> bool:
        return len(self.segments) == 1 and self.root in COLLECTION_FIELDS

    def is_within(self, other: "FieldPath") -> bool:
        """True when this path equals ``other`` or lies underneath it."""
        return self.segments[: len(other.segments)] == other.segments

    def relative_to(self, other: "FieldPath") -> tuple[Segment, ...]:
        if not self.is_within(other):
            raise ValueError(f"{self.path} is not inside {other.path}")
        return self.segments[len(other.segments):]

    def __str__(self) -> str:
        return self.path


# ── Schema walk ──


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_model(annotation: Any) -> bool:
    return (
        typing.get_origin(annotation) is None
        and isinstance(annotation, type)
        and issubclass(annotation, BaseModel)
    )


def _check_segments(segments: tuple[Segment, ...]) -> None:
    if len(segments) == 1 and segments[0] in DRAFT_LEVEL_FIELDS:
        return

    current: Any = ShipmentData
    walked: list[str] = []
    for segment in segments:
        where = ".".join(walked) or "<shipment>"
        if _is_model(current):
            if not isinstance(segment, str) or segment not in current.model_fields:
                raise ValueError(f"Unknown field {segment!r} under {where}")
            current = _unwrap_optional(current.model_fields[segment].annotation)
        elif typing.get_origin(current) is list:
            if not isinstance(segment, int):
                raise ValueError(f"Expected a list index under {where}, got {segment!r}")
            (current,) = typing.get_args(current)
        else:
            raise ValueError(f"{where} is a scalar field and has no {segment!r}")
        walked.append(str(segment))


def _render(segments: tuple[Segment, ...]) -> str:
    return ".".join(str(s) for s in segments)


def _require(model: type[BaseModel], name: str) -> None:
    if name not in model.model_fields:
        raise ValueError(f"{model.__name__} has no field {name!r}")


# ── Constructors ──


def shipment_field(name: str) -> FieldPath:
    if name in ADDRESS_ROLES or name in COLLECTION_FIELDS:
        raise ValueError(f"{name!r} is not a scalar shipment field")
    return FieldPath((name,))


def address_field(role: str, name: str) -> FieldPath:
    if role not in ADDRESS_ROLES:
        raise ValueError(f"Unknown address role {role!r}")
    _require(ShipmentAddress, name)
    return FieldPath((role, name))


def collection(name: str) -> FieldPath:
    if name not in COLLECTION_FIELDS:
        raise ValueError(f"{name!r} is not a replaceable collection")
    return FieldPath((name,))


def box_field(box_index: int, name: str) -> FieldPath:
    _require(ShipmentBox, name)
    return FieldPath(("shipment_boxes", box_index, name))


def box_address_field(box_index: int, name: str) -> FieldPath:
    _require(ShipmentAddress, name)
    return FieldPath(("shipment_boxes", box_index, "receiver_address", name))


def item_field(box_index: int, item_index: int, name: str) -> FieldPath:
    _require(ShipmentBoxItem, name)
    return FieldPath(("shipment_boxes", box_index, "shipment_box_items", item_index, name))


def product_field(product_index: int, name: str) -> FieldPath:
    _require(ProductDetail, name)
    return FieldPath(("product_details", product_index, name))


# ── Reading / writing wire-shaped data ──


def get_value(data: Any, path: "str | FieldPath") -> Any:
    """Read the value at ``path``; ``None`` when any step is missing."""
    current = data
    for segment in FieldPath.parse(path).segments:
        if isinstance(current, dict):
            current = current.get(str(segment))
        elif isinstance(current, list) and isinstance(segment, int):
            current = current[segment] if 0 <= segment < len(current) else None
        else:
            return None
    return current


def set_value(data: dict[str, Any], path: "str | FieldPath", value: Any) -> None:
    """Write ``value`` at ``path`` in place, creating missing objects on the way.

    List indices must already exist; a path past the end of a list raises ValueError.
    """
    segments = FieldPath.parse(path).segments
    current: Any = data
    for position, segment in enumerate(segments[:-1]):
        following = segments[position + 1]
        if isinstance(current, list):
            if not isinstance(segment, int) or not 0 <= segment < len(current):
                raise ValueError(f"Index {segment} out of range in {_render(segments)}")
            if not isinstance(current[segment], dict):
                current[segment] = {}
            current = current[segment]
            continue
        child = current.get(str(segment))
        if isinstance(following, int):
            if not isinstance(child, list):
                raise ValueError(f"{segment!r} is not a list in {_render(segments)}")
        elif not isinstance(child, dict):
            child = {}
            current[str(segment)] = child
        current = child

    last = segments[-1]
    if isinstance(current, list):
        if not isinstance(last, int) or not 0 <= last < len(current):
            raise ValueError(f"Index {last} out of range in {_render(segments)}")
        current[last] = value
    else:
        current[str(last)] = value
