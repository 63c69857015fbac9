"""Identity keys for shared sub-entities — pure functions, no I/O.

Addresses are repeated across boxes and products across box items; these keys
decide which copies are "the same" entity for grouping and propagation.
"""

from dataclasses import dataclass, field

from booking_agent.schemas.shipment import ProductDetail, ShipmentAddress, ShipmentBox


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def normalize_hsn(raw: str | None) -> str:
    """Strip embedded separators (dots, spaces, dashes) from a classification code."""
    if not raw:
        return ""
    return "".join(ch for ch in str(raw) if ch not in ". -")


def address_key(address: ShipmentAddress | None) -> tuple[str, str, str]:
    """(street, city, zip), trimmed and lower-cased. A missing address keys as blanks."""
    if address is None:
        return ("", "", "")
    return (_norm(address.address), _norm(address.city), _norm(address.zip))


def addresses_match(a: ShipmentAddress | None, b: ShipmentAddress | None) -> bool:
    return address_key(a) == address_key(b)


def description_key(description: str | None) -> str:
    """Item ↔ product matching key: trimmed, lower-cased description."""
    return _norm(description)


def product_key(product: ProductDetail) -> tuple[str, str]:
    """(description, export code): the customs summary identity."""
    return (description_key(product.product_description), normalize_hsn(product.hsn_code))


# ── Receiver groups ──


@dataclass
class ReceiverGroup:
    """Boxes that share one receiver address."""

    key: tuple[str, str, str]
    address: ShipmentAddress
    box_indices: list[int] = field(default_factory=list)


def receiver_groups(boxes: list[ShipmentBox]) -> list[ReceiverGroup]:
    """Group boxes by receiver address key, in first-seen order."""
    groups: dict[tuple[str, str, str], ReceiverGroup] = {}
    for idx, box in enumerate(boxes):
        key = address_key(box.receiver_address)
        group = groups.get(key)
        if group is None:
            groups[key] = ReceiverGroup(key=key, address=box.receiver_address, box_indices=[idx])
        else:
            group.box_indices.append(idx)
    return list(groups.values())


def boxes_sharing_address(boxes: list[ShipmentBox], box_index: int) -> list[int]:
    """Indices of every box whose receiver key equals that of ``boxes[box_index]``."""
    target = address_key(boxes[box_index].receiver_address)
    return [i for i, box in enumerate(boxes) if address_key(box.receiver_address) == target]
