"""Propagation rules — pure functions, no I/O.

An edit to one copy of a shared entity is fanned out to every dependent copy:

- receiver address → the boxes that share it (all boxes in shared mode, the
  pre-edit group in multi mode);
- customs product → every box item with the same description.

Patches carry absolute values, so applying the same edit twice is a no-op.
"""

import copy
import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from booking_agent.correction_engine.corrections import values_equal
from booking_agent.correction_engine.keys import boxes_sharing_address, description_key, normalize_hsn
from booking_agent.schemas.shipment import ProductDetail, ShipmentAddress, ShipmentBox, TariffScenario

logger = logging.getLogger("booking_agent.propagation")


class PropagationKind(str, enum.Enum):
    ADDRESS = "address"
    PRODUCT = "product"


# ProductDetail field → ShipmentBoxItem field
PRODUCT_TO_ITEM_FIELDS: dict[str, str] = {
    "product_description": "description",
    "hsn_code": "ehsn",
    "ihsn": "ihsn",
    "duty_rate": "duty_rate",
    "base_duty_rate": "base_duty_rate",
    "tariff_scenarios": "tariff_scenarios",
    "country_of_origin": "country_of_origin",
    "unit_price": "unit_price",
    "igst_percent": "igst_amount",
    "gaia_classified": "gaia_classified",
    "hsn_confidence": "hsn_confidence",
}


@dataclass
class PropagationContext:
    """Draft state an edit is evaluated against (pre-edit)."""

    boxes: list[ShipmentBox] = field(default_factory=list)
    products: list[ProductDetail] = field(default_factory=list)
    multi_address: bool = False
    box_index: int | None = None
    product_index: int | None = None
    destination_country: str = ""
    origin_country: str = ""


@dataclass(frozen=True)
class DutyLookupRequest:
    tariff_code: str
    destination_country: str
    origin_country: str


@dataclass
class DutyLookupResult:
    duty_rate: float | None = None
    base_duty_rate: float | None = None
    tariff_scenarios: list[TariffScenario] = field(default_factory=list)


@dataclass
class PropagationResult:
    boxes: list[ShipmentBox] | None = None
    products: list[ProductDetail] | None = None
    duty_lookup: DutyLookupRequest | None = None
    touched_boxes: list[int] = field(default_factory=list)
    touched_items: list[tuple[int, int]] = field(default_factory=list)


def propagate(
    kind: PropagationKind | str,
    old: ShipmentAddress | ProductDetail,
    new: ShipmentAddress | ProductDetail,
    context: PropagationContext,
) -> PropagationResult:
    """Compute the updated collections for an edit of ``old`` into ``new``."""
    kind = PropagationKind(kind)
    if kind is PropagationKind.ADDRESS:
        return propagate_address(new, context)  # type: ignore[arg-type]
    return propagate_product(old, new, context)  # type: ignore[arg-type]


# ── Address → boxes ──


def address_targets(boxes: list[ShipmentBox], box_index: int | None, multi_address: bool) -> list[int]:
    """Box indices that receive an address edit made on ``boxes[box_index]``."""
    if not multi_address:
        return list(range(len(boxes)))
    if box_index is None:
        raise ValueError("Multi-address edits need the index of the edited box")
    if not 0 <= box_index < len(boxes):
        raise ValueError(f"Box index {box_index} out of range ({len(boxes)} boxes)")
    return boxes_sharing_address(boxes, box_index)


def propagate_address(new: ShipmentAddress, context: PropagationContext) -> PropagationResult:
    targets = address_targets(context.boxes, context.box_index, context.multi_address)
    boxes = [box.model_copy(deep=True) for box in context.boxes]
    for idx in targets:
        boxes[idx].receiver_address = new.model_copy(deep=True)
    logger.debug(
        "Address edit applied to %d of %d boxes (multi=%s)",
        len(targets), len(boxes), context.multi_address,
    )
    return PropagationResult(boxes=boxes, touched_boxes=targets)


# ── Product → items ──


def build_product_patch(old: ProductDetail, new: ProductDetail) -> dict[str, Any]:
    """Item-side field patch holding only the product fields that changed."""
    patch: dict[str, Any] = {}
    for product_field, item_field in PRODUCT_TO_ITEM_FIELDS.items():
        before = getattr(old, product_field)
        after = getattr(new, product_field)
        if product_field == "tariff_scenarios":
            if [s.model_dump() for s in before] != [s.model_dump() for s in after]:
                patch[item_field] = [s.model_copy() for s in after]
        elif not values_equal(before, after):
            patch[item_field] = after
    return patch


def matching_items(boxes: list[ShipmentBox], description: str | None) -> list[tuple[int, int]]:
    """(box, item) indices whose description matches, trimmed and case-insensitive."""
    key = description_key(description)
    if not key:
        return []
    return [
        (b, i)
        for b, box in enumerate(boxes)
        for i, item in enumerate(box.shipment_box_items)
        if description_key(item.description) == key
    ]


def apply_item_patch(
    boxes: list[ShipmentBox], targets: list[tuple[int, int]], patch: dict[str, Any]
) -> list[ShipmentBox]:
    updated = [box.model_copy(deep=True) for box in boxes]
    for b, i in targets:
        item = updated[b].shipment_box_items[i]
        for name, value in patch.items():
            setattr(item, name, copy.deepcopy(value))
    return updated


def propagate_product(old: ProductDetail, new: ProductDetail, context: PropagationContext) -> PropagationResult:
    patch = build_product_patch(old, new)
    targets = matching_items(context.boxes, old.product_description)

    products = [p.model_copy(deep=True) for p in context.products]
    if context.product_index is not None:
        if not 0 <= context.product_index < len(products):
            raise ValueError(f"Product index {context.product_index} out of range ({len(products)} products)")
        products[context.product_index] = new.model_copy(deep=True)

    boxes = apply_item_patch(context.boxes, targets, patch) if patch else [
        box.model_copy(deep=True) for box in context.boxes
    ]

    lookup = None
    new_code = normalize_hsn(new.ihsn)
    if new_code and new_code != normalize_hsn(old.ihsn):
        lookup = DutyLookupRequest(
            tariff_code=new_code,
            destination_country=context.destination_country,
            origin_country=new.country_of_origin or context.origin_country,
        )

    logger.debug(
        "Product %r edit: %d changed fields, %d matching items, lookup=%s",
        old.product_description, len(patch), len(targets), lookup is not None,
    )
    return PropagationResult(
        boxes=boxes,
        products=products,
        duty_lookup=lookup,
        touched_boxes=sorted({b for b, _ in targets}),
        touched_items=targets if patch else [],
    )


def apply_duty_result(
    result: DutyLookupResult,
    product_index: int,
    boxes: list[ShipmentBox],
    products: list[ProductDetail],
) -> PropagationResult:
    """Second pass: merge looked-up duty fields into a product and its items."""
    if not 0 <= product_index < len(products):
        raise ValueError(f"Product index {product_index} out of range ({len(products)} products)")

    product = products[product_index]
    updated_product = product.model_copy(
        deep=True,
        update={
            "duty_rate": result.duty_rate,
            "base_duty_rate": result.base_duty_rate,
            "tariff_scenarios": [s.model_copy() for s in result.tariff_scenarios],
        },
    )
    context = PropagationContext(boxes=boxes, products=products, product_index=product_index)
    outcome = propagate_product(product, updated_product, context)
    # The lookup was keyed on the current code; never chain another one.
    outcome.duty_lookup = None
    return outcome
