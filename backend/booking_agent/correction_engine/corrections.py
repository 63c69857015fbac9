"""Correction model: staging and collapsing field edits before they are submitted.

A reviewer's edits accumulate locally and only reach the Drafts Service as one
combined patch. Collapsing rules:

- one pending correction per field path, last write wins;
- one pending replacement per collection (``shipment_boxes``, ``product_details``);
- a field edit under a replaced collection is written into the replacement;
- a new collection replacement absorbs pending field edits under it.
"""

import copy
from dataclasses import dataclass
from typing import Any

from booking_agent.correction_engine.fields import FieldPath, address_field, get_value, set_value, shipment_field
from booking_agent.schemas.draft import CorrectionItem, SellerProfile
from booking_agent.schemas.shipment import ADDRESS_FIELDS, ShipmentAddress, ShipmentData

_SCALARS = (str, int, float, bool)


def values_equal(a: Any, b: Any) -> bool:
    """Equality as a reviewer sees it: blank == missing, ``"12"`` == ``12``.

    Two strings compare as trimmed text, so ``"07030"`` and ``"7030"`` differ.
    Numeric comparison needs an actual number on at least one side.
    """
    if a == b:
        return True
    if a in (None, "") and b in (None, ""):
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return False
    if isinstance(a, str) and isinstance(b, str):
        return a.strip() == b.strip()
    if isinstance(a, _SCALARS) and isinstance(b, _SCALARS):
        return _same_number(a, b)
    return False


def _same_number(a: Any, b: Any) -> bool:
    try:
        return float(a) == float(b)
    except (TypeError, ValueError):
        return False


@dataclass
class StagedCorrection:
    path: FieldPath
    old_value: Any
    new_value: Any

    def to_item(self) -> CorrectionItem:
        return CorrectionItem(field_path=self.path.path, old_value=self.old_value, new_value=self.new_value)


@dataclass
class CollectionReplacement:
    """A whole-collection edit; ``original`` is the collection before any local edit."""

    name: str
    original: list[Any]
    replacement: list[Any]

    def to_item(self) -> CorrectionItem:
        return CorrectionItem(field_path=self.name, old_value=self.original, new_value=self.replacement)


class CorrectionSet:
    """Pending corrections for one draft, collapsed per path."""

    def __init__(self) -> None:
        self._fields: dict[FieldPath, StagedCorrection] = {}
        self._collections: dict[str, CollectionReplacement] = {}

    def __len__(self) -> int:
        return len(self._fields) + len(self._collections)

    def __bool__(self) -> bool:
        return len(self) > 0

    @property
    def fields(self) -> list[StagedCorrection]:
        return list(self._fields.values())

    @property
    def collections(self) -> list[CollectionReplacement]:
        return list(self._collections.values())

    def replacement_for(self, name: str) -> CollectionReplacement | None:
        return self._collections.get(name)

    def stage_field(self, path: FieldPath, old_value: Any, new_value: Any) -> None:
        """Record ``path`` → ``new_value``; ``old_value`` is the saved value it replaces."""
        replaced = self._collections.get(path.root)
        if replaced is not None:
            set_value({path.root: replaced.replacement}, path, copy.deepcopy(new_value))
            return

        existing = self._fields.get(path)
        if existing is not None:
            existing.new_value = new_value
            return
        self._fields[path] = StagedCorrection(path=path, old_value=old_value, new_value=new_value)

    def replace_collection(self, name: str, original: list[Any], replacement: list[Any]) -> None:
        """Record a whole-collection replacement, absorbing field edits underneath it."""
        root = FieldPath((name,))
        for path in [p for p in self._fields if p.is_within(root)]:
            del self._fields[path]

        existing = self._collections.get(name)
        if existing is not None:
            existing.replacement = copy.deepcopy(replacement)
            return
        self._collections[name] = CollectionReplacement(
            name=name,
            original=copy.deepcopy(original),
            replacement=copy.deepcopy(replacement),
        )

    def apply_to(self, data: dict[str, Any]) -> dict[str, Any]:
        """Overlay pending edits onto ``data`` in place and return it."""
        for staged in self._fields.values():
            set_value(data, staged.path, copy.deepcopy(staged.new_value))
        for replaced in self._collections.values():
            data[replaced.name] = copy.deepcopy(replaced.replacement)
        return data

    def to_patch(self) -> list[CorrectionItem]:
        """Field corrections in staging order, then one correction per replaced collection."""
        return [s.to_item() for s in self._fields.values()] + [
            r.to_item() for r in self._collections.values()
        ]

    def clear(self) -> None:
        self._fields.clear()
        self._collections.clear()

    def snapshot(self) -> "CorrectionSet":
        """Deep copy of the pending state, e.g. the patch about to be sent."""
        clone = CorrectionSet()
        clone._fields = copy.deepcopy(self._fields)
        clone._collections = copy.deepcopy(self._collections)
        return clone

    def remove_submitted(self, submitted: "CorrectionSet", saved: dict[str, Any]) -> None:
        """Drop what ``submitted`` already carried and rebase the rest on ``saved``.

        Entries staged or changed after the snapshot stay pending.
        """
        for path, staged in list(self._fields.items()):
            sent = submitted._fields.get(path)
            if sent is not None and sent.new_value == staged.new_value:
                del self._fields[path]
            else:
                staged.old_value = get_value(saved, path)

        for name, replaced in list(self._collections.items()):
            sent = submitted._collections.get(name)
            if sent is not None and sent.replacement == replaced.replacement:
                del self._collections[name]
            else:
                replaced.original = copy.deepcopy(saved.get(name) or [])


def seller_default_corrections(
    role: str,
    current: ShipmentAddress,
    default: ShipmentAddress | dict[str, Any] | None,
) -> list[CorrectionItem]:
    """Corrections that apply a seller's saved address over the current one.

    Only fields where the default is non-empty and differs are touched.
    """
    if default is None:
        return []
    if isinstance(default, dict):
        default = ShipmentAddress.model_validate(default)

    corrections: list[CorrectionItem] = []
    for name in ADDRESS_FIELDS:
        cur = getattr(current, name) or ""
        new = getattr(default, name) or ""
        if new and new != cur:
            corrections.append(
                CorrectionItem(field_path=address_field(role, name).path, old_value=cur, new_value=new)
            )
    return corrections


SELLER_DEFAULT_FIELDS: tuple[str, ...] = ("destination_clearance_type", "terms_of_trade")
SELLER_DEFAULT_ADDRESSES: tuple[str, ...] = ("billing_address", "ior_address")


def seller_profile_corrections(current: ShipmentData, seller: SellerProfile) -> list[CorrectionItem]:
    """Corrections that fill a shipment from a seller's accumulated defaults.

    Covers the clearance type and terms of trade, the billing and IOR
    addresses (only when the saved address has a name) and the seller's
    shipper address. Unchanged fields produce nothing.
    """
    defaults = seller.defaults or {}
    corrections: list[CorrectionItem] = []

    for name in SELLER_DEFAULT_FIELDS:
        value = defaults.get(name)
        if isinstance(value, str) and value.strip() and value != getattr(current, name):
            corrections.append(
                CorrectionItem(field_path=shipment_field(name).path, old_value=getattr(current, name), new_value=value)
            )

    for role in SELLER_DEFAULT_ADDRESSES:
        saved = defaults.get(role)
        if isinstance(saved, dict) and saved.get("name"):
            corrections.extend(seller_default_corrections(role, getattr(current, role), saved))

    if seller.shipper_address:
        corrections.extend(seller_default_corrections("shipper_address", current.shipper_address, seller.shipper_address))
    return corrections
