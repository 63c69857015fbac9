"""Pre-submission checks against the Xindus Partner API required-field contract.

Pure: takes effective shipment data, returns an ordered list of issues, never
raises. Issues block only the final downstream submission, not editing.
"""

from typing import Any

from pydantic import ValidationError

from booking_agent.schemas.shipment import ShipmentAddress, ShipmentData
from booking_agent.schemas.xindus import IssueCategory, ValidationIssue
from booking_agent.xindus.normalizers import normalize_country

DEST_CLEARANCE_OPTIONS: tuple[str, ...] = ("Formal", "Informal")

ADDRESS_REQUIRED: tuple[str, ...] = ("name", "email", "phone", "address", "city", "state", "zip", "country")

_ADDRESS_LABELS = {
    "shipper_address": "Shipper",
    "receiver_address": "Receiver",
    "billing_address": "Billing",
}


def canonical_clearance_type(raw: str | None) -> str | None:
    """Matching entry of DEST_CLEARANCE_OPTIONS (case-insensitive), or None."""
    value = (raw or "").strip().lower()
    for option in DEST_CLEARANCE_OPTIONS:
        if option.lower() == value:
            return option
    return None


def destination_country(data: ShipmentData) -> str:
    return normalize_country(data.country or data.receiver_address.country)


def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _not_positive(value: float | None) -> bool:
    return value is None or value <= 0


def _validate_address(address: ShipmentAddress | None, label: str, issues: list[ValidationIssue]) -> None:
    if address is None:
        issues.append(ValidationIssue(category=IssueCategory.ADDRESS, message=f"{label} is missing"))
        return
    for name in ADDRESS_REQUIRED:
        if _blank(getattr(address, name)):
            issues.append(ValidationIssue(category=IssueCategory.ADDRESS, message=f"{label} → {name} is required"))


def _missing_roles(raw: dict[str, Any]) -> set[str]:
    return {role for role in _ADDRESS_LABELS if not isinstance(raw.get(role), dict)}


def validate_for_xindus(data: ShipmentData | dict[str, Any]) -> list[ValidationIssue]:
    """Return every reason the shipment would be refused downstream (empty list = ready)."""
    missing: set[str] = set()
    if isinstance(data, dict):
        missing = _missing_roles(data)
        try:
            data = ShipmentData.model_validate(data)
        except ValidationError as e:
            return [
                ValidationIssue(
                    category=IssueCategory.SHIPMENT,
                    message=f"Shipment data is malformed ({e.error_count()} errors)",
                )
            ]

    issues: list[ValidationIssue] = []

    # Shipment
    if _blank(data.invoice_number):
        issues.append(ValidationIssue(category=IssueCategory.SHIPMENT, message="Invoice number is required"))
    if _blank(data.invoice_date):
        issues.append(ValidationIssue(category=IssueCategory.SHIPMENT, message="Invoice date is required"))
    if _blank(data.destination_clearance_type):
        issues.append(ValidationIssue(category=IssueCategory.SHIPMENT, message="Destination clearance type is required"))
    elif canonical_clearance_type(data.destination_clearance_type) is None:
        issues.append(
            ValidationIssue(
                category=IssueCategory.SHIPMENT,
                message=(
                    f"Destination clearance type must be one of {', '.join(DEST_CLEARANCE_OPTIONS)}"
                    f" (got {data.destination_clearance_type!r})"
                ),
            )
        )
    if not destination_country(data):
        issues.append(ValidationIssue(category=IssueCategory.SHIPMENT, message="Destination country is required"))

    # Addresses
    for role in ("shipper_address", "receiver_address"):
        address = None if role in missing else getattr(data, role)
        _validate_address(address, _ADDRESS_LABELS[role], issues)
    # Billing falls back to the shipper when it has no name.
    if "billing_address" not in missing and not _blank(data.billing_address.name):
        _validate_address(data.billing_address, "Billing", issues)

    # Boxes
    if not data.shipment_boxes:
        issues.append(ValidationIssue(category=IssueCategory.BOX, message="At least one box is required"))

    for b, box in enumerate(data.shipment_boxes):
        label = f"Box {b + 1}"
        for dimension in ("length", "width", "height", "weight"):
            if _not_positive(getattr(box, dimension)):
                issues.append(ValidationIssue(category=IssueCategory.BOX, message=f"{label} → {dimension} must be > 0"))

        if not box.shipment_box_items:
            issues.append(ValidationIssue(category=IssueCategory.ITEM, message=f"{label} → must have at least one item"))

        for i, item in enumerate(box.shipment_box_items):
            item_label = f"{label}, Item {i + 1}"
            if _blank(item.description):
                issues.append(ValidationIssue(category=IssueCategory.ITEM, message=f"{item_label} → description is required"))
            if _not_positive(item.quantity):
                issues.append(ValidationIssue(category=IssueCategory.ITEM, message=f"{item_label} → quantity must be > 0"))
            if _not_positive(item.unit_price):
                issues.append(ValidationIssue(category=IssueCategory.ITEM, message=f"{item_label} → unit price must be > 0"))
            if _blank(item.ehsn):
                issues.append(
                    ValidationIssue(category=IssueCategory.ITEM, message=f"{item_label} → export HSN (ehsn) is required")
                )
            if _blank(item.ihsn):
                issues.append(
                    ValidationIssue(category=IssueCategory.ITEM, message=f"{item_label} → import HSN (ihsn) is required")
                )
            fob = item.unit_fob_value if item.unit_fob_value is not None else item.unit_price
            if _not_positive(fob):
                issues.append(
                    ValidationIssue(category=IssueCategory.ITEM, message=f"{item_label} → FOB value or unit price must be > 0")
                )

    return issues
