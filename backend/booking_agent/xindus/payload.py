"""Payload translator: effective shipment data → Xindus Partner API shipment request.

The downstream schema is flat and string-typed; this module owns every
normalization between the two shapes.
"""

import json
import shlex
from typing import Any

from booking_agent.correction_engine.keys import description_key
from booking_agent.schemas.shipment import ShipmentAddress, ShipmentBox, ShipmentBoxItem, ShipmentData
from booking_agent.schemas.xindus import (
    ShipmentConfig,
    XindusAddress,
    XindusBox,
    XindusBoxItem,
    XindusProductDetail,
    XindusShipmentPayload,
)
from booking_agent.xindus.normalizers import normalize_country, normalize_date, normalize_hsn, normalize_zip
from booking_agent.xindus.validation import canonical_clearance_type, destination_country

SHIPMENT_ENDPOINT = "/xos/api/partner/shipment"


def format_number(value: float | int | None, default: str = "0") -> str:
    """Render a number the way the partner API expects it: ``10`` not ``10.0``."""
    if value is None:
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def map_address(address: ShipmentAddress) -> XindusAddress:
    country = normalize_country(address.country)
    return XindusAddress(
        name=address.name,
        email=address.email,
        phone=address.phone,
        address=address.address,
        city=address.city,
        zip=normalize_zip(address.zip, country),
        state=address.state,
        country=country,
        extension_number=address.extension_number,
    )


def map_box_item(item: ShipmentBoxItem) -> XindusBoxItem:
    fob = item.unit_fob_value if item.unit_fob_value is not None else item.unit_price
    return XindusBoxItem(
        name=item.description,
        description=item.description,
        ehsn=normalize_hsn(item.ehsn),
        ihsn=normalize_hsn(item.ihsn),
        duty_rate=format_number(item.duty_rate),
        quantity=format_number(item.quantity or 1),
        unit_weight=format_number(item.weight),
        unit_price=format_number(item.unit_price),
        igst_rate=format_number(item.igst_amount),
        unit_fob_value=format_number(fob),
        sku="",
        country_of_origin=normalize_country(item.country_of_origin) or "IN",
    )


def map_box(box: ShipmentBox, index: int) -> XindusBox:
    # Partner API numbers boxes by position, whatever the extracted ids were.
    return XindusBox(
        box_id=str(index + 1),
        weight=format_number(box.weight or 0),
        width=format_number(box.width or 0),
        length=format_number(box.length or 0),
        height=format_number(box.height or 0),
        shipment_box_items=[map_box_item(item) for item in box.shipment_box_items],
    )


def _item_value(item: ShipmentBoxItem) -> float:
    if item.total_price is not None:
        return item.total_price
    return (item.unit_price or 0) * (item.quantity or 0)


def derive_product_details(boxes: list[ShipmentBox]) -> list[XindusProductDetail]:
    """Customs summary rows: box items deduplicated on (description, stripped export code).

    Values of duplicate items are summed; first-seen order is kept.
    """
    rows: dict[tuple[str, str], dict[str, Any]] = {}
    for box in boxes:
        for item in box.shipment_box_items:
            if not item.description.strip():
                continue
            code = normalize_hsn(item.ehsn)
            key = (description_key(item.description), code)
            row = rows.get(key)
            if row is None:
                rows[key] = {"product_description": item.description.strip(), "hsn_code": code, "value": _item_value(item)}
            else:
                row["value"] += _item_value(item)
    return [
        XindusProductDetail(
            product_description=row["product_description"],
            hsn_code=row["hsn_code"],
            value=format_number(round(row["value"], 2)),
        )
        for row in rows.values()
    ]


def _product_details(data: ShipmentData) -> list[XindusProductDetail]:
    if not data.product_details:
        return derive_product_details(data.shipment_boxes)
    return [
        XindusProductDetail(
            product_description=p.product_description,
            hsn_code=normalize_hsn(p.hsn_code),
            value=format_number(p.value),
        )
        for p in data.product_details
    ]


def build_xindus_payload(data: ShipmentData | dict[str, Any]) -> XindusShipmentPayload:
    """Translate a shipment into the partner API request body."""
    if isinstance(data, dict):
        data = ShipmentData.model_validate(data)

    billing = data.billing_address if data.billing_address.name.strip() else data.shipper_address

    return XindusShipmentPayload(
        shipment_config=ShipmentConfig(
            shipping_method=data.shipping_method or "AN",
            terms_of_trade=data.terms_of_trade or "DAP",
            tax_type=data.tax_type or "GST",
            purpose=data.purpose_of_booking or "Sold",
            market_place=data.marketplace or "other",
        ),
        order_reference_number=data.export_reference or data.shipment_references or data.invoice_number,
        invoice_number=data.invoice_number,
        invoice_date=normalize_date(data.invoice_date),
        shipping_currency=data.shipping_currency or "INR",
        consignor_email=data.shipper_address.email,
        destination_country=destination_country(data),
        destination_clearance_type=canonical_clearance_type(data.destination_clearance_type) or "",
        shipment_boxes=[map_box(box, idx) for idx, box in enumerate(data.shipment_boxes)],
        product_details=_product_details(data),
        shipper_address=map_address(data.shipper_address),
        receiver_address=map_address(data.receiver_address),
        billing_address=map_address(billing),
    )


def payload_json(payload: XindusShipmentPayload, indent: int | None = 2) -> str:
    return json.dumps(payload.model_dump(mode="json"), indent=indent, ensure_ascii=False)


def build_xindus_curl(
    data: ShipmentData | dict[str, Any],
    base_url: str = "https://api.xindus.net",
    token: str = "<YOUR_TOKEN>",
) -> str:
    """The shipment create request as a copy-pasteable cURL command."""
    body = payload_json(build_xindus_payload(data))
    lines = [
        f"curl -X POST {shlex.quote(base_url.rstrip('/') + SHIPMENT_ENDPOINT)} \\",
        f"  -H {shlex.quote('Authorization: Bearer ' + token)} \\",
        "  -H 'Content-Type: application/json' \\",
        f"  -d {shlex.quote(body)}",
    ]
    return "\n".join(lines)
