"""Pydantic schemas for the Xindus Partner API shipment payload and pre-submission checks.

The payload shape is a fixed external contract (``POST /xos/api/partner/shipment``):
numeric values travel as strings, countries as ISO-2 codes.
"""

import enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class IssueCategory(str, enum.Enum):
    ADDRESS = "address"
    BOX = "box"
    ITEM = "item"
    SHIPMENT = "shipment"


class ValidationIssue(BaseModel):
    category: IssueCategory
    message: str


# --- Payload ---


class XindusAddress(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    zip: str = ""
    state: str = ""
    country: str = ""
    extension_number: str = ""


class XindusBoxItem(BaseModel):
    name: str = ""
    description: str = ""
    ehsn: str = ""
    ihsn: str = ""
    duty_rate: str = "0"
    quantity: str = "1"
    unit_weight: str = "0"
    unit_price: str = "0"
    igst_rate: str = "0"
    unit_fob_value: str = "0"
    sku: str = ""
    country_of_origin: str = "IN"
    pga_docs: list[Any] = Field(default_factory=list)


class XindusBox(BaseModel):
    box_id: str
    weight: str = "0"
    width: str = "0"
    length: str = "0"
    height: str = "0"
    shipment_box_items: list[XindusBoxItem] = Field(default_factory=list)


class XindusProductDetail(BaseModel):
    product_description: str = ""
    hsn_code: str = ""
    value: str = "0"


class ShipmentConfig(BaseModel):
    shipping_method: str = "AN"
    terms_of_trade: str = "DAP"
    tax_type: str = "GST"
    service: str = "Commercial"
    purpose: str = "Sold"
    market_place: str = "other"
    use_provided_hsn: bool = True
    use_provided_duty_rate: bool = True
    use_provided_fob: bool = True
    ready_to_ship: bool = False
    auto_generate_invoice: bool = False
    auto_deduct_payment: bool = True
    auto_generate_label: bool = True
    avail_xindus_assure: bool = True
    pga_items_included: bool = False


class XindusShipmentPayload(BaseModel):
    shipment_config: ShipmentConfig = Field(default_factory=ShipmentConfig)
    order_reference_number: str = ""
    invoice_number: str = ""
    invoice_date: str
    shipping_currency: str = "INR"
    freight_charges: str = "0"
    insurance_charges: str = "0"
    consignor_email: str = ""
    destination_country: str = ""
    destination_clearance_type: str = ""
    shipment_boxes: list[XindusBox] = Field(default_factory=list)
    product_details: list[XindusProductDetail] = Field(default_factory=list)
    shipper_address: XindusAddress
    receiver_address: XindusAddress
    billing_address: XindusAddress


# --- API request/response bodies ---


class PayloadPreviewResponse(BaseModel):
    payload: XindusShipmentPayload
    issues: list[ValidationIssue] = Field(default_factory=list)


class ValidationResponse(BaseModel):
    valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    success: bool
    draft_id: UUID
    scancode: str | None = None
    message: str = ""
    issues: list[ValidationIssue] = Field(default_factory=list)
    response: dict[str, Any] | None = None
