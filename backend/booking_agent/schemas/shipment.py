"""Shipment record schemas — the structured data carried by a draft.

Field names follow the Drafts Service JSON exactly, since corrections address
them by dot-path. Unknown keys are kept (``extra="allow"``) so a round-trip
through these models never drops data the review tooling does not model.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_core import PydanticUndefined


class ShipmentModel(BaseModel):
    """Base for extracted shipment data.

    Extraction output is noisy: ``null`` shows up for text fields and ``""``
    for numbers. Both fall back to the field default instead of failing.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is not None and value != "":
            return value
        field = cls.model_fields[info.field_name]
        if field.annotation is str:
            return ""
        if field.default_factory is not None:
            return field.default_factory()
        if field.default is not PydanticUndefined:
            return field.default
        return value


# --- Addresses ---


class ShipmentAddress(ShipmentModel):
    """Xindus AddressRequestDTO."""

    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = Field("", description="Street address")
    city: str = ""
    zip: str = ""
    district: str = ""
    state: str = ""
    country: str = ""
    extension_number: str = ""
    eori_number: str = ""
    contact_name: str = ""
    contact_phone: str = ""
    warehouse_id: str | None = None
    type: str | None = None


ADDRESS_FIELDS: tuple[str, ...] = tuple(
    name for name in ShipmentAddress.model_fields if name not in ("warehouse_id", "type")
)


# --- Tariffs ---


class TariffScenario(ShipmentModel):
    """One named duty component returned by the tariff lookup."""

    name: str = ""
    value: float = 0.0
    is_additional: bool = False
    is_approved: bool | None = None


# --- Boxes ---


class ShipmentBoxItem(ShipmentModel):
    """Xindus ShipmentBoxItemRequestDTO, plus classification provenance."""

    description: str = ""
    quantity: float = 0
    weight: float | None = None
    unit_price: float | None = None
    total_price: float | None = None
    ehsn: str = Field("", description="Export (origin) HSN code")
    ihsn: str = Field("", description="Import (destination) HSN code")
    country_of_origin: str = ""
    category: str = ""
    market_place: str = ""
    igst_amount: float | None = Field(None, description="IGST percent applied to the item")
    duty_rate: float | None = None
    base_duty_rate: float | None = None
    tariff_scenarios: list[TariffScenario] = Field(default_factory=list)
    vat_rate: float | None = None
    unit_fob_value: float | None = None
    fob_value: float | None = None
    listing_price: float | None = None
    cogs_value: float | None = None
    insurance: float | None = None
    remarks: str = ""
    gaia_classified: bool = False
    hsn_confidence: str | None = None


class ShipmentBox(ShipmentModel):
    """Xindus ShipmentBoxRequestDTO."""

    box_id: str = ""
    weight: float = 0
    width: float = 0
    length: float = 0
    height: float = 0
    uom: str = "CM"
    has_battery: bool = False
    remarks: str = ""
    receiver_address: ShipmentAddress = Field(default_factory=ShipmentAddress)
    shipment_box_items: list[ShipmentBoxItem] = Field(default_factory=list)


# --- Customs product summary ---


class ProductDetail(ShipmentModel):
    """Deduplicated customs declaration row (Xindus ProductDetailDTO)."""

    product_description: str = ""
    hsn_code: str = Field("", description="Export (origin) HSN code")
    ihsn: str = Field("", description="Import (destination) HSN code")
    value: float = 0
    unit_price: float | None = None
    country_of_origin: str = ""
    duty_rate: float | None = None
    base_duty_rate: float | None = None
    tariff_scenarios: list[TariffScenario] = Field(default_factory=list)
    igst_percent: float | None = None
    gaia_classified: bool = False
    hsn_confidence: str | None = None


# --- Shipment ---


class ShipmentData(ShipmentModel):
    """Xindus B2BShipmentCreateRequestDTO as produced by the extraction pipeline."""

    # Shipment method & clearance
    shipping_method: str = ""
    origin_clearance_type: str = ""
    destination_clearance_type: str = ""
    terms_of_trade: str = ""
    purpose_of_booking: str = ""
    tax_type: str = ""
    amazon_fba: bool = False
    multi_address_destination_delivery: bool = False
    country: str = Field("", description="Destination country")

    # Addresses
    shipper_address: ShipmentAddress = Field(default_factory=ShipmentAddress)
    receiver_address: ShipmentAddress = Field(default_factory=ShipmentAddress)
    billing_address: ShipmentAddress = Field(default_factory=ShipmentAddress)
    ior_address: ShipmentAddress = Field(default_factory=ShipmentAddress)

    # Boxes and products
    shipment_boxes: list[ShipmentBox] = Field(default_factory=list)
    product_details: list[ProductDetail] = Field(default_factory=list)

    # Invoice / financial
    invoice_number: str = ""
    invoice_date: str = ""
    shipping_currency: str = ""
    billing_currency: str = ""

    # References
    export_reference: str = ""
    shipment_references: str = ""
    exporter_category: str = ""
    marketplace: str = ""

    # Logistics options
    self_drop: bool = False
    self_origin_clearance: bool = False
    self_destination_clearance: bool = False
    port_of_entry: str = ""
    destination_cha: str = ""

    # Summary totals
    total_amount: float | None = None
    total_boxes: int | None = None
    total_gross_weight_kg: float | None = None
    total_net_weight_kg: float | None = None


ADDRESS_ROLES: tuple[str, ...] = (
    "shipper_address",
    "receiver_address",
    "billing_address",
    "ior_address",
)

COLLECTION_FIELDS: tuple[str, ...] = ("shipment_boxes", "product_details")
