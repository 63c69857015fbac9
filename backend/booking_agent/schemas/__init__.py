from booking_agent.schemas.batch import ActiveBatch, BatchStep, ProgressSnapshot
from booking_agent.schemas.draft import CorrectionItem, Draft, DraftStatus
from booking_agent.schemas.health import HealthResponse
from booking_agent.schemas.shipment import (
    ProductDetail,
    ShipmentAddress,
    ShipmentBox,
    ShipmentBoxItem,
    ShipmentData,
)
from booking_agent.schemas.xindus import ValidationIssue, XindusShipmentPayload

__all__ = [
    "ActiveBatch",
    "BatchStep",
    "CorrectionItem",
    "Draft",
    "DraftStatus",
    "HealthResponse",
    "ProductDetail",
    "ProgressSnapshot",
    "ShipmentAddress",
    "ShipmentBox",
    "ShipmentBoxItem",
    "ShipmentData",
    "ValidationIssue",
    "XindusShipmentPayload",
]
