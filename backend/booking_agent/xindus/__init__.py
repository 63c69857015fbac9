from booking_agent.xindus.normalizers import normalize_country, normalize_date, normalize_hsn, normalize_zip
from booking_agent.xindus.payload import build_xindus_curl, build_xindus_payload, derive_product_details
from booking_agent.xindus.validation import DEST_CLEARANCE_OPTIONS, validate_for_xindus

__all__ = [
    "DEST_CLEARANCE_OPTIONS",
    "build_xindus_curl",
    "build_xindus_payload",
    "derive_product_details",
    "normalize_country",
    "normalize_date",
    "normalize_hsn",
    "normalize_zip",
    "validate_for_xindus",
]
