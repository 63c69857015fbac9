from booking_agent.services.drafts_service import DraftsServiceClient, DraftsServiceError
from booking_agent.services.duty_lookup import DutyLookupClient, DutyLookupError
from booking_agent.services.xindus_client import XindusClient, XindusError

__all__ = [
    "DraftsServiceClient",
    "DraftsServiceError",
    "DutyLookupClient",
    "DutyLookupError",
    "XindusClient",
    "XindusError",
]
