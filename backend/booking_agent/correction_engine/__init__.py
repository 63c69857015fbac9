from booking_agent.correction_engine.corrections import (
    CorrectionSet,
    seller_default_corrections,
    seller_profile_corrections,
    values_equal,
)
from booking_agent.correction_engine.fields import FieldPath, get_value, set_value
from booking_agent.correction_engine.keys import address_key, product_key, receiver_groups
from booking_agent.correction_engine.propagation import (
    DutyLookupRequest,
    DutyLookupResult,
    PropagationContext,
    PropagationKind,
    PropagationResult,
    apply_duty_result,
    propagate,
)

# DraftSession lives in booking_agent.correction_engine.session; it pulls in the
# service clients, which import this package.

__all__ = [
    "CorrectionSet",
    "DutyLookupRequest",
    "DutyLookupResult",
    "FieldPath",
    "PropagationContext",
    "PropagationKind",
    "PropagationResult",
    "address_key",
    "apply_duty_result",
    "get_value",
    "product_key",
    "propagate",
    "receiver_groups",
    "seller_default_corrections",
    "seller_profile_corrections",
    "set_value",
    "values_equal",
]
