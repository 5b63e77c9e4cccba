"""v1 response contracts for the subscription backend."""

__version__ = "1.0.0"

from .schemas import (
    AttributesErrorResponse,
    BackendErrorEnvelope,
    CustomerInfoResponse,
    EntitlementContract,
    NonSubscriptionTransactionContract,
    OfferingContract,
    OfferingsResponse,
    PackageContract,
    SignatureDataContract,
    SubscriberContract,
    SubscriptionContract,
)

__all__ = [
    "__version__",
    "AttributesErrorResponse",
    "BackendErrorEnvelope",
    "CustomerInfoResponse",
    "EntitlementContract",
    "NonSubscriptionTransactionContract",
    "OfferingContract",
    "OfferingsResponse",
    "PackageContract",
    "SignatureDataContract",
    "SubscriberContract",
    "SubscriptionContract",
]
