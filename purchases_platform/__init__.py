"""Backend-communication layer for the purchases client library."""

__version__ = "1.0.0"

from .callback_cache import (
    CallbackCacheDesyncError,
    CallbackCacheStatus,
    PendingCallback,
    RequestCoalescer,
)
from .errors import (
    BackendClientError,
    BackendError,
    BackendErrorCode,
    NetworkError,
    RequestValidationError,
    UnexpectedResponseError,
    UnexpectedResponseSubcode,
    ValidationReason,
)
from .facade import Backend
from .models import (
    AttributionNetwork,
    CustomerInfo,
    IntroEligibility,
    IntroEligibilityStatus,
    LoginResult,
    OfferingsPayload,
    ProductInfo,
    SignedOffer,
    SubscriberAttribute,
)
from .operation_queue import OperationQueue
from .transport import HTTPResult, HTTPStatusCode, HTTPTransport

__all__ = [
    "__version__",
    "Backend",
    "BackendClientError",
    "BackendError",
    "BackendErrorCode",
    "NetworkError",
    "RequestValidationError",
    "UnexpectedResponseError",
    "UnexpectedResponseSubcode",
    "ValidationReason",
    "CallbackCacheDesyncError",
    "CallbackCacheStatus",
    "PendingCallback",
    "RequestCoalescer",
    "OperationQueue",
    "HTTPResult",
    "HTTPStatusCode",
    "HTTPTransport",
    "AttributionNetwork",
    "CustomerInfo",
    "IntroEligibility",
    "IntroEligibilityStatus",
    "LoginResult",
    "OfferingsPayload",
    "ProductInfo",
    "SignedOffer",
    "SubscriberAttribute",
]
