"""Error taxonomy for backend calls.

Every failure delivered to a caller is a ``BackendClientError`` subclass:

- ``RequestValidationError``: a precondition failed locally; nothing was sent.
- ``NetworkError``: the transport reported a failure.
- ``BackendError``: the backend answered with a non-success status.
- ``UnexpectedResponseError``: success status, but the body could not be used.

Partial-failure details (attribute sync state, finishability) travel in the
error's ``context`` dict instead of separate error kinds.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any

SUCCESSFULLY_SYNCED_KEY = "successfully_synced"
ATTRIBUTE_ERRORS_KEY = "attribute_errors"
ATTRIBUTE_ERRORS_RESPONSE_KEY = "attributes_error_response"
FINISHABLE_KEY = "finishable"


class BackendErrorCode(IntEnum):
    """Structured error codes returned in the backend's error envelope."""

    UNKNOWN = -1
    STORE_PROBLEM = 7101
    CANNOT_TRANSFER_PURCHASE = 7102
    INVALID_RECEIPT = 7103
    INVALID_APP_STORE_SHARED_SECRET = 7104
    INVALID_PAYMENT_MODE_OR_INTRO_PRICE_NOT_PROVIDED = 7105
    PRODUCT_IDENTIFIER_MISSING = 7106
    INVALID_APPLE_SUBSCRIPTION_KEY = 7107
    INVALID_AUTH_TOKEN = 7225
    INVALID_SUBSCRIBER_ATTRIBUTES = 7263
    INVALID_SUBSCRIBER_ATTRIBUTES_BODY = 7264

    @classmethod
    def from_value(cls, value: Any) -> "BackendErrorCode":
        """Map a raw envelope ``code`` to a member, ``UNKNOWN`` when unlisted."""
        if isinstance(value, bool) or not isinstance(value, int):
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class UnexpectedResponseSubcode(str, Enum):
    CUSTOMER_INFO_RESPONSE_MALFORMED = "customer_info_response_malformed"
    CUSTOMER_INFO_RESPONSE_PARSING = "customer_info_response_parsing"
    LOGIN_MISSING_RESPONSE = "login_missing_response"
    LOGIN_RESPONSE_DECODING = "login_response_decoding"
    GET_OFFER_UNEXPECTED_RESPONSE = "get_offer_unexpected_response"
    POST_OFFER_EMPTY_RESPONSE = "post_offer_empty_response"
    POST_OFFER_ID_BAD_RESPONSE = "post_offer_id_bad_response"
    POST_OFFER_ID_MISSING_OFFERS_IN_RESPONSE = "post_offer_id_missing_offers_in_response"
    POST_OFFER_ID_SIGNATURE = "post_offer_id_signature"


class ValidationReason(str, Enum):
    MISSING_APP_USER_ID = "missing_app_user_id"
    EMPTY_SUBSCRIBER_ATTRIBUTES = "empty_subscriber_attributes"


class BackendClientError(Exception):
    """Base exception for classified backend-call failures."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context: dict[str, Any] = dict(context or {})


class RequestValidationError(BackendClientError):
    """Raised when a call fails its preconditions before reaching the network."""

    def __init__(self, reason: ValidationReason, message: str | None = None):
        super().__init__(message or f"Invalid request: {reason.value}")
        self.reason = reason


class NetworkError(BackendClientError):
    """Raised when the transport reports a failure."""

    def __init__(self, underlying: BaseException | Any):
        super().__init__(f"Network error: {underlying}")
        self.underlying = underlying
        if isinstance(underlying, BaseException):
            self.__cause__ = underlying


class BackendError(BackendClientError):
    """Raised for non-success responses carrying the backend error envelope."""

    def __init__(
        self,
        *,
        raw_code: int | None,
        message: str | None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
        customer_info: Any = None,
    ):
        self.backend_code = BackendErrorCode.from_value(raw_code)
        self.raw_code = raw_code
        self.backend_message = message
        self.status_code = status_code
        self.customer_info = customer_info
        detail = message or "no message"
        super().__init__(
            f"Backend error {raw_code if raw_code is not None else 'unknown'}: {detail}",
            context=context,
        )

    @property
    def successfully_synced(self) -> bool | None:
        return self.context.get(SUCCESSFULLY_SYNCED_KEY)

    @property
    def attribute_errors(self) -> list[dict[str, Any]] | None:
        return self.context.get(ATTRIBUTE_ERRORS_KEY)

    @property
    def finishable(self) -> bool | None:
        return self.context.get(FINISHABLE_KEY)


class UnexpectedResponseError(BackendClientError):
    """Raised when a success response cannot be turned into a domain result."""

    def __init__(
        self,
        subcode: UnexpectedResponseSubcode,
        *,
        extra_context: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        message = f"Unexpected backend response ({subcode.value})"
        if extra_context:
            message = f"{message}: {extra_context}"
        super().__init__(message, context=context)
        self.subcode = subcode
        self.extra_context = extra_context


def missing_app_user_id_error() -> RequestValidationError:
    return RequestValidationError(
        ValidationReason.MISSING_APP_USER_ID,
        "App user ID is missing or cannot be escaped for a URL path.",
    )


def empty_subscriber_attributes_error() -> RequestValidationError:
    return RequestValidationError(
        ValidationReason.EMPTY_SUBSCRIBER_ATTRIBUTES,
        "Subscriber attributes must not be empty.",
    )
