"""
Response classification for backend endpoints.

Each handler takes the ``HTTPResult`` of one transport call and either returns
the endpoint's domain result or raises a ``BackendClientError``. They all
follow the same order: transport error, then status code, then body decoding.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from contracts.v1.schemas import (
    BackendErrorEnvelope,
    CustomerInfoResponse,
    OfferingsResponse,
    SignatureDataContract,
)

from .errors import (
    ATTRIBUTE_ERRORS_KEY,
    FINISHABLE_KEY,
    SUCCESSFULLY_SYNCED_KEY,
    BackendError,
    NetworkError,
    UnexpectedResponseError,
    UnexpectedResponseSubcode,
)
from .mappers import customer_info_from_contract, offerings_from_contract
from .models import (
    CustomerInfo,
    IntroEligibility,
    IntroEligibilityStatus,
    LoginResult,
    OfferingsPayload,
    SignedOffer,
)
from .transport import HTTPResult, HTTPStatusCode, is_post_success, is_success

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _describe(body: Any, limit: int = 2000) -> str:
    try:
        text = json.dumps(body, sort_keys=True, default=str)
    except (TypeError, ValueError):
        text = repr(body)
    return text[:limit]


def _as_payload(body: Any) -> Any:
    return dict(body) if isinstance(body, Mapping) else body


def decode_error_envelope(body: Any) -> BackendErrorEnvelope:
    """Decode the error envelope; anything unusable decodes as an empty envelope."""
    if not isinstance(body, Mapping):
        return BackendErrorEnvelope()
    try:
        return BackendErrorEnvelope.model_validate(dict(body))
    except ValidationError:
        logger.debug("Ignoring malformed error envelope: %s", _describe(body, 500))
        return BackendErrorEnvelope()


def backend_error_from_body(
    body: Any,
    status_code: int | None,
    *,
    context: dict[str, Any] | None = None,
    customer_info: CustomerInfo | None = None,
) -> BackendError:
    envelope = decode_error_envelope(body)
    return BackendError(
        raw_code=envelope.code,
        message=envelope.message,
        status_code=status_code,
        context=context,
        customer_info=customer_info,
    )


def attributes_context_from_response(body: Any, status_code: int) -> dict[str, Any]:
    """Attribute-sync metadata attached to customer-info and attribute errors.

    Attributes count as synced unless the backend failed (5xx) or the
    subscriber was not found (404).
    """
    is_internal_server_error = status_code >= HTTPStatusCode.INTERNAL_SERVER_ERROR
    is_not_found = status_code == HTTPStatusCode.NOT_FOUND
    context: dict[str, Any] = {SUCCESSFULLY_SYNCED_KEY: not (is_internal_server_error or is_not_found)}

    attribute_errors = decode_error_envelope(body).resolved_attribute_errors
    if attribute_errors is not None:
        context[ATTRIBUTE_ERRORS_KEY] = attribute_errors
    return context


def unknown_eligibilities(product_identifiers: Sequence[str]) -> dict[str, IntroEligibility]:
    return {product_id: IntroEligibility(IntroEligibilityStatus.UNKNOWN) for product_id in product_identifiers}


# ---------------------------------------------------------------------------
# Customer info (GET subscriber, POST receipt)
# ---------------------------------------------------------------------------


def parse_customer_info(body: Any, status_code: int) -> CustomerInfo:
    """Decode a customer-info body or raise ``UnexpectedResponseError``."""
    extra_context = f"statusCode: {status_code}, json: {_describe(body)}"
    if body is None:
        raise UnexpectedResponseError(
            UnexpectedResponseSubcode.CUSTOMER_INFO_RESPONSE_MALFORMED,
            extra_context=extra_context,
        )

    try:
        contract = CustomerInfoResponse.model_validate(_as_payload(body))
    except ValidationError as e:
        logger.error("Could not instantiate CustomerInfo from response: %s", extra_context)
        raise UnexpectedResponseError(
            UnexpectedResponseSubcode.CUSTOMER_INFO_RESPONSE_PARSING,
            extra_context=extra_context,
        ) from e
    return customer_info_from_contract(contract, body)


def handle_customer_info_response(response: HTTPResult) -> CustomerInfo:
    status_code, body, error = response
    if error is not None:
        raise NetworkError(error)

    is_error_status = not is_success(status_code)
    customer_info = None if is_error_status else parse_customer_info(body, status_code)

    attributes_context = attributes_context_from_response(body, status_code)
    if is_error_status or attributes_context.get(ATTRIBUTE_ERRORS_KEY):
        context = {FINISHABLE_KEY: status_code < HTTPStatusCode.INTERNAL_SERVER_ERROR}
        context.update(attributes_context)
        raise backend_error_from_body(body, status_code, context=context, customer_info=customer_info)

    return customer_info


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def handle_log_in_response(response: HTTPResult) -> LoginResult:
    status_code, body, error = response
    if error is not None:
        raise NetworkError(error)

    if not is_success(status_code):
        raise backend_error_from_body(body, status_code)

    if body is None:
        raise UnexpectedResponseError(UnexpectedResponseSubcode.LOGIN_MISSING_RESPONSE)

    try:
        contract = CustomerInfoResponse.model_validate(_as_payload(body))
    except ValidationError as e:
        logger.error("Could not instantiate CustomerInfo from login response: %s", _describe(body))
        raise UnexpectedResponseError(
            UnexpectedResponseSubcode.LOGIN_RESPONSE_DECODING,
            extra_context=_describe(body),
        ) from e

    created = status_code == HTTPStatusCode.CREATED
    logger.info("Log in successful (created=%s).", created)
    return LoginResult(customer_info=customer_info_from_contract(contract, body), created=created)


# ---------------------------------------------------------------------------
# Offerings
# ---------------------------------------------------------------------------


def handle_offerings_response(response: HTTPResult) -> OfferingsPayload:
    status_code, body, error = response
    if error is not None:
        logger.error("Error fetching offerings (status %s): %s", status_code, error)
        raise NetworkError(error)

    if not is_success(status_code):
        logger.error("Error fetching offerings (status %s): %s", status_code, _describe(body, 500))
        if body is None:
            raise UnexpectedResponseError(
                UnexpectedResponseSubcode.GET_OFFER_UNEXPECTED_RESPONSE,
                extra_context=f"statusCode: {status_code}",
            )
        raise backend_error_from_body(body, status_code)

    if body is None:
        raise UnexpectedResponseError(UnexpectedResponseSubcode.GET_OFFER_UNEXPECTED_RESPONSE)

    try:
        contract = OfferingsResponse.model_validate(_as_payload(body))
    except ValidationError as e:
        logger.error("Could not decode offerings response: %s", _describe(body, 500))
        raise UnexpectedResponseError(
            UnexpectedResponseSubcode.GET_OFFER_UNEXPECTED_RESPONSE,
            extra_context=_describe(body),
        ) from e
    return offerings_from_contract(contract, body)


# ---------------------------------------------------------------------------
# Offer signing
# ---------------------------------------------------------------------------


def _parse_nonce(raw: str | None) -> UUID | None:
    if raw is None:
        return None
    try:
        return UUID(raw)
    except ValueError:
        return None


def handle_offer_signing_response(response: HTTPResult) -> SignedOffer:
    status_code, body, error = response
    if error is not None:
        raise NetworkError(error)

    if not is_success(status_code):
        raise backend_error_from_body(body, status_code)

    if body is None:
        logger.debug("Offer signing returned an empty response.")
        raise UnexpectedResponseError(UnexpectedResponseSubcode.POST_OFFER_EMPTY_RESPONSE)

    offers = body.get("offers") if isinstance(body, Mapping) else None
    if not isinstance(offers, list) or not all(isinstance(offer, Mapping) for offer in offers):
        logger.debug("Offer signing response has no usable 'offers' list: %s", _describe(body, 500))
        raise UnexpectedResponseError(
            UnexpectedResponseSubcode.POST_OFFER_ID_BAD_RESPONSE,
            extra_context=_describe(body),
        )

    if not offers:
        logger.debug("Offer signing response contained no offers: %s", _describe(body, 500))
        raise UnexpectedResponseError(UnexpectedResponseSubcode.POST_OFFER_ID_MISSING_OFFERS_IN_RESPONSE)

    offer = offers[0]
    signature_error = offer.get("signature_error")
    if isinstance(signature_error, Mapping):
        raise backend_error_from_body(signature_error, status_code)

    signature_data = offer.get("signature_data")
    if isinstance(signature_data, Mapping):
        data = SignatureDataContract.model_validate(dict(signature_data))
        key_id = offer.get("key_id")
        return SignedOffer(
            signature=data.signature,
            key_id=key_id if isinstance(key_id, str) else None,
            nonce=_parse_nonce(data.nonce),
            timestamp=data.timestamp,
        )

    logger.error("Offer signing response has no signature data: %s", _describe(signature_data, 500))
    raise UnexpectedResponseError(UnexpectedResponseSubcode.POST_OFFER_ID_SIGNATURE)


# ---------------------------------------------------------------------------
# Intro eligibility
# ---------------------------------------------------------------------------


def handle_intro_eligibility_response(
    response: HTTPResult,
    product_identifiers: Sequence[str],
) -> dict[str, IntroEligibility]:
    """Never raises: any failure yields ``UNKNOWN`` for every requested product."""
    status_code, body, error = response
    if error is not None or not is_success(status_code):
        logger.warning(
            "Intro eligibility request failed (status %s, error %s); reporting unknown.",
            status_code,
            error,
        )
        return unknown_eligibilities(product_identifiers)

    if not isinstance(body, Mapping):
        return unknown_eligibilities(product_identifiers)

    eligibilities: dict[str, IntroEligibility] = {}
    for product_id in product_identifiers:
        value = body.get(product_id)
        if isinstance(value, bool):
            status = IntroEligibilityStatus.ELIGIBLE if value else IntroEligibilityStatus.INELIGIBLE
        else:
            status = IntroEligibilityStatus.UNKNOWN
        eligibilities[product_id] = IntroEligibility(status)
    return eligibilities


# ---------------------------------------------------------------------------
# Attribute / alias / attribution posts
# ---------------------------------------------------------------------------


def handle_subscriber_attributes_response(response: HTTPResult) -> None:
    status_code, body, error = response
    if error is not None:
        raise NetworkError(error)

    if not is_post_success(status_code):
        context = attributes_context_from_response(body, status_code)
        raise backend_error_from_body(body, status_code, context=context)
    return None


def handle_post_response(response: HTTPResult) -> None:
    status_code, body, error = response
    if error is not None:
        raise NetworkError(error)

    if not is_post_success(status_code):
        raise backend_error_from_body(body, status_code)
    return None
