"""
Backend operations: one transport call plus one response handler each.

An operation is created by the facade for the first registrant of a cache
key and submitted to the ``OperationQueue``. When it runs it performs exactly
one request, classifies the response, drains the key from its coalescer and
hands the single outcome to every waiting future.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .callback_cache import RequestCoalescer
from .config import IDENTIFY_PATH, OFFERS_PATH, RECEIPTS_PATH
from .errors import BackendClientError
from .handlers import (
    handle_customer_info_response,
    handle_intro_eligibility_response,
    handle_log_in_response,
    handle_offer_signing_response,
    handle_offerings_response,
    handle_post_response,
    handle_subscriber_attributes_response,
)
from .keys import subscriber_path
from .marshalling import subscriber_attributes_to_dict
from .models import (
    AttributionNetwork,
    CustomerInfo,
    IntroEligibility,
    LoginResult,
    OfferingsPayload,
    ProductInfo,
    SignedOffer,
    SubscriberAttribute,
)
from .transport import HTTPResult, HTTPTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class OperationConfiguration:
    """Collaborators shared by every operation."""

    transport: HTTPTransport
    auth_headers: Mapping[str, str]


class NetworkOperation(ABC, Generic[T]):
    """Base class for a single coalesced backend request."""

    method = "GET"

    def __init__(
        self,
        configuration: OperationConfiguration,
        *,
        callbacks: RequestCoalescer[T],
        cache_key: str,
    ):
        self.transport = configuration.transport
        self.auth_headers = configuration.auth_headers
        self.callbacks = callbacks
        self.cache_key = cache_key

    @property
    @abstractmethod
    def path(self) -> str:
        ...

    def body(self) -> Mapping[str, Any]:
        return {}

    @abstractmethod
    def handle(self, response: HTTPResult) -> T:
        """Map the raw response to a result or raise ``BackendClientError``."""

    def run(self) -> None:
        response = self._perform_request()
        try:
            result = self.handle(response)
        except BackendClientError as e:
            self.callbacks.reject(self.cache_key, e)
            return
        except Exception as e:
            logger.exception("Unhandled error while handling %s %s.", self.method, self.path)
            self.callbacks.reject(self.cache_key, e)
            return
        self.callbacks.resolve(self.cache_key, result)

    def _perform_request(self) -> HTTPResult:
        headers = dict(self.auth_headers)
        try:
            if self.method == "GET":
                raw = self.transport.perform_get(self.path, headers)
            else:
                raw = self.transport.perform_post(self.path, headers, self.body())
        except Exception as e:
            logger.warning("Transport raised for %s %s: %s", self.method, self.path, e)
            return HTTPResult(status_code=0, body=None, error=e)

        status_code, body, error = raw
        return HTTPResult(status_code=status_code, body=body, error=error)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.method} {self.path}>"


# ---------------------------------------------------------------------------
# Customer info
# ---------------------------------------------------------------------------


class GetCustomerInfoOperation(NetworkOperation[CustomerInfo]):
    def __init__(self, configuration, *, escaped_app_user_id: str, callbacks, cache_key: str):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.escaped_app_user_id = escaped_app_user_id

    @property
    def path(self) -> str:
        return subscriber_path(self.escaped_app_user_id)

    def handle(self, response: HTTPResult) -> CustomerInfo:
        return handle_customer_info_response(response)


class PostReceiptDataOperation(NetworkOperation[CustomerInfo]):
    method = "POST"

    def __init__(
        self,
        configuration,
        *,
        fetch_token: str,
        app_user_id: str,
        is_restore: bool,
        observer_mode: bool,
        product_info: ProductInfo | None,
        presented_offering_identifier: str | None,
        subscriber_attributes: Mapping[str, SubscriberAttribute] | None,
        callbacks,
        cache_key: str,
    ):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.fetch_token = fetch_token
        self.app_user_id = app_user_id
        self.is_restore = is_restore
        self.observer_mode = observer_mode
        self.product_info = product_info
        self.presented_offering_identifier = presented_offering_identifier
        self.subscriber_attributes = subscriber_attributes

    @property
    def path(self) -> str:
        return RECEIPTS_PATH

    def body(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fetch_token": self.fetch_token,
            "app_user_id": self.app_user_id,
            "is_restore": self.is_restore,
            "observer_mode": self.observer_mode,
        }
        if self.product_info is not None:
            payload.update(self.product_info.to_dict())
        if self.subscriber_attributes is not None:
            payload["attributes"] = subscriber_attributes_to_dict(self.subscriber_attributes)
        if self.presented_offering_identifier is not None:
            payload["presented_offering_identifier"] = self.presented_offering_identifier
        return payload

    def handle(self, response: HTTPResult) -> CustomerInfo:
        return handle_customer_info_response(response)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class LogInOperation(NetworkOperation[LoginResult]):
    method = "POST"

    def __init__(self, configuration, *, current_app_user_id: str, new_app_user_id: str, callbacks, cache_key: str):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.current_app_user_id = current_app_user_id
        self.new_app_user_id = new_app_user_id

    @property
    def path(self) -> str:
        return IDENTIFY_PATH

    def body(self) -> dict[str, Any]:
        return {"app_user_id": self.current_app_user_id, "new_app_user_id": self.new_app_user_id}

    def handle(self, response: HTTPResult) -> LoginResult:
        return handle_log_in_response(response)


class CreateAliasOperation(NetworkOperation[None]):
    method = "POST"

    def __init__(self, configuration, *, escaped_app_user_id: str, new_app_user_id: str, callbacks, cache_key: str):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.escaped_app_user_id = escaped_app_user_id
        self.new_app_user_id = new_app_user_id

    @property
    def path(self) -> str:
        return subscriber_path(self.escaped_app_user_id, "alias")

    def body(self) -> dict[str, Any]:
        return {"new_app_user_id": self.new_app_user_id}

    def run(self) -> None:
        logger.info("Creating an alias between %s and %s.", self.escaped_app_user_id, self.new_app_user_id)
        super().run()

    def handle(self, response: HTTPResult) -> None:
        return handle_post_response(response)


# ---------------------------------------------------------------------------
# Offerings & offers
# ---------------------------------------------------------------------------


class GetOfferingsOperation(NetworkOperation[OfferingsPayload]):
    def __init__(self, configuration, *, escaped_app_user_id: str, callbacks, cache_key: str):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.escaped_app_user_id = escaped_app_user_id

    @property
    def path(self) -> str:
        return subscriber_path(self.escaped_app_user_id, "offerings")

    def handle(self, response: HTTPResult) -> OfferingsPayload:
        return handle_offerings_response(response)


class PostOfferForSigningOperation(NetworkOperation[SignedOffer]):
    method = "POST"

    def __init__(
        self,
        configuration,
        *,
        app_user_id: str,
        fetch_token: str,
        offer_identifier: str,
        product_identifier: str,
        subscription_group: str,
        callbacks,
        cache_key: str,
    ):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.app_user_id = app_user_id
        self.fetch_token = fetch_token
        self.offer_identifier = offer_identifier
        self.product_identifier = product_identifier
        self.subscription_group = subscription_group

    @property
    def path(self) -> str:
        return OFFERS_PATH

    def body(self) -> dict[str, Any]:
        return {
            "app_user_id": self.app_user_id,
            "fetch_token": self.fetch_token,
            "generate_offers": [
                {
                    "offer_id": self.offer_identifier,
                    "product_id": self.product_identifier,
                    "subscription_group": self.subscription_group,
                }
            ],
        }

    def handle(self, response: HTTPResult) -> SignedOffer:
        return handle_offer_signing_response(response)


class GetIntroEligibilityOperation(NetworkOperation[dict[str, IntroEligibility]]):
    method = "POST"

    def __init__(
        self,
        configuration,
        *,
        escaped_app_user_id: str,
        fetch_token: str,
        product_identifiers: Sequence[str],
        callbacks,
        cache_key: str,
    ):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.escaped_app_user_id = escaped_app_user_id
        self.fetch_token = fetch_token
        self.product_identifiers = list(product_identifiers)

    @property
    def path(self) -> str:
        return subscriber_path(self.escaped_app_user_id, "intro_eligibility")

    def body(self) -> dict[str, Any]:
        return {"product_identifiers": list(self.product_identifiers), "fetch_token": self.fetch_token}

    def handle(self, response: HTTPResult) -> dict[str, IntroEligibility]:
        return handle_intro_eligibility_response(response, self.product_identifiers)


# ---------------------------------------------------------------------------
# Attributes & attribution
# ---------------------------------------------------------------------------


class PostSubscriberAttributesOperation(NetworkOperation[None]):
    method = "POST"

    def __init__(
        self,
        configuration,
        *,
        escaped_app_user_id: str,
        subscriber_attributes: Mapping[str, SubscriberAttribute],
        callbacks,
        cache_key: str,
    ):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.escaped_app_user_id = escaped_app_user_id
        self.subscriber_attributes = dict(subscriber_attributes)

    @property
    def path(self) -> str:
        return subscriber_path(self.escaped_app_user_id, "attributes")

    def body(self) -> dict[str, Any]:
        return {"attributes": subscriber_attributes_to_dict(self.subscriber_attributes)}

    def handle(self, response: HTTPResult) -> None:
        return handle_subscriber_attributes_response(response)


class PostAttributionDataOperation(NetworkOperation[None]):
    method = "POST"

    def __init__(
        self,
        configuration,
        *,
        escaped_app_user_id: str,
        network: AttributionNetwork,
        attribution_data: Mapping[str, Any],
        callbacks,
        cache_key: str,
    ):
        super().__init__(configuration, callbacks=callbacks, cache_key=cache_key)
        self.escaped_app_user_id = escaped_app_user_id
        self.network = network
        self.attribution_data = dict(attribution_data)

    @property
    def path(self) -> str:
        return subscriber_path(self.escaped_app_user_id, "attribution")

    def body(self) -> dict[str, Any]:
        return {"network": int(self.network), "data": self.attribution_data}

    def handle(self, response: HTTPResult) -> None:
        return handle_post_response(response)
