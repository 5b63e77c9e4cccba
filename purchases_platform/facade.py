"""Public facade over the subscription backend."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future
from typing import Any

from . import keys
from .callback_cache import CallbackCacheStatus, PendingCallback, RequestCoalescer
from .config import build_auth_headers, load_environment, resolve_api_key
from .errors import BackendClientError, empty_subscriber_attributes_error, missing_app_user_id_error
from .handlers import unknown_eligibilities
from .marshalling import fetch_token
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
from .operation_queue import OperationQueue
from .operations import (
    CreateAliasOperation,
    GetCustomerInfoOperation,
    GetIntroEligibilityOperation,
    GetOfferingsOperation,
    LogInOperation,
    NetworkOperation,
    OperationConfiguration,
    PostAttributionDataOperation,
    PostOfferForSigningOperation,
    PostReceiptDataOperation,
    PostSubscriberAttributesOperation,
)
from .transport import HTTPTransport

logger = logging.getLogger(__name__)


def _completed(result: Any) -> Future:
    future: Future = Future()
    future.set_result(result)
    return future


def _failed(error: BaseException) -> Future:
    future: Future = Future()
    future.set_exception(error)
    return future


class Backend:
    """Entry point for every backend capability.

    Each method validates its arguments, derives the request's cache key and
    returns a ``concurrent.futures.Future``. Identical in-flight requests share
    one network call; all requests reach the transport one at a time, in the
    order they were issued. Futures resolve on the worker thread.
    """

    def __init__(
        self,
        *,
        transport: HTTPTransport,
        api_key: str,
        operation_queue: OperationQueue | None = None,
    ):
        self.transport = transport
        self.auth_headers = build_auth_headers(api_key)
        self.operation_queue = operation_queue or OperationQueue()
        self._configuration = OperationConfiguration(transport=transport, auth_headers=self.auth_headers)

        self.customer_info_callbacks: RequestCoalescer[CustomerInfo] = RequestCoalescer("customer info")
        self.log_in_callbacks: RequestCoalescer[LoginResult] = RequestCoalescer("log in")
        self.alias_callbacks: RequestCoalescer[None] = RequestCoalescer("alias")
        self.offerings_callbacks: RequestCoalescer[OfferingsPayload] = RequestCoalescer("offerings")
        self.offer_signing_callbacks: RequestCoalescer[SignedOffer] = RequestCoalescer("offer signing")
        self.intro_eligibility_callbacks: RequestCoalescer[dict[str, IntroEligibility]] = RequestCoalescer(
            "intro eligibility"
        )
        self.attributes_callbacks: RequestCoalescer[None] = RequestCoalescer("subscriber attributes")
        self.attribution_callbacks: RequestCoalescer[None] = RequestCoalescer("attribution")

    @classmethod
    def from_environment(cls, transport: HTTPTransport, *, api_key: str | None = None) -> "Backend":
        """Build a facade using ``PURCHASES_API_KEY`` (``.env`` is honoured)."""
        load_environment()
        return cls(transport=transport, api_key=resolve_api_key(api_key))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear_caches(self) -> None:
        """Ask the transport to drop its response caches, when it keeps any."""
        clear = getattr(self.transport, "clear_caches", None)
        if callable(clear):
            clear()

    def close(self, wait: bool = True) -> None:
        self.operation_queue.shutdown(wait=wait)

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _dispatch(
        self,
        callbacks: RequestCoalescer,
        cache_key: str,
        build_operation: Callable[[], NetworkOperation],
    ) -> Future:
        """Register a continuation for ``cache_key``; start the request if first."""
        pending = PendingCallback(cache_key)
        if callbacks.add(pending) is CallbackCacheStatus.FIRST_CALLBACK_ADDED:
            try:
                self.operation_queue.submit(build_operation())
            except Exception as e:
                callbacks.reject(cache_key, e)
        return pending.future

    @staticmethod
    def _escaped(app_user_id: str) -> str:
        return keys.escape_app_user_id(app_user_id)

    # ------------------------------------------------------------------
    # Customer info
    # ------------------------------------------------------------------

    def get_customer_info(self, app_user_id: str) -> Future:
        """Fetch the subscriber's ``CustomerInfo``."""
        try:
            escaped = self._escaped(app_user_id)
        except BackendClientError as e:
            logger.warning("get_customer_info rejected: %s", e)
            return _failed(e)

        cache_key = keys.customer_info_key(escaped)
        return self._dispatch(
            self.customer_info_callbacks,
            cache_key,
            lambda: GetCustomerInfoOperation(
                self._configuration,
                escaped_app_user_id=escaped,
                callbacks=self.customer_info_callbacks,
                cache_key=cache_key,
            ),
        )

    def post_receipt_data(
        self,
        receipt_data: bytes,
        app_user_id: str,
        *,
        is_restore: bool,
        observer_mode: bool,
        product_info: ProductInfo | None = None,
        presented_offering_identifier: str | None = None,
        subscriber_attributes: Mapping[str, SubscriberAttribute] | None = None,
    ) -> Future:
        """Post a receipt and resolve with the resulting ``CustomerInfo``."""
        try:
            self._escaped(app_user_id)
        except BackendClientError as e:
            logger.warning("post_receipt_data rejected: %s", e)
            return _failed(e)

        token = fetch_token(receipt_data)
        cache_key = keys.receipt_key(
            app_user_id=app_user_id,
            is_restore=is_restore,
            fetch_token=token,
            product_info=product_info,
            presented_offering_identifier=presented_offering_identifier,
            observer_mode=observer_mode,
            subscriber_attributes=subscriber_attributes,
        )
        return self._dispatch(
            self.customer_info_callbacks,
            cache_key,
            lambda: PostReceiptDataOperation(
                self._configuration,
                fetch_token=token,
                app_user_id=app_user_id,
                is_restore=is_restore,
                observer_mode=observer_mode,
                product_info=product_info,
                presented_offering_identifier=presented_offering_identifier,
                subscriber_attributes=subscriber_attributes,
                callbacks=self.customer_info_callbacks,
                cache_key=cache_key,
            ),
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def log_in(self, current_app_user_id: str, new_app_user_id: str) -> Future:
        """Identify ``current`` as ``new``; resolves with a ``LoginResult``."""
        if not current_app_user_id or not new_app_user_id:
            error = missing_app_user_id_error()
            logger.warning("log_in rejected: %s", error)
            return _failed(error)

        cache_key = keys.log_in_key(current_app_user_id, new_app_user_id)
        return self._dispatch(
            self.log_in_callbacks,
            cache_key,
            lambda: LogInOperation(
                self._configuration,
                current_app_user_id=current_app_user_id,
                new_app_user_id=new_app_user_id,
                callbacks=self.log_in_callbacks,
                cache_key=cache_key,
            ),
        )

    def create_alias(self, app_user_id: str, new_app_user_id: str) -> Future:
        try:
            escaped = self._escaped(app_user_id)
        except BackendClientError as e:
            logger.warning("create_alias rejected: %s", e)
            return _failed(e)

        cache_key = keys.alias_key(escaped, new_app_user_id)
        return self._dispatch(
            self.alias_callbacks,
            cache_key,
            lambda: CreateAliasOperation(
                self._configuration,
                escaped_app_user_id=escaped,
                new_app_user_id=new_app_user_id,
                callbacks=self.alias_callbacks,
                cache_key=cache_key,
            ),
        )

    # ------------------------------------------------------------------
    # Offerings & offers
    # ------------------------------------------------------------------

    def get_offerings(self, app_user_id: str) -> Future:
        try:
            escaped = self._escaped(app_user_id)
        except BackendClientError as e:
            logger.warning("get_offerings rejected: %s", e)
            return _failed(e)

        cache_key = keys.offerings_key(escaped)
        return self._dispatch(
            self.offerings_callbacks,
            cache_key,
            lambda: GetOfferingsOperation(
                self._configuration,
                escaped_app_user_id=escaped,
                callbacks=self.offerings_callbacks,
                cache_key=cache_key,
            ),
        )

    def post_offer_for_signing(
        self,
        offer_identifier: str,
        product_identifier: str,
        subscription_group: str,
        receipt_data: bytes,
        app_user_id: str,
    ) -> Future:
        """Request a signature for a promotional offer; resolves with ``SignedOffer``."""
        try:
            self._escaped(app_user_id)
        except BackendClientError as e:
            logger.warning("post_offer_for_signing rejected: %s", e)
            return _failed(e)

        token = fetch_token(receipt_data)
        cache_key = keys.offer_signing_key(
            app_user_id=app_user_id,
            fetch_token=token,
            offer_identifier=offer_identifier,
            product_identifier=product_identifier,
            subscription_group=subscription_group,
        )
        return self._dispatch(
            self.offer_signing_callbacks,
            cache_key,
            lambda: PostOfferForSigningOperation(
                self._configuration,
                app_user_id=app_user_id,
                fetch_token=token,
                offer_identifier=offer_identifier,
                product_identifier=product_identifier,
                subscription_group=subscription_group,
                callbacks=self.offer_signing_callbacks,
                cache_key=cache_key,
            ),
        )

    def get_intro_eligibility(
        self,
        app_user_id: str,
        receipt_data: bytes,
        product_identifiers: Sequence[str],
    ) -> Future:
        """Resolve with ``{product_id: IntroEligibility}``.

        An empty product list or an empty receipt resolves immediately without
        a network call; backend failures resolve with ``UNKNOWN`` statuses.

        Raises TypeError if ``product_identifiers`` is a single string.
        """
        if isinstance(product_identifiers, str):
            raise TypeError("product_identifiers must be a sequence of product ids, not a str.")
        product_identifiers = list(product_identifiers)
        if not product_identifiers:
            return _completed({})

        if not receipt_data:
            logger.warning("No receipt data; intro eligibility is unknown for %s.", product_identifiers)
            return _completed(unknown_eligibilities(product_identifiers))

        try:
            escaped = self._escaped(app_user_id)
        except BackendClientError as e:
            e.context["eligibilities"] = unknown_eligibilities(product_identifiers)
            logger.warning("get_intro_eligibility rejected: %s", e)
            return _failed(e)

        token = fetch_token(receipt_data)
        cache_key = keys.intro_eligibility_key(escaped, token, product_identifiers)
        return self._dispatch(
            self.intro_eligibility_callbacks,
            cache_key,
            lambda: GetIntroEligibilityOperation(
                self._configuration,
                escaped_app_user_id=escaped,
                fetch_token=token,
                product_identifiers=product_identifiers,
                callbacks=self.intro_eligibility_callbacks,
                cache_key=cache_key,
            ),
        )

    # ------------------------------------------------------------------
    # Attributes & attribution
    # ------------------------------------------------------------------

    def post_subscriber_attributes(
        self,
        subscriber_attributes: Mapping[str, SubscriberAttribute],
        app_user_id: str,
    ) -> Future:
        if not subscriber_attributes:
            error = empty_subscriber_attributes_error()
            logger.warning("post_subscriber_attributes rejected: %s", error)
            return _failed(error)

        try:
            escaped = self._escaped(app_user_id)
        except BackendClientError as e:
            logger.warning("post_subscriber_attributes rejected: %s", e)
            return _failed(e)

        cache_key = keys.subscriber_attributes_key(escaped, subscriber_attributes)
        return self._dispatch(
            self.attributes_callbacks,
            cache_key,
            lambda: PostSubscriberAttributesOperation(
                self._configuration,
                escaped_app_user_id=escaped,
                subscriber_attributes=subscriber_attributes,
                callbacks=self.attributes_callbacks,
                cache_key=cache_key,
            ),
        )

    def post_attribution_data(
        self,
        attribution_data: Mapping[str, Any],
        network: AttributionNetwork,
        app_user_id: str,
    ) -> Future:
        try:
            escaped = self._escaped(app_user_id)
        except BackendClientError as e:
            logger.warning("post_attribution_data rejected: %s", e)
            return _failed(e)

        cache_key = keys.attribution_key(escaped, network, attribution_data)
        return self._dispatch(
            self.attribution_callbacks,
            cache_key,
            lambda: PostAttributionDataOperation(
                self._configuration,
                escaped_app_user_id=escaped,
                network=network,
                attribution_data=attribution_data,
                callbacks=self.attribution_callbacks,
                cache_key=cache_key,
            ),
        )
