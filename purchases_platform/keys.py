"""Request identity: app-user-id escaping and coalescing cache keys.

A cache key is ``"<METHOD> <path>"``, optionally followed by ``#`` and the
SHA-256 digest of the canonical JSON encoding of the identity fields that the
path does not already capture.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import quote

from .config import IDENTIFY_PATH, OFFERS_PATH, RECEIPTS_PATH, SUBSCRIBERS_PATH
from .errors import missing_app_user_id_error
from .marshalling import subscriber_attributes_to_dict
from .models import AttributionNetwork, ProductInfo, SubscriberAttribute


def escape_app_user_id(app_user_id: str) -> str:
    """Percent-escape an app user id for use as a path segment.

    Raises RequestValidationError when the id is empty or not encodable.
    """
    if not isinstance(app_user_id, str) or not app_user_id:
        raise missing_app_user_id_error()
    try:
        return quote(app_user_id, safe="")
    except UnicodeEncodeError as e:
        raise missing_app_user_id_error() from e


def _digest(identity: Any) -> str:
    payload = json.dumps(identity, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def request_key(method: str, path: str, identity: Any = None) -> str:
    base = f"{method} {path}"
    if identity is None:
        return base
    return f"{base}#{_digest(identity)}"


def subscriber_path(escaped_app_user_id: str, suffix: str = "") -> str:
    path = f"{SUBSCRIBERS_PATH}/{escaped_app_user_id}"
    return f"{path}/{suffix}" if suffix else path


def customer_info_key(escaped_app_user_id: str) -> str:
    return request_key("GET", subscriber_path(escaped_app_user_id))


def offerings_key(escaped_app_user_id: str) -> str:
    return request_key("GET", subscriber_path(escaped_app_user_id, "offerings"))


def receipt_key(
    *,
    app_user_id: str,
    is_restore: bool,
    fetch_token: str,
    product_info: ProductInfo | None,
    presented_offering_identifier: str | None,
    observer_mode: bool,
    subscriber_attributes: Mapping[str, SubscriberAttribute] | None,
) -> str:
    """Every parameter that ends up in the receipt body is part of its identity."""
    identity = {
        "app_user_id": app_user_id,
        "is_restore": is_restore,
        "fetch_token": fetch_token,
        "product_info": product_info.cache_key if product_info else None,
        "presented_offering_identifier": presented_offering_identifier,
        "observer_mode": observer_mode,
        "attributes": (
            subscriber_attributes_to_dict(subscriber_attributes)
            if subscriber_attributes is not None
            else None
        ),
    }
    return request_key("POST", RECEIPTS_PATH, identity)


def log_in_key(current_app_user_id: str, new_app_user_id: str) -> str:
    return request_key("POST", IDENTIFY_PATH, [current_app_user_id, new_app_user_id])


def alias_key(escaped_app_user_id: str, new_app_user_id: str) -> str:
    return request_key("POST", subscriber_path(escaped_app_user_id, "alias"), [new_app_user_id])


def offer_signing_key(
    *,
    app_user_id: str,
    fetch_token: str,
    offer_identifier: str,
    product_identifier: str,
    subscription_group: str,
) -> str:
    identity = {
        "app_user_id": app_user_id,
        "fetch_token": fetch_token,
        "offer_id": offer_identifier,
        "product_id": product_identifier,
        "subscription_group": subscription_group,
    }
    return request_key("POST", OFFERS_PATH, identity)


def intro_eligibility_key(
    escaped_app_user_id: str,
    fetch_token: str,
    product_identifiers: Sequence[str],
) -> str:
    identity = {"fetch_token": fetch_token, "product_identifiers": list(product_identifiers)}
    return request_key("POST", subscriber_path(escaped_app_user_id, "intro_eligibility"), identity)


def subscriber_attributes_key(
    escaped_app_user_id: str,
    subscriber_attributes: Mapping[str, SubscriberAttribute],
) -> str:
    identity = subscriber_attributes_to_dict(subscriber_attributes)
    return request_key("POST", subscriber_path(escaped_app_user_id, "attributes"), identity)


def attribution_key(
    escaped_app_user_id: str,
    network: AttributionNetwork,
    attribution_data: Mapping[str, Any],
) -> str:
    identity = {"network": int(network), "data": dict(attribution_data)}
    return request_key("POST", subscriber_path(escaped_app_user_id, "attribution"), identity)
