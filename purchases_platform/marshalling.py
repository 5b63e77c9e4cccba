"""Request-body marshalling helpers."""

from __future__ import annotations

import base64
from collections.abc import Mapping
from typing import Any

from .models import SubscriberAttribute


def fetch_token(receipt_data: bytes) -> str:
    """Base64 form of the receipt sent to the backend as ``fetch_token``."""
    return base64.b64encode(receipt_data).decode("ascii")


def subscriber_attributes_to_dict(
    subscriber_attributes: Mapping[str, SubscriberAttribute],
) -> dict[str, dict[str, Any]]:
    """Convert attributes keyed by name into the backend's nested shape."""
    return {key: attribute.as_backend_dict() for key, attribute in subscriber_attributes.items()}
