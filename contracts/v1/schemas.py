"""Pydantic contracts for v1 subscription-backend responses."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ResponseModel(BaseModel):
    """Base model for backend payloads; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AttributesErrorResponse(_ResponseModel):
    attribute_errors: list[dict[str, Any]] | None = None


class BackendErrorEnvelope(_ResponseModel):
    """Error body returned alongside non-success status codes.

    Decoding is lenient on purpose: a ``code`` that is not an integer or a
    ``message`` that is not a string decode as ``None`` instead of failing.
    """

    code: int | None = None
    message: str | None = None
    attribute_errors: list[dict[str, Any]] | None = None
    attributes_error_response: AttributesErrorResponse | None = None

    @field_validator("code", mode="before")
    @classmethod
    def _lenient_code(cls, value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value)
        return None

    @field_validator("message", mode="before")
    @classmethod
    def _lenient_message(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("attribute_errors", mode="before")
    @classmethod
    def _lenient_attribute_errors(cls, value: Any) -> list | None:
        return value if isinstance(value, list) else None

    @field_validator("attributes_error_response", mode="before")
    @classmethod
    def _lenient_container(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @property
    def resolved_attribute_errors(self) -> list[dict[str, Any]] | None:
        """Attribute errors from the envelope, falling back to the top level."""
        if self.attributes_error_response is not None:
            return self.attributes_error_response.attribute_errors
        return self.attribute_errors


class EntitlementContract(_ResponseModel):
    product_identifier: str
    purchase_date: datetime | None = None
    expires_date: datetime | None = None
    grace_period_expires_date: datetime | None = None


class SubscriptionContract(_ResponseModel):
    purchase_date: datetime | None = None
    original_purchase_date: datetime | None = None
    expires_date: datetime | None = None
    period_type: str | None = None
    store: str | None = None
    is_sandbox: bool = False
    unsubscribe_detected_at: datetime | None = None
    billing_issues_detected_at: datetime | None = None
    ownership_type: str | None = None


class NonSubscriptionTransactionContract(_ResponseModel):
    id: str
    purchase_date: datetime
    store: str | None = None
    is_sandbox: bool = False


class SubscriberContract(_ResponseModel):
    original_app_user_id: str
    first_seen: datetime
    original_application_version: str | None = None
    original_purchase_date: datetime | None = None
    management_url: str | None = None
    entitlements: dict[str, EntitlementContract] = Field(default_factory=dict)
    subscriptions: dict[str, SubscriptionContract] = Field(default_factory=dict)
    non_subscriptions: dict[str, list[NonSubscriptionTransactionContract]] = Field(default_factory=dict)


class CustomerInfoResponse(_ResponseModel):
    """Body of ``GET /subscribers/{id}``, ``POST /receipts`` and identify."""

    request_date: datetime
    request_date_ms: int | None = None
    subscriber: SubscriberContract


class PackageContract(_ResponseModel):
    identifier: str
    platform_product_identifier: str


class OfferingContract(_ResponseModel):
    identifier: str
    description: str = ""
    packages: list[PackageContract] = Field(default_factory=list)


class OfferingsResponse(_ResponseModel):
    current_offering_id: str | None = None
    offerings: list[OfferingContract] = Field(default_factory=list)


class SignatureDataContract(_ResponseModel):
    """``signature_data`` block of a signed offer; every field optional."""

    signature: str | None = None
    nonce: str | None = None
    timestamp: int | None = None

    @field_validator("signature", "nonce", mode="before")
    @classmethod
    def _lenient_str(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> int | None:
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value
