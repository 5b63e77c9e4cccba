"""Domain models produced and consumed by the backend layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any
from uuid import UUID


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class EntitlementInfo:
    identifier: str
    product_identifier: str
    purchase_date: datetime | None = None
    expires_date: datetime | None = None
    grace_period_expires_date: datetime | None = None

    def is_active_at(self, moment: datetime) -> bool:
        """Lifetime entitlements (no expiry) are always active."""
        expiry = self.grace_period_expires_date or self.expires_date
        return expiry is None or expiry > moment


@dataclass(slots=True)
class NonSubscriptionTransaction:
    transaction_identifier: str
    product_identifier: str
    purchase_date: datetime


@dataclass(slots=True)
class CustomerInfo:
    """Snapshot of a subscriber's entitlement and purchase state."""

    request_date: datetime
    original_app_user_id: str
    first_seen: datetime
    original_application_version: str | None = None
    original_purchase_date: datetime | None = None
    management_url: str | None = None
    entitlements: dict[str, EntitlementInfo] = field(default_factory=dict)
    expiration_dates_by_product: dict[str, datetime | None] = field(default_factory=dict)
    purchase_dates_by_product: dict[str, datetime | None] = field(default_factory=dict)
    non_subscription_transactions: list[NonSubscriptionTransaction] = field(default_factory=list)
    raw_data: dict[str, Any] = field(default_factory=dict)

    @property
    def active_entitlements(self) -> dict[str, EntitlementInfo]:
        return {
            key: entitlement
            for key, entitlement in self.entitlements.items()
            if entitlement.is_active_at(self.request_date)
        }

    @property
    def active_subscriptions(self) -> set[str]:
        return {
            product_id
            for product_id, expiry in self.expiration_dates_by_product.items()
            if expiry is not None and expiry > self.request_date
        }


@dataclass(slots=True)
class LoginResult:
    customer_info: CustomerInfo
    created: bool


class IntroEligibilityStatus(IntEnum):
    UNKNOWN = 0
    INELIGIBLE = 1
    ELIGIBLE = 2


@dataclass(frozen=True, slots=True)
class IntroEligibility:
    status: IntroEligibilityStatus = IntroEligibilityStatus.UNKNOWN


@dataclass(frozen=True, slots=True)
class SignedOffer:
    signature: str | None
    key_id: str | None
    nonce: UUID | None
    timestamp: int | None


@dataclass(slots=True)
class Package:
    identifier: str
    platform_product_identifier: str


@dataclass(slots=True)
class Offering:
    identifier: str
    description: str = ""
    packages: list[Package] = field(default_factory=list)


@dataclass(slots=True)
class OfferingsPayload:
    """Decoded offerings response; ``raw`` keeps the body for upper layers."""

    current_offering_id: str | None
    offerings: list[Offering] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def current(self) -> Offering | None:
        for offering in self.offerings:
            if offering.identifier == self.current_offering_id:
                return offering
        return None


# ---------------------------------------------------------------------------
# Request-side models
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SubscriberAttribute:
    """A single key/value attribute set on a subscriber."""

    key: str
    value: str | None
    set_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_backend_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "updated_at_ms": int(self.set_time.timestamp() * 1000),
        }


class AttributionNetwork(IntEnum):
    APPLE_SEARCH_ADS = 0
    ADJUST = 1
    APPS_FLYER = 2
    BRANCH = 3
    TENJIN = 4
    FACEBOOK = 5
    M_PARTICLE = 6


class PaymentMode(IntEnum):
    NONE = -1
    PAY_AS_YOU_GO = 0
    PAY_UP_FRONT = 1
    FREE_TRIAL = 2


class IntroDurationType(str, Enum):
    NONE = "none"
    FREE_TRIAL = "free_trial"
    INTRO_PRICE = "intro_price"


@dataclass(frozen=True, slots=True)
class DiscountInfo:
    offer_identifier: str | None
    price: Decimal
    payment_mode: PaymentMode = PaymentMode.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "offer_identifier": self.offer_identifier,
            "price": float(self.price),
            "payment_mode": self.payment_mode.value,
        }

    @property
    def cache_key(self) -> str:
        return f"{self.offer_identifier}-{self.price}-{self.payment_mode.value}"


@dataclass(frozen=True, slots=True)
class ProductInfo:
    """Store product details attached to a receipt post."""

    product_identifier: str
    price: Decimal
    currency_code: str | None = None
    payment_mode: PaymentMode = PaymentMode.NONE
    normal_duration: str | None = None
    intro_duration: str | None = None
    intro_duration_type: IntroDurationType = IntroDurationType.NONE
    subscription_group: str | None = None
    discounts: tuple[DiscountInfo, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "product_id": self.product_identifier,
            "price": float(self.price),
        }
        if self.currency_code:
            payload["currency"] = self.currency_code
        if self.payment_mode is not PaymentMode.NONE:
            payload["payment_mode"] = self.payment_mode.value
        if self.normal_duration:
            payload["normal_duration"] = self.normal_duration
        if self.intro_duration:
            if self.intro_duration_type is IntroDurationType.FREE_TRIAL:
                payload["trial_duration"] = self.intro_duration
            else:
                payload["intro_duration"] = self.intro_duration
        if self.subscription_group:
            payload["subscription_group_id"] = self.subscription_group
        if self.discounts:
            payload["offers"] = [discount.to_dict() for discount in self.discounts]
        return payload

    @property
    def cache_key(self) -> str:
        parts = [
            self.product_identifier,
            str(self.price),
            self.currency_code or "",
            str(self.payment_mode.value),
            self.normal_duration or "",
            self.intro_duration or "",
            self.intro_duration_type.value,
            self.subscription_group or "",
        ]
        parts.extend(discount.cache_key for discount in self.discounts)
        return "-".join(parts)
