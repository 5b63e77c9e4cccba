"""Mapping helpers between v1 response contracts and domain models."""

from __future__ import annotations

from typing import Any

from contracts.v1.schemas import CustomerInfoResponse, OfferingsResponse
from purchases_platform.models import (
    CustomerInfo,
    EntitlementInfo,
    NonSubscriptionTransaction,
    Offering,
    OfferingsPayload,
    Package,
)


def customer_info_from_contract(contract: CustomerInfoResponse, raw: dict[str, Any]) -> CustomerInfo:
    """Convert a decoded ``CustomerInfoResponse`` to a ``CustomerInfo``."""
    subscriber = contract.subscriber
    entitlements = {
        key: EntitlementInfo(
            identifier=key,
            product_identifier=value.product_identifier,
            purchase_date=value.purchase_date,
            expires_date=value.expires_date,
            grace_period_expires_date=value.grace_period_expires_date,
        )
        for key, value in subscriber.entitlements.items()
    }
    transactions = [
        NonSubscriptionTransaction(
            transaction_identifier=transaction.id,
            product_identifier=product_id,
            purchase_date=transaction.purchase_date,
        )
        for product_id, purchases in subscriber.non_subscriptions.items()
        for transaction in purchases
    ]
    return CustomerInfo(
        request_date=contract.request_date,
        original_app_user_id=subscriber.original_app_user_id,
        first_seen=subscriber.first_seen,
        original_application_version=subscriber.original_application_version,
        original_purchase_date=subscriber.original_purchase_date,
        management_url=subscriber.management_url,
        entitlements=entitlements,
        expiration_dates_by_product={
            product_id: sub.expires_date for product_id, sub in subscriber.subscriptions.items()
        },
        purchase_dates_by_product={
            product_id: sub.purchase_date for product_id, sub in subscriber.subscriptions.items()
        },
        non_subscription_transactions=transactions,
        raw_data=dict(raw),
    )


def offerings_from_contract(contract: OfferingsResponse, raw: dict[str, Any]) -> OfferingsPayload:
    """Convert a decoded ``OfferingsResponse`` to an ``OfferingsPayload``."""
    return OfferingsPayload(
        current_offering_id=contract.current_offering_id,
        offerings=[
            Offering(
                identifier=offering.identifier,
                description=offering.description,
                packages=[
                    Package(
                        identifier=package.identifier,
                        platform_product_identifier=package.platform_product_identifier,
                    )
                    for package in offering.packages
                ],
            )
            for offering in contract.offerings
        ],
        raw=dict(raw),
    )
