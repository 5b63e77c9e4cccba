"""Tests for app-user-id escaping and coalescing cache keys."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from purchases_platform import keys
from purchases_platform.errors import RequestValidationError, ValidationReason
from purchases_platform.models import AttributionNetwork, ProductInfo, SubscriberAttribute


def _receipt_key(**overrides):
    params = {
        "app_user_id": "user",
        "is_restore": False,
        "fetch_token": "dG9rZW4=",
        "product_info": None,
        "presented_offering_identifier": None,
        "observer_mode": False,
        "subscriber_attributes": None,
    }
    params.update(overrides)
    return keys.receipt_key(**params)


@pytest.mark.parametrize(
    ("raw", "escaped"),
    [
        ("user", "user"),
        ("a b", "a%20b"),
        ("a/b", "a%2Fb"),
        ("$RCAnonymousID:1234", "%24RCAnonymousID%3A1234"),
        ("ünï", "%C3%BCn%C3%AF"),
    ],
)
def test_escape_app_user_id(raw, escaped):
    assert keys.escape_app_user_id(raw) == escaped


@pytest.mark.parametrize("raw", ["", None, "\ud800"])
def test_escape_rejects_missing_or_unencodable_ids(raw):
    with pytest.raises(RequestValidationError) as excinfo:
        keys.escape_app_user_id(raw)

    assert excinfo.value.reason is ValidationReason.MISSING_APP_USER_ID


def test_get_keys_are_method_and_path():
    assert keys.customer_info_key("user") == "GET /subscribers/user"
    assert keys.offerings_key("user") == "GET /subscribers/user/offerings"


def test_post_keys_carry_identity_digest():
    key = keys.log_in_key("old", "new")

    method_path, digest = key.split("#")
    assert method_path == "POST /subscribers/identify"
    assert len(digest) == 64


def test_receipt_key_is_stable():
    assert _receipt_key() == _receipt_key()


@pytest.mark.parametrize(
    "override",
    [
        {"app_user_id": "other"},
        {"is_restore": True},
        {"fetch_token": "b3RoZXI="},
        {"presented_offering_identifier": "offering"},
        {"observer_mode": True},
        {"product_info": ProductInfo(product_identifier="monthly", price=Decimal("1.99"))},
        {
            "subscriber_attributes": {
                "k": SubscriberAttribute("k", "v", datetime(2021, 1, 1, tzinfo=timezone.utc)),
            }
        },
    ],
)
def test_every_receipt_parameter_changes_the_key(override):
    assert _receipt_key(**override) != _receipt_key()


def test_product_price_changes_receipt_key():
    cheap = ProductInfo(product_identifier="monthly", price=Decimal("1.99"))
    pricey = ProductInfo(product_identifier="monthly", price=Decimal("2.99"))

    assert _receipt_key(product_info=cheap) != _receipt_key(product_info=pricey)


def test_log_in_key_depends_on_both_ids():
    assert keys.log_in_key("a", "b") != keys.log_in_key("a", "c")
    assert keys.log_in_key("a", "b") != keys.log_in_key("b", "a")


def test_alias_key_depends_on_target():
    assert keys.alias_key("user", "x") != keys.alias_key("user", "y")


def test_offer_signing_key_depends_on_offer():
    base = {
        "app_user_id": "user",
        "fetch_token": "dG9rZW4=",
        "offer_identifier": "offer",
        "product_identifier": "product",
        "subscription_group": "group",
    }

    assert keys.offer_signing_key(**base) == keys.offer_signing_key(**base)
    assert keys.offer_signing_key(**base) != keys.offer_signing_key(**{**base, "offer_identifier": "other"})


def test_intro_eligibility_key_depends_on_products():
    first = keys.intro_eligibility_key("user", "dG9rZW4=", ["a", "b"])
    second = keys.intro_eligibility_key("user", "dG9rZW4=", ["a"])

    assert first != second
    assert first.startswith("POST /subscribers/user/intro_eligibility#")


def test_attribute_key_ignores_mapping_order():
    moment = datetime(2021, 1, 1, tzinfo=timezone.utc)
    a = SubscriberAttribute("a", "1", moment)
    b = SubscriberAttribute("b", "2", moment)

    assert keys.subscriber_attributes_key("user", {"a": a, "b": b}) == keys.subscriber_attributes_key(
        "user", {"b": b, "a": a}
    )


def test_attribution_key_depends_on_network():
    data = {"campaign": "spring"}

    assert keys.attribution_key("user", AttributionNetwork.ADJUST, data) != keys.attribution_key(
        "user", AttributionNetwork.BRANCH, data
    )
