"""
Shared fixtures for purchases-backend tests.
"""

import copy
import threading

import pytest

from purchases_platform.facade import Backend
from purchases_platform.operation_queue import OperationQueue
from purchases_platform.transport import HTTPResult


CUSTOMER_INFO_BODY = {
    "request_date": "2019-08-16T10:30:42Z",
    "request_date_ms": 1565951442879,
    "subscriber": {
        "original_app_user_id": "app_user_id",
        "original_application_version": "2083",
        "first_seen": "2019-06-17T16:05:33Z",
        "original_purchase_date": "2019-07-17T00:05:54Z",
        "management_url": "https://apps.apple.com/account/subscriptions",
        "entitlements": {
            "pro": {
                "product_identifier": "monthly_freetrial",
                "purchase_date": "2019-07-26T23:45:40Z",
                "expires_date": "2100-08-01T00:00:00Z",
            },
            "old_pro": {
                "product_identifier": "old_monthly",
                "purchase_date": "2018-07-26T23:45:40Z",
                "expires_date": "2018-08-26T23:45:40Z",
            },
        },
        "subscriptions": {
            "monthly_freetrial": {
                "purchase_date": "2019-07-26T23:45:40Z",
                "expires_date": "2100-08-01T00:00:00Z",
                "period_type": "normal",
                "store": "app_store",
                "is_sandbox": True,
            },
            "old_monthly": {
                "purchase_date": "2018-07-26T23:45:40Z",
                "expires_date": "2018-08-26T23:45:40Z",
                "period_type": "normal",
                "store": "app_store",
            },
        },
        "non_subscriptions": {
            "consumable": [
                {"id": "72c26cc69c", "purchase_date": "2019-07-26T22:10:27Z", "store": "app_store"},
            ],
        },
    },
}


class FakeTransport:
    """Scriptable in-memory transport.

    Responses are keyed by path. ``hold()`` makes every call block until
    ``release()`` so tests can pile up concurrent callers.
    """

    def __init__(self):
        self.calls: list[dict] = []
        self.responses: dict[str, HTTPResult] = {}
        self.default = HTTPResult(200, {}, None)
        self.started = threading.Event()
        self.cleared = 0
        self._gate = threading.Event()
        self._gate.set()
        self._lock = threading.Lock()

    def respond(self, path, status_code=200, body=None, error=None):
        self.responses[path] = HTTPResult(status_code, body, error)

    def hold(self):
        self._gate.clear()

    def release(self):
        self._gate.set()

    def perform_get(self, path, headers):
        return self._perform("GET", path, headers, None)

    def perform_post(self, path, headers, body):
        return self._perform("POST", path, headers, body)

    def clear_caches(self):
        self.cleared += 1

    def calls_to(self, path):
        with self._lock:
            return [call for call in self.calls if call["path"] == path]

    def _perform(self, method, path, headers, body):
        with self._lock:
            self.calls.append({"method": method, "path": path, "headers": dict(headers), "body": body})
        self.started.set()
        assert self._gate.wait(timeout=5), "transport was never released"
        return self.responses.get(path, self.default)


@pytest.fixture
def customer_info_body():
    """Return a fresh copy of a valid customer-info response body."""
    def _make(**subscriber_overrides):
        body = copy.deepcopy(CUSTOMER_INFO_BODY)
        body["subscriber"].update(subscriber_overrides)
        return body
    return _make


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def backend(transport):
    """Backend wired to the fake transport; the worker is shut down afterwards."""
    instance = Backend(transport=transport, api_key="appl_test_key", operation_queue=OperationQueue(name="test-worker"))
    yield instance
    transport.release()
    instance.close()
