"""Tests for the in-flight callback registry."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from purchases_platform.callback_cache import (
    CallbackCacheDesyncError,
    CallbackCacheStatus,
    PendingCallback,
    RequestCoalescer,
)


def test_first_registrant_is_reported_first():
    cache = RequestCoalescer("test")

    first = cache.add(PendingCallback("key"))
    second = cache.add(PendingCallback("key"))

    assert first is CallbackCacheStatus.FIRST_CALLBACK_ADDED
    assert second is CallbackCacheStatus.ADDED_TO_EXISTING_IN_FLIGHT


def test_distinct_keys_are_independent():
    cache = RequestCoalescer("test")

    assert cache.add(PendingCallback("a")) is CallbackCacheStatus.FIRST_CALLBACK_ADDED
    assert cache.add(PendingCallback("b")) is CallbackCacheStatus.FIRST_CALLBACK_ADDED
    assert cache.in_flight_count == 2


def test_drain_returns_callbacks_in_insertion_order_and_removes_entry():
    cache = RequestCoalescer("test")
    callbacks = [PendingCallback("key") for _ in range(3)]
    for callback in callbacks:
        cache.add(callback)

    drained = cache.drain("key")

    assert drained == callbacks
    assert "key" not in cache
    assert cache.in_flight_count == 0


def test_drain_unknown_key_is_an_invariant_violation():
    cache = RequestCoalescer("test")

    with pytest.raises(CallbackCacheDesyncError):
        cache.drain("never-added")


def test_second_drain_of_same_key_fails():
    cache = RequestCoalescer("test")
    cache.add(PendingCallback("key"))
    cache.drain("key")

    with pytest.raises(CallbackCacheDesyncError):
        cache.drain("key")


def test_resolve_fans_out_identical_result():
    cache = RequestCoalescer("test")
    callbacks = [PendingCallback("key") for _ in range(4)]
    for callback in callbacks:
        cache.add(callback)
    result = object()

    count = cache.resolve("key", result)

    assert count == 4
    assert all(callback.future.result(timeout=1) is result for callback in callbacks)


def test_reject_fans_out_identical_error():
    cache = RequestCoalescer("test")
    callbacks = [PendingCallback("key") for _ in range(2)]
    for callback in callbacks:
        cache.add(callback)
    error = RuntimeError("boom")

    cache.reject("key", error)

    assert all(callback.future.exception(timeout=1) is error for callback in callbacks)


def test_pending_callback_resolves_at_most_once():
    callback = PendingCallback("key")
    callback.resolve(1)

    with pytest.raises(Exception):
        callback.resolve(2)
    assert callback.future.result() == 1


def test_cancelled_callback_is_skipped_and_others_still_resolve():
    cache = RequestCoalescer("test")
    callbacks = [PendingCallback("key") for _ in range(3)]
    for callback in callbacks:
        cache.add(callback)
    callbacks[1].future.cancel()

    count = cache.resolve("key", "done")

    assert count == 3
    assert callbacks[0].future.result(timeout=1) == "done"
    assert callbacks[1].future.cancelled()
    assert callbacks[2].future.result(timeout=1) == "done"


def test_cancelled_callback_is_skipped_on_reject():
    cache = RequestCoalescer("test")
    first, second = PendingCallback("key"), PendingCallback("key")
    cache.add(first)
    cache.add(second)
    first.future.cancel()
    error = RuntimeError("boom")

    cache.reject("key", error)

    assert first.future.cancelled()
    assert second.future.exception(timeout=1) is error


def test_failing_delivery_does_not_stop_the_fan_out(caplog):
    cache = RequestCoalescer("test")
    callbacks = [PendingCallback("key") for _ in range(3)]
    for callback in callbacks:
        cache.add(callback)
    delivered = []

    def _deliver(callback):
        if callback is callbacks[0]:
            raise ValueError("delivery failed")
        delivered.append(callback)

    count = cache.perform_on_all_and_remove("key", _deliver)

    assert count == 3
    assert delivered == callbacks[1:]
    assert "Delivering test result for key 'key' failed." in caplog.text
    assert "key" not in cache


def test_key_registered_again_after_drain_starts_fresh():
    cache = RequestCoalescer("test")
    cache.add(PendingCallback("key"))
    cache.resolve("key", None)

    assert cache.add(PendingCallback("key")) is CallbackCacheStatus.FIRST_CALLBACK_ADDED


def test_done_callback_can_reenter_the_cache():
    cache = RequestCoalescer("test")
    first = PendingCallback("key")
    cache.add(first)
    statuses = []
    first.future.add_done_callback(lambda _: statuses.append(cache.add(PendingCallback("key"))))

    cache.resolve("key", "done")

    assert statuses == [CallbackCacheStatus.FIRST_CALLBACK_ADDED]


def test_concurrent_adds_elect_exactly_one_first():
    cache = RequestCoalescer("test")
    barrier = threading.Barrier(16)

    def _register():
        barrier.wait()
        return cache.add(PendingCallback("shared"))

    with ThreadPoolExecutor(max_workers=16) as pool:
        statuses = list(pool.map(lambda _: _register(), range(16)))

    assert statuses.count(CallbackCacheStatus.FIRST_CALLBACK_ADDED) == 1
    assert len(cache.drain("shared")) == 16
