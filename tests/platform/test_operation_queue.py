"""Tests for the single-worker operation queue."""

import threading

import pytest

from purchases_platform.operation_queue import OperationQueue


class _RecordingOperation:
    def __init__(self, label, log, *, fail=False, delay_event=None):
        self.label = label
        self.log = log
        self.fail = fail
        self.delay_event = delay_event

    def run(self):
        if self.delay_event is not None:
            self.delay_event.wait(timeout=5)
        self.log.append((self.label, threading.current_thread().name))
        if self.fail:
            raise RuntimeError(f"{self.label} failed")


class _ConcurrencyProbe:
    def __init__(self, state):
        self.state = state

    def run(self):
        with self.state["lock"]:
            self.state["active"] += 1
            self.state["max_active"] = max(self.state["max_active"], self.state["active"])
        threading.Event().wait(0.001)
        with self.state["lock"]:
            self.state["active"] -= 1


def test_operations_run_in_submission_order():
    ops = OperationQueue(name="order-test")
    log = []
    for i in range(20):
        ops.submit(_RecordingOperation(i, log))

    ops.join()
    ops.shutdown()

    assert [label for label, _ in log] == list(range(20))


def test_operations_run_on_the_dedicated_worker():
    ops = OperationQueue(name="worker-name-test")
    log = []
    ops.submit(_RecordingOperation("a", log))
    ops.join()
    ops.shutdown()

    assert log == [("a", "worker-name-test")]


def test_never_runs_two_operations_at_once():
    ops = OperationQueue(name="concurrency-test")
    state = {"lock": threading.Lock(), "active": 0, "max_active": 0}
    for _ in range(10):
        ops.submit(_ConcurrencyProbe(state))

    ops.join()
    ops.shutdown()

    assert state["max_active"] == 1


def test_failing_operation_does_not_block_later_ones(caplog):
    ops = OperationQueue(name="failure-test")
    log = []
    ops.submit(_RecordingOperation("first", log, fail=True))
    ops.submit(_RecordingOperation("second", log))

    ops.join()
    ops.shutdown()

    assert [label for label, _ in log] == ["first", "second"]
    assert "failed in queue" in caplog.text


def test_later_submission_waits_for_blocked_operation():
    ops = OperationQueue(name="blocking-test")
    log = []
    gate = threading.Event()
    ops.submit(_RecordingOperation("slow", log, delay_event=gate))
    ops.submit(_RecordingOperation("fast", log))

    assert log == []
    gate.set()
    ops.join()
    ops.shutdown()

    assert [label for label, _ in log] == ["slow", "fast"]


def test_submit_after_shutdown_raises():
    ops = OperationQueue(name="closed-test")
    ops.shutdown()

    assert ops.is_closed is True
    with pytest.raises(RuntimeError):
        ops.submit(_RecordingOperation("late", []))


def test_shutdown_lets_queued_work_finish():
    ops = OperationQueue(name="drain-test")
    log = []
    for i in range(5):
        ops.submit(_RecordingOperation(i, log))

    ops.shutdown(wait=True)

    assert [label for label, _ in log] == list(range(5))
