import threading

import pytest

from sarflood.backend import BackendError, gather

pytestmark = pytest.mark.unit


def test_results_in_call_order():
    assert gather(lambda: "a", lambda: "b", lambda: "c") == ["a", "b", "c"]


def test_no_calls():
    assert gather() == []


def test_single_call_runs_inline():
    caller = threading.current_thread()
    seen = []
    gather(lambda: seen.append(threading.current_thread()))
    assert seen == [caller]


def test_calls_run_concurrently():
    barrier = threading.Barrier(2, timeout=5)

    def wait():
        barrier.wait()
        return True

    # Deadlocks (and times out) if the calls were sequential
    assert gather(wait, wait) == [True, True]


def test_first_failure_is_raised_after_all_finish():
    finished = []

    def fail():
        raise BackendError("reduction failed")

    def succeed():
        finished.append(True)
        return 1

    with pytest.raises(BackendError, match="reduction failed"):
        gather(fail, succeed)
    assert finished == [True]
