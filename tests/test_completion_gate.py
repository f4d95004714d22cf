import threading

import pytest

from completion_gate import CompletionGate, OverCompletion


@pytest.mark.parametrize("target", [1, 3, 25])
def test_gate_satisfied_after_target_marks_from_threads(target):
    gate = CompletionGate(target)
    threads = [threading.Thread(target=gate.mark_one) for _ in range(target)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert gate.wait(timeout=1)
    assert gate.is_satisfied
    assert gate.completed == target
    assert gate.remaining == 0


def test_zero_target_does_not_block():
    gate = CompletionGate(0)
    assert gate.is_satisfied
    assert gate.wait() is True


def test_gate_stays_open_until_last_mark():
    gate = CompletionGate(2)
    assert gate.mark_one() is False
    assert not gate.is_satisfied
    assert gate.wait(timeout=0.01) is False
    assert gate.mark_one() is True
    assert gate.is_satisfied


def test_extra_mark_raises_over_completion():
    gate = CompletionGate(2)
    gate.mark_one()
    gate.mark_one()

    with pytest.raises(OverCompletion):
        gate.mark_one()
    assert gate.completed == 2
    assert gate.is_satisfied


def test_zero_target_rejects_any_mark():
    gate = CompletionGate(0)
    with pytest.raises(OverCompletion):
        gate.mark_one()


def test_negative_target_is_rejected():
    with pytest.raises(ValueError):
        CompletionGate(-1)


def test_every_waiter_is_released():
    gate = CompletionGate(1)
    released = []
    waiters = [
        threading.Thread(target=lambda: released.append(gate.wait(timeout=5)))
        for _ in range(5)
    ]
    for t in waiters:
        t.start()
    gate.mark_one()
    for t in waiters:
        t.join()

    assert released == [True] * 5


def test_exactly_one_thread_observes_the_transition():
    gate = CompletionGate(1000)
    barrier = threading.Barrier(50)
    transitions = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        for _ in range(20):
            if gate.mark_one():
                with lock:
                    transitions.append(threading.current_thread().name)

    threads = [threading.Thread(target=worker, name=f"Worker-{i}") for i in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(transitions) == 1
    assert gate.completed == 1000
    assert gate.wait(timeout=1)
