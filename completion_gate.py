"""
A counting gate that opens exactly once, when a fixed number of items are done.
"""

import threading
from typing import Optional


class OverCompletion(Exception):
    """More completions were reported than the gate was sized for."""
    pass


class CompletionGate:
    """Tracks "N of M done" for one phase.

    The gate is OPEN until ``target`` calls to :meth:`mark_one` have been made,
    then SATISFIED for good. There is no reset and no cancellation.
    """

    def __init__(self, target: int):
        """
        :param target: Number of completions that satisfy the gate
        :raises ValueError: If target is negative
        """
        if target < 0:
            raise ValueError(f"Gate target must be >= 0, got {target}")
        self.target = target
        self._completed = 0
        self._lock = threading.Lock()
        self._satisfied = threading.Event()
        if target == 0:
            self._satisfied.set()

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def remaining(self) -> int:
        with self._lock:
            return self.target - self._completed

    @property
    def is_satisfied(self) -> bool:
        return self._satisfied.is_set()

    def mark_one(self) -> bool:
        """Record one completed item.

        Safe to call from any number of threads.

        :return: True for the one call that satisfied the gate, False otherwise
        :raises OverCompletion: If the gate already reached its target
        """
        with self._lock:
            if self._completed >= self.target:
                raise OverCompletion(
                    f"Completion {self._completed + 1} reported for a gate sized {self.target}"
                )
            self._completed += 1
            satisfied = self._completed == self.target
        if satisfied:
            self._satisfied.set()
        return satisfied

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the gate is satisfied.

        :param timeout: Seconds to wait, None to wait forever
        :return: True if satisfied, False if the timeout elapsed first
        """
        return self._satisfied.wait(timeout)

    def __repr__(self) -> str:
        return f"CompletionGate(completed={self.completed}, target={self.target})"
