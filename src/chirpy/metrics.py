"""
=============================================================================
HIT COUNTER
=============================================================================

A thread-safe counter of requests that passed through the metrics
middleware.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   worker 1 ──► increment() ─┐                                       │
    │   worker 2 ──► increment() ─┼──► [ lock ] ──► value += 1            │
    │   worker 3 ──► read()      ─┘                                       │
    │                                                                      │
    │   POST /reset ──► reset()  ──► [ lock ] ──► value = 0               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

"value += 1" is a read, an add and a store. Two threads can read the same
old value and one update is lost, so every access takes the lock.

The value never goes below zero: there is no decrement.

=============================================================================
"""

import threading


class HitCounter:
    """
    Atomic request counter.

        hits = HitCounter()
        hits.increment()   # → 1
        hits.read()        # → 1
        hits.reset()
        hits.read()        # → 0
    """

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        """Add one and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    def read(self) -> int:
        with self._lock:
            return self._value

    def reset(self) -> None:
        """Set the counter back to zero."""
        with self._lock:
            self._value = 0

    def __repr__(self) -> str:
        return f"HitCounter({self.read()})"
