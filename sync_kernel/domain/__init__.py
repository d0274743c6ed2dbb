"""
Pure domain helpers shared by the sync layers.

Nothing here performs I/O except ``SystemClock``, the one sanctioned
boundary for wall-clock time.
"""

from sync_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
