"""Process-wide guard allowing at most one reconciliation run at a time."""

import threading


class RunToken:
    """Atomic idle/running flag.

    Backed by a lock that is only ever acquired without blocking, which makes
    ``try_acquire`` a single test-and-set usable from any thread or task.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def is_held(self) -> bool:
        return self._lock.locked()
