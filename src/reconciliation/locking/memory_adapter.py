"""In-process lock backend (threading based).

Locks are owned by the acquiring thread, carry an expiry time, and waiters are
woken through a shared condition whenever a lock is released.
"""

import threading
import time

from reconciliation.locking.port import LockBackend


class MemoryLockBackend(LockBackend):
    def __init__(self) -> None:
        self._condition = threading.Condition()
        # name -> (owner thread id, expires at monotonic time)
        self._held: dict[str, tuple[int, float]] = {}

    def _is_held(self, name: str, now: float) -> bool:
        entry = self._held.get(name)
        if entry is None:
            return False
        if entry[1] <= now:
            del self._held[name]
            return False
        return True

    def acquire(self, name: str, ttl: float = 30.0) -> bool:
        owner = threading.get_ident()
        with self._condition:
            now = time.monotonic()
            if self._is_held(name, now) and self._held[name][0] != owner:
                return False
            self._held[name] = (owner, now + ttl)
            return True

    def lock_may_be_available(self, name: str) -> bool:
        with self._condition:
            return not self._is_held(name, time.monotonic())

    def wait(self, name: str, timeout: float = 30.0) -> bool:
        deadline = time.monotonic() + timeout
        with self._condition:
            while self._is_held(name, time.monotonic()):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                expires_at = self._held[name][1]
                # Wake up no later than the holder's expiry
                self._condition.wait(min(remaining, max(expires_at - time.monotonic(), 0.0)))
            return True

    def release(self, name: str) -> None:
        owner = threading.get_ident()
        with self._condition:
            entry = self._held.get(name)
            if entry is not None and entry[0] == owner:
                del self._held[name]
                self._condition.notify_all()

    def held_locks(self) -> list[str]:
        with self._condition:
            now = time.monotonic()
            return [name for name in list(self._held) if self._is_held(name, now)]
