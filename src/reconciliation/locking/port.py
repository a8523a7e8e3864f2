"""Named lock backend port (abstract interface).

Mirrors a persistent lock service: ``acquire`` never blocks, ``wait`` blocks
until the lock may be free, and locks expire after their TTL so a crashed
holder cannot wedge a payment forever.
"""

from abc import ABC, abstractmethod


class LockBackend(ABC):
    @abstractmethod
    def acquire(self, name: str, ttl: float = 30.0) -> bool:
        """Try to take ``name`` for ``ttl`` seconds. Re-acquiring a held lock extends it."""
        ...

    @abstractmethod
    def lock_may_be_available(self, name: str) -> bool:
        """Cheap check whether ``name`` is currently free."""
        ...

    @abstractmethod
    def wait(self, name: str, timeout: float = 30.0) -> bool:
        """Block until ``name`` may be available. Returns False on timeout."""
        ...

    @abstractmethod
    def release(self, name: str) -> None:
        """Release ``name`` if the caller holds it."""
        ...
