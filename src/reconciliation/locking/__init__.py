"""Lock backend abstraction — pluggable named locks for the engine."""

from reconciliation.locking.memory_adapter import MemoryLockBackend
from reconciliation.locking.port import LockBackend

_lock_backend: LockBackend | None = None


def get_lock_backend() -> LockBackend:
    """Return the configured lock backend (singleton). Defaults to MemoryLockBackend."""
    global _lock_backend
    if _lock_backend is None:
        _lock_backend = MemoryLockBackend()
    return _lock_backend


def reset_lock_backend() -> None:
    """Reset the lock backend singleton (useful for testing)."""
    global _lock_backend
    _lock_backend = None
