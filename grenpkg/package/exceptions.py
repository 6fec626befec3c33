class GrenPackageError(Exception):
    """Base exception for all grenpkg package management errors."""

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(message)


class OutlineError(GrenPackageError):
    pass


class OutlineParseError(OutlineError):
    pass


class OutlineValidationError(OutlineError):
    pass


class PackageCacheError(GrenPackageError):
    """Raised when cache operations (lookup, store, remove) fail."""


class CacheLockError(GrenPackageError):
    """Base class for cache lock failures surfaced as exceptions."""


class ReentrantLockError(CacheLockError):
    """Raised when a process tries to acquire a lock it already holds."""


class CacheLockedError(CacheLockError):
    """Raised by ``CacheLock.hold`` when another process holds the lock."""


class CacheLockFailedError(CacheLockError):
    """Raised by ``CacheLock.hold`` when a filesystem error broke the lock."""
