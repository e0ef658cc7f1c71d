"""Errors raised by sharedstate."""


class SharedStateError(Exception):
    """Base class for all sharedstate errors"""
    pass


class StorageError(SharedStateError):
    """Storage could not be opened, locked or accessed"""

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class FileNotReadable(StorageError):
    """Shared file exists but cannot be read"""
    pass


class FileNotWritable(StorageError):
    """Shared file exists but cannot be written"""
    pass


class DirectoryNotWritable(StorageError):
    """Shared file is missing and its directory cannot be written"""
    pass


class OpenFailed(StorageError):
    """Shared file could not be opened"""
    pass


class LockFailed(StorageError):
    """OS advisory lock could not be acquired"""
    pass


class InvalidParameter(SharedStateError, ValueError):
    """lock() called with an invalid timeout or interval"""

    def __init__(self, message, parameter):
        super().__init__(message)
        self.parameter = parameter


class LockTimeoutExceeded(SharedStateError, TimeoutError):
    """Data-level mutex still held after its timeout"""

    def __init__(self, timeout):
        super().__init__(
            f"Can't access shared object, it is still locked after {timeout} second(s)."
        )
        self.timeout = timeout
