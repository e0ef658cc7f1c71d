"""
sharedstate: key/value state shared by unrelated processes through a plain file.

OS advisory locks keep every single operation atomic, and a cooperative
mutex (lock()/unlock()) lets a process group several operations together.
"""

from .entity import Entity
from .exceptions import (
    DirectoryNotWritable,
    FileNotReadable,
    FileNotWritable,
    InvalidParameter,
    LockFailed,
    LockTimeoutExceeded,
    OpenFailed,
    SharedStateError,
    StorageError,
)
from .storage import FileStorage, Storage
from .store import SharedStore

__version__ = "0.1.0"
__all__ = [
    "SharedStore",
    "Storage",
    "FileStorage",
    "Entity",
    "SharedStateError",
    "StorageError",
    "FileNotReadable",
    "FileNotWritable",
    "DirectoryNotWritable",
    "OpenFailed",
    "LockFailed",
    "InvalidParameter",
    "LockTimeoutExceeded",
]
