"""Storages persist exactly one Entity and guard it with OS-level locks.

A storage is opened either as a reader (shared lock, many at once) or as a
writer (exclusive lock, one at a time), and is closed after every
operation. The data-level mutex kept inside the Entity is the client's
business, storages never look at it.

FileStorage keeps the Entity in a regular file. It works best on an
in-memory filesystem such as /dev/shm or a tmpfs mount.
"""

import logging
import os
from typing import Optional, Protocol, runtime_checkable

import portalocker

from .config import get_config
from .entity import Entity
from .exceptions import (
    DirectoryNotWritable,
    FileNotReadable,
    FileNotWritable,
    LockFailed,
    OpenFailed,
)

log = logging.getLogger(__name__)

ACCESS_READ = "r"
ACCESS_WRITE = "w"


@runtime_checkable
class Storage(Protocol):
    """Anything several processes can open to share one Entity."""

    @property
    def name(self) -> str: ...

    def open_reader(self) -> None:
        """Shared access: blocks while a writer holds the storage."""

    def open_writer(self) -> None:
        """Exclusive access: blocks while anybody else holds the storage."""

    def get_object(self) -> Entity:
        """Load the stored Entity, or a default one when nothing valid is stored."""

    def set_object(self, entity: Entity) -> None:
        """Replace the stored Entity."""

    def close(self) -> None:
        """Release the lock and the underlying resource."""


class FileStorage:
    """Stores the Entity as JSON inside a single file."""

    def __init__(self, path, config=None):
        cfg = config or get_config()
        self.path = os.fspath(path)
        self.chunk_size = cfg["READ_CHUNK_SIZE"]
        self._fh = None
        self.access: Optional[str] = None

    @property
    def name(self) -> str:
        return "file"

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def _reuse(self, access) -> bool:
        # Already open in the wanted mode, or open in the other one and needs reopening.
        if self._fh is None:
            return False
        if self.access == access:
            return True
        self.close()
        return False

    def open_reader(self) -> None:
        if self._reuse(ACCESS_READ):
            return
        if not os.path.isfile(self.path):
            # Nothing shared yet; readers must not create the file.
            return
        if not os.access(self.path, os.R_OK):
            raise FileNotReadable(f"File '{self.path}' is not readable.", self.path)
        self._acquire(portalocker.LOCK_SH, ACCESS_READ, "reading", create=False)

    def open_writer(self) -> None:
        if self._reuse(ACCESS_WRITE):
            return
        if not os.path.isfile(self.path):
            directory = os.path.dirname(os.path.abspath(self.path))
            if not os.path.isdir(directory) or not os.access(directory, os.W_OK):
                raise DirectoryNotWritable(
                    f"Directory '{directory}' does not exist or is not writable.", directory
                )
        elif not os.access(self.path, os.W_OK):
            raise FileNotWritable(f"File '{self.path}' is not writable.", self.path)
        self._acquire(portalocker.LOCK_EX, ACCESS_WRITE, "writing", create=True)

    def _acquire(self, flags, access, purpose, create):
        # Read+write whatever the access, never truncate on open. Only writers create.
        try:
            fd = os.open(self.path, os.O_RDWR | (os.O_CREAT if create else 0), 0o666)
            fh = os.fdopen(fd, "r+b")
        except FileNotFoundError as e:
            if create:
                raise OpenFailed(f"Can't open '{self.path}' file.", self.path) from e
            # Removed since open_reader checked for it: same as never shared.
            return
        except OSError as e:
            raise OpenFailed(f"Can't open '{self.path}' file.", self.path) from e
        try:
            portalocker.lock(fh, flags)
        except (portalocker.LockException, OSError) as e:
            fh.close()
            raise LockFailed(f"Can't lock '{self.path}' file for {purpose}.", self.path) from e
        self._fh = fh
        self.access = access
        log.debug("Locked %s for %s (pid %d)", self.path, purpose, os.getpid())

    def get_object(self) -> Entity:
        close = False
        if self._fh is None:
            self.open_reader()
            close = True
        if self._fh is None:
            return Entity()
        try:
            self._fh.seek(0)
            chunks = []
            while True:
                chunk = self._fh.read(self.chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
        finally:
            if close:
                self.close()
        return Entity.from_bytes(b"".join(chunks))

    def set_object(self, entity: Entity) -> None:
        close = False
        if self._fh is None:
            self.open_writer()
            close = True
        try:
            # Encode before truncating so a bad value leaves the stored state untouched.
            payload = entity.to_bytes()
            self._fh.seek(0)
            self._fh.truncate(0)
            self._fh.write(payload)
            self._fh.flush()
        finally:
            if close:
                self.close()

    def close(self) -> None:
        fh, self._fh = self._fh, None
        self.access = None
        if fh is None:
            return
        try:
            portalocker.unlock(fh)
        finally:
            fh.close()
        log.debug("Released %s (pid %d)", self.path, os.getpid())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __del__(self):
        if getattr(self, "_fh", None) is not None:
            self.close()

    def __repr__(self):
        return f"FileStorage({self.path!r})"
