"""Key/value state shared by unrelated processes through a storage.

Every operation opens the storage, reads a fresh Entity, applies the
change, writes the whole Entity back and closes again. Nothing is cached
between operations.

Two separate locks are involved:
  - the OS advisory lock taken by the storage for one open/close cycle;
  - the data-level mutex (Entity.locked) taken by lock() and released by
    unlock(), which spans as many operations as the holder needs.

While another SharedStore holds the data-level mutex, operations poll the
storage every Entity.interval microseconds and give up with
LockTimeoutExceeded once Entity.timeout seconds are spent (0 = never).

Limitations: values must be JSON-serializable, a stored None reads as
absent, and a process dying between lock() and unlock() leaves the mutex
held until waiters time out (forever if its timeout is 0).
"""

import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Dict, Mapping, Optional

from .config import get_config
from .entity import Entity, valid_interval, valid_timeout
from .exceptions import InvalidParameter, LockTimeoutExceeded
from .storage import FileStorage, Storage

log = logging.getLogger(__name__)


def check_name(name):
    # JSON object keys are strings; any other key would not read back.
    if not isinstance(name, str):
        raise TypeError(f"property names must be str, got {type(name).__name__}")


class SharedStore:
    """
    Property bag synchronized on a storage.

      store = SharedStore("/dev/shm/job.sync")
      store["progress"] = 42          # same as store.set("progress", 42)
      with store.mutex(timeout=5):
          store.set("count", store.get("count", 0) + 1)
    """

    def __init__(self, storage, config=None):
        self.config = config or get_config()
        if isinstance(storage, (str, os.PathLike)):
            storage = FileStorage(storage, self.config)
        self.storage: Storage = storage
        # True once this very instance called lock(), not shared with other instances.
        self._holding = False

    @property
    def locked(self) -> bool:
        """Whether this instance holds the data-level mutex."""
        return self._holding

    def get(self, name: str, default: Any = None) -> Any:
        """Return the value of a property, or default when it is not set."""
        check_name(name)
        try:
            self.storage.open_reader()
            entity = self._get_object_safely(self.storage.open_reader)
        finally:
            self.storage.close()
        return entity.data.get(name, default)

    def set(self, name: str, value: Any) -> Any:
        """Set a property and return the value written."""
        check_name(name)
        try:
            self.storage.open_writer()
            entity = self._get_object_safely(self.storage.open_writer)
            entity.data[name] = value
            self.storage.set_object(entity)
        finally:
            self.storage.close()
        return value

    def remove(self, name: str) -> None:
        """Remove a property; removing an absent one is not an error."""
        check_name(name)
        try:
            self.storage.open_writer()
            entity = self._get_object_safely(self.storage.open_writer)
            entity.data.pop(name, None)
            self.storage.set_object(entity)
        finally:
            self.storage.close()

    def has(self, name: str) -> bool:
        """True if the property is set and not None."""
        return self.get(name) is not None

    def get_data(self) -> Dict[str, Any]:
        """Return all properties at once, as a new dict."""
        try:
            self.storage.open_reader()
            entity = self._get_object_safely(self.storage.open_reader)
        finally:
            self.storage.close()
        return dict(entity.data)

    def set_data(self, data: Mapping[str, Any]) -> None:
        """Replace all properties at once."""
        if not isinstance(data, Mapping):
            raise TypeError(f"set_data() expects a mapping, got {type(data).__name__}")
        for name in data:
            check_name(name)
        try:
            self.storage.open_writer()
            entity = self._get_object_safely(self.storage.open_writer)
            entity.data = dict(data)
            self.storage.set_object(entity)
        finally:
            self.storage.close()

    def lock(self, timeout=None, interval=None) -> None:
        """
        Take the data-level mutex.

        timeout: seconds other processes wait for it before failing, 0 = forever.
        interval: microseconds between two checks done by waiting processes.
        """
        if timeout is None:
            timeout = self.config["LOCK_TIMEOUT"]
        if interval is None:
            interval = self.config["LOCK_INTERVAL"]
        if not valid_timeout(timeout):
            raise InvalidParameter(
                "Lock timeout should be an integer greater or equals to 0.", "timeout"
            )
        if not valid_interval(interval):
            raise InvalidParameter(
                "Lock check interval should be an integer greater or equals to 5000.", "interval"
            )

        try:
            self.storage.open_writer()
            entity = self._get_object_safely(self.storage.open_writer)
            entity.locked = True
            entity.timeout = timeout
            entity.interval = interval
            self.storage.set_object(entity)
            self._holding = True
        finally:
            self.storage.close()
        log.debug("Mutex taken on %r (timeout=%ss, interval=%sus)", self.storage, timeout, interval)

    def unlock(self) -> None:
        """Release the data-level mutex, whoever holds it."""
        try:
            self.storage.open_writer()
            entity = self.storage.get_object()
            entity.locked = False
            self.storage.set_object(entity)
            self._holding = False
        finally:
            self.storage.close()
        log.debug("Mutex released on %r", self.storage)

    @contextmanager
    def mutex(self, timeout=None, interval=None):
        """Hold the data-level mutex for the duration of a with block."""
        self.lock(timeout, interval)
        try:
            yield self
        finally:
            self.unlock()

    def _get_object_safely(self, reopen) -> Entity:
        """
        Return the stored Entity once the data-level mutex is free.

        The storage must already be open. While another client holds the
        mutex, the storage is closed, we sleep for the stored interval and
        reopen with `reopen`. The stored interval and timeout are re-read
        on every pass since the holder may change them.
        """
        entity = self.storage.get_object()
        if self._holding:
            return entity

        elapsed = 0
        while entity.locked:
            interval = entity.interval
            self.storage.close()
            log.debug("Shared object on %r is locked, retrying in %sus", self.storage, interval)
            time.sleep(interval / 1_000_000)
            reopen()
            entity = self.storage.get_object()
            elapsed += interval
            if not entity.locked:
                break
            if entity.timeout > 0 and elapsed >= entity.timeout * 1_000_000:
                raise LockTimeoutExceeded(entity.timeout)
        return entity

    def __getitem__(self, name):
        return self.get(name)

    def __setitem__(self, name, value):
        self.set(name, value)

    def __delitem__(self, name):
        self.remove(name)

    def __contains__(self, name):
        return self.has(name)

    def __repr__(self):
        return f"SharedStore({self.storage!r})"
