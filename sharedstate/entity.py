"""The state unit persisted in a shared file.

An Entity carries the shared payload plus the metadata of the data-level
mutex. It does no I/O; storages turn it into bytes and back.

Wire format (UTF-8 JSON):
    {"data": {...}, "locked": false, "timeout": 0, "interval": 50000}

Anything read back that does not match this shape exactly is thrown away
and replaced by a fresh default Entity.
"""

import json
import math
import logging
from numbers import Real
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 0
DEFAULT_INTERVAL = 50000
MIN_INTERVAL = 5000

FIELDS = ("data", "locked", "timeout", "interval")


def is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def valid_timeout(value) -> bool:
    return is_number(value) and value >= 0


def valid_interval(value) -> bool:
    return is_number(value) and value >= MIN_INTERVAL


class Entity:
    """
    Shared payload and mutex metadata.
      data     - property name -> JSON value
      locked   - True while some client holds the data-level mutex
      timeout  - seconds a waiter may wait for the mutex, 0 = forever
      interval - microseconds between two checks of the mutex
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None, locked: bool = False,
                 timeout=DEFAULT_TIMEOUT, interval=DEFAULT_INTERVAL):
        self.data = {} if data is None else data
        self.locked = locked
        self.timeout = timeout
        self.interval = interval

    def reset(self) -> "Entity":
        self.data = {}
        self.locked = False
        self.timeout = DEFAULT_TIMEOUT
        self.interval = DEFAULT_INTERVAL
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data,
            "locked": self.locked,
            "timeout": self.timeout,
            "interval": self.interval,
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")

    @staticmethod
    def validate(raw) -> bool:
        """Check every field of a decoded envelope."""
        if not isinstance(raw, dict) or set(raw) != set(FIELDS):
            return False
        if not isinstance(raw["data"], dict):
            return False
        if not isinstance(raw["locked"], bool):
            return False
        if not valid_timeout(raw["timeout"]):
            return False
        if not valid_interval(raw["interval"]):
            return False
        return True

    @classmethod
    def from_dict(cls, raw) -> "Entity":
        if not cls.validate(raw):
            log.warning("Discarding invalid shared state, resetting to defaults")
            return cls()
        return cls(raw["data"], raw["locked"], raw["timeout"], raw["interval"])

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Entity":
        """Decode persisted bytes; empty or corrupt content gives a default Entity."""
        if not raw:
            return cls()
        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            log.warning("Shared state is not valid JSON, resetting to defaults")
            return cls()
        return cls.from_dict(decoded)

    def __eq__(self, other):
        if not isinstance(other, Entity):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"Entity(data={self.data!r}, locked={self.locked!r}, "
                f"timeout={self.timeout!r}, interval={self.interval!r})")
