"""
Bounded, TTL-aware in-memory key/value store.

Reads share the lock, writes take it exclusively. The lock is only held
for the map access itself.
"""

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from stackctl.constants import DEFAULT_LEDGER_MAX_ENTRIES
from stackctl.exceptions import LedgerFullError


class ReadWriteLock:
    """
    Lock allowing many concurrent readers or a single writer.

    Writers are given preference once waiting so a steady stream of
    readers cannot starve them.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass
class _Entry:
    value: str
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at


class Ledger:
    """
    Bounded key/value store with optional per-entry expiry.

    A new key is rejected once the store holds max_entries keys; updating a
    key that is already present always succeeds. An expired entry reads as
    a miss but still occupies capacity until purged or overwritten.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_LEDGER_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the ledger.

        Args:
            max_entries: Maximum number of distinct keys. Zero or less disables the limit.
            clock: Monotonic time source in seconds.
        """
        self._data: dict[str, _Entry] = {}
        self._lock = ReadWriteLock()
        self._max_entries = max_entries
        self._clock = clock

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def set(self, key: str, value: str, ttl_seconds: float = 0) -> None:
        """
        Store a value.

        Args:
            key: Entry key.
            value: Serialized value.
            ttl_seconds: Time to live. Zero or less means the entry never expires.

        Raises:
            LedgerFullError: If the ledger is full and the key is new.
        """
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None

        with self._lock.write():
            if (
                self._max_entries > 0
                and len(self._data) >= self._max_entries
                and key not in self._data
            ):
                raise LedgerFullError(
                    f"ledger full ({self._max_entries} entries), cannot store {key!r}"
                )
            self._data[key] = _Entry(value=value, expires_at=expires_at)

    def get(self, key: str) -> tuple[str | None, bool]:
        """
        Read a value.

        Returns:
            Tuple of (value, found). Expired entries return (None, False).
        """
        now = self._clock()
        with self._lock.read():
            entry = self._data.get(key)

        if entry is None or entry.is_expired(now):
            return None, False
        return entry.value, True

    def delete(self, key: str) -> None:
        """Remove a key. Deleting a missing key is a no-op."""
        with self._lock.write():
            self._data.pop(key, None)

    def purge_expired(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock.write():
            expired = [k for k, e in self._data.items() if e.is_expired(now)]
            for key in expired:
                del self._data[key]
        return len(expired)

    def keys(self) -> list[str]:
        """List keys of live (unexpired) entries."""
        now = self._clock()
        with self._lock.read():
            return [k for k, e in self._data.items() if not e.is_expired(now)]

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        return self.get(key)[1]
