import threading
from contextlib import ExitStack, contextmanager
from typing import Dict, Iterable, Iterator, List


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLockRegistry:
    """One mutual-exclusion lock per key (bus id, reservation id, ...).

    Locks for distinct keys are independent. A key's lock exists only while
    some caller holds or waits on it, so the registry does not grow with the
    number of keys ever seen. ``hold_many`` acquires several keys in sorted
    order so two callers locking the same set cannot deadlock.
    """

    def __init__(self):
        self._entries: Dict[str, _Entry] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def active_keys(self) -> List[str]:
        with self._guard:
            return sorted(self._entries)

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.holders += 1
            return entry

    def _checkin(self, key: str, entry: _Entry):
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        entry = self._checkout(key)
        try:
            with entry.lock:
                yield
        finally:
            self._checkin(key, entry)

    @contextmanager
    def hold_many(self, keys: Iterable[str]) -> Iterator[None]:
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self.hold(key))
            yield


class ReservationLocks:
    """Lock scopes used by the lifecycle: per bus and per reservation"""

    def __init__(self):
        self.buses = KeyedLockRegistry()
        self.reservations = KeyedLockRegistry()
