"""In-process read-through cache with single-flight loads.

Each cache owns a loader. On a miss or an expired entry exactly one caller
runs the loader for the key; concurrent callers for the same key wait for
that call and share its value or its error. Failed loads are never stored.

Note: every worker process has its own instances. Invalidation is local
to the process that performed the write.
"""
import threading
import time
from typing import Callable, Generic, Hashable, Optional, TypeVar

from isuumo.errors import CacheLoadFailure, InvalidInput, NotFound
from isuumo.logging_config import get_logger


logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

# Key for caches that hold a single whole-collection value
UNIT = ()

# Domain errors pass through the cache unchanged
PASSTHROUGH_ERRORS = (NotFound, InvalidInput)


class _Entry(Generic[V]):
    __slots__ = ("value", "fetched_at")

    def __init__(self, value: V, fetched_at: float):
        self.value = value
        self.fetched_at = fetched_at


class _Call(Generic[V]):
    """A load in flight. Waiters block on ``done`` until the leader finishes."""

    __slots__ = ("done", "value", "error", "stale")

    def __init__(self):
        self.done = threading.Event()
        self.value: Optional[V] = None
        self.error: Optional[BaseException] = None
        # Set by forget/purge; the result still answers waiters but is not stored
        self.stale = False

    def wait(self, timeout: Optional[float]) -> V:
        if not self.done.wait(timeout):
            raise CacheLoadFailure(f"timed out after {timeout}s waiting for cache load")
        if self.error is not None:
            raise self.error
        return self.value


class SingleFlightCache(Generic[K, V]):
    """Key to value cache with a fixed TTL and deduplicated loads."""

    def __init__(
        self,
        loader: Callable[[K], V],
        ttl: float,
        name: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._loader = loader
        self._ttl = ttl
        self._clock = clock
        self.name = name or getattr(loader, "__name__", "cache")
        self._lock = threading.Lock()
        self._entries: dict[K, _Entry[V]] = {}
        self._calls: dict[K, _Call[V]] = {}

    def __len__(self) -> int:
        """Number of live entries; expired ones are not counted."""
        with self._lock:
            return sum(1 for entry in self._entries.values() if self._is_live(entry))

    def __contains__(self, key: K) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._is_live(entry)

    def _is_live(self, entry: _Entry[V]) -> bool:
        return self._clock() - entry.fetched_at < self._ttl

    def get(self, key: K, timeout: Optional[float] = None) -> V:
        """
        Return the cached value for ``key``, loading it if missing or expired.

        ``timeout`` bounds how long a waiting caller blocks on someone else's
        load; the load itself keeps running and is unaffected.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_live(entry):
                return entry.value
            call = self._calls.get(key)
            leader = call is None
            if leader:
                call = _Call()
                self._calls[key] = call

        if not leader:
            return call.wait(timeout)
        return self._load(key, call)

    def _load(self, key: K, call: _Call[V]) -> V:
        logger.debug("%s: loading %r", self.name, key)
        try:
            value = self._loader(key)
        except BaseException as exc:
            if isinstance(exc, PASSTHROUGH_ERRORS) or not isinstance(exc, Exception):
                error = exc
            else:
                error = CacheLoadFailure(f"{self.name}: failed to load {key!r}")
                error.__cause__ = exc
            with self._lock:
                if self._calls.get(key) is call:
                    del self._calls[key]
            call.error = error
            call.done.set()
            if error is exc:
                raise
            raise error from exc

        fetched_at = self._clock()
        with self._lock:
            if self._calls.get(key) is call:
                del self._calls[key]
            if not call.stale:
                self._entries[key] = _Entry(value, fetched_at)
        call.value = value
        call.done.set()
        return value

    def forget(self, key: K) -> None:
        """Evict one key. A get started after this returns loads afresh."""
        with self._lock:
            self._entries.pop(key, None)
            call = self._calls.pop(key, None)
            if call is not None:
                call.stale = True
        logger.debug("%s: forgot %r", self.name, key)

    def purge(self) -> None:
        """Evict every key."""
        with self._lock:
            self._entries.clear()
            for call in self._calls.values():
                call.stale = True
            self._calls.clear()
        logger.debug("%s: purged", self.name)
