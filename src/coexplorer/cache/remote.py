"""
Keyed, memoizing asynchronous fetch cache.

PROBLEM:
    The same per-gene datasets are requested from several places (the
    reference gene's expression feeds every scatter plot, the mutation calls
    of a gene are needed whenever it is highlighted). Issuing a request per
    consumer wastes network round trips, and results that arrive out of
    order must not clobber each other.

SOLUTION:
    One RemoteResult handle per canonical key. A second ``get`` for an equal
    key returns the very same handle, whether its fetch is still in flight or
    long finished, so there is at most one outstanding fetch per key.

    Handles expose a tri-state status (PENDING, COMPLETE, ERROR) backed by an
    Observable, so derived values that read it are invalidated on completion
    without polling. ``remote_data`` combines several handles into a single
    derived snapshot that is only COMPLETE once every input is.

USAGE:
    >>> from concurrent.futures import ThreadPoolExecutor
    >>> cache = MemoizedFetchCache(client.fetch_numeric_data,
    ...                            executor=ThreadPoolExecutor(max_workers=8))
    >>> handle = cache.get({"entrez_gene_id": 7157, "molecular_profile_id": "brca_mrna"})
    >>> handle is cache.get({"molecular_profile_id": "brca_mrna", "entrez_gene_id": 7157})
    True
"""

from __future__ import annotations

import logging
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any, Callable, Dict, Generic, Hashable, List, Mapping, Optional, Sequence, TypeVar, Union,
)

from coexplorer.core.reactive import Computed, Observable, transaction

logger = logging.getLogger(__name__)

__all__ = [
    'RemoteStatus',
    'RemoteSnapshot',
    'RemoteResult',
    'MemoizedFetchCache',
    'canonical_key',
    'remote_data',
]

T = TypeVar('T')
K = TypeVar('K')


class RemoteStatus(Enum):
    PENDING = "pending"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class RemoteSnapshot(Generic[T]):
    """Status of an asynchronous value at one point in time."""
    status: RemoteStatus
    result: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def is_pending(self) -> bool:
        return self.status is RemoteStatus.PENDING

    @property
    def is_complete(self) -> bool:
        return self.status is RemoteStatus.COMPLETE

    @property
    def is_error(self) -> bool:
        return self.status is RemoteStatus.ERROR

    @classmethod
    def pending(cls) -> "RemoteSnapshot[Any]":
        return cls(RemoteStatus.PENDING)

    @classmethod
    def complete(cls, result: T) -> "RemoteSnapshot[T]":
        return cls(RemoteStatus.COMPLETE, result=result)

    @classmethod
    def failed(cls, error: BaseException) -> "RemoteSnapshot[Any]":
        return cls(RemoteStatus.ERROR, error=error)


class RemoteResult(Generic[T]):
    """
    Observable handle on one asynchronous fetch.

    Reading ``status``/``snapshot()`` inside a Computed or Reaction records a
    dependency, so the derivation is invalidated when the fetch settles.
    """

    def __init__(self, future: Future, key: Any = None):
        self.key = key
        self._state: Observable[RemoteSnapshot[T]] = Observable(
            RemoteSnapshot.pending(), name=f"remote:{key!r}"
        )
        self._subscribers: List[Callable[["RemoteResult[T]"], None]] = []
        future.add_done_callback(self._on_done)

    @classmethod
    def resolved(cls, value: T, key: Any = None) -> "RemoteResult[T]":
        """A handle that is already COMPLETE with *value*."""
        future: Future = Future()
        future.set_result(value)
        return cls(future, key=key)

    def _on_done(self, future: Future) -> None:
        try:
            snapshot = RemoteSnapshot.complete(future.result())
        except CancelledError as exc:
            snapshot = RemoteSnapshot.failed(exc)
        except Exception as exc:
            logger.warning(f"Fetch failed for {self.key!r}: {exc}")
            snapshot = RemoteSnapshot.failed(exc)

        with transaction():
            self._state.set(snapshot)
            for callback in list(self._subscribers):
                callback(self)

    def snapshot(self) -> RemoteSnapshot[T]:
        return self._state.get()

    @property
    def status(self) -> RemoteStatus:
        return self.snapshot().status

    @property
    def is_pending(self) -> bool:
        return self.snapshot().is_pending

    @property
    def is_complete(self) -> bool:
        return self.snapshot().is_complete

    @property
    def is_error(self) -> bool:
        return self.snapshot().is_error

    @property
    def result(self) -> T:
        snapshot = self.snapshot()
        if not snapshot.is_complete:
            raise RuntimeError(
                f"Result for {self.key!r} is not available (status: {snapshot.status.value})"
            )
        return snapshot.result

    @property
    def error(self) -> Optional[BaseException]:
        return self.snapshot().error

    def subscribe(self, callback: Callable[["RemoteResult[T]"], None]) -> Callable[[], None]:
        """
        Call *callback* once the fetch settles.

        A handle that has already settled delivers synchronously, before
        ``subscribe`` returns. Returns an unsubscribe function.
        """
        with transaction():
            if self.snapshot().is_pending:
                self._subscribers.append(callback)
            else:
                callback(self)

        def unsubscribe() -> None:
            with transaction():
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def __repr__(self) -> str:
        return f"RemoteResult({self.key!r}, {self._state.get().status.value})"


def canonical_key(key: Any) -> Hashable:
    """
    Structural cache key.

    Mappings compare by content regardless of insertion order; anything else
    must already be hashable (tuples, frozen dataclasses, ints, strings).
    """
    if isinstance(key, Mapping):
        return tuple(sorted((k, canonical_key(v)) for k, v in key.items()))
    if isinstance(key, list):
        return tuple(canonical_key(v) for v in key)
    return key


class MemoizedFetchCache(Generic[K, T]):
    """
    One fetch per distinct key, shared by every caller.

    Args:
        fetch: Blocking function taking the key and returning the records.
        executor: Where fetches run. Defaults to a private thread pool, shut
            down by ``close()`` or on leaving a ``with`` block.
        max_workers: Pool size when no executor is given.
        name: Label used in log messages.
    """

    def __init__(
        self,
        fetch: Callable[[K], T],
        executor: Optional[Executor] = None,
        max_workers: int = 8,
        name: str = "",
    ):
        self._fetch = fetch
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=name or "fetch"
        )
        self.name = name or getattr(fetch, '__name__', 'fetch')
        self._results: Dict[Hashable, RemoteResult[T]] = {}

    def get(self, key: K) -> RemoteResult[T]:
        canonical = canonical_key(key)
        # The reactive lock guards the map so a completion callback arriving
        # from a worker thread cannot interleave with a lookup.
        with transaction():
            existing = self._results.get(canonical)
            if existing is not None:
                logger.debug(f"{self.name}: cache hit for {key!r}")
                return existing
            logger.debug(f"{self.name}: fetching {key!r}")
            future = self._executor.submit(self._fetch, key)
            result: RemoteResult[T] = RemoteResult(future, key=key)
            self._results[canonical] = result
            return result

    def peek(self, key: K) -> Optional[RemoteResult[T]]:
        """Cached handle for *key*, without issuing a fetch."""
        with transaction():
            return self._results.get(canonical_key(key))

    def evict(self, key: K) -> None:
        """Forget *key* so the next ``get`` refetches (e.g. to retry an error)."""
        with transaction():
            self._results.pop(canonical_key(key), None)

    def __contains__(self, key: Any) -> bool:
        return self.peek(key) is not None

    def __len__(self) -> int:
        return len(self._results)

    def close(self, wait: bool = True) -> None:
        """Shut down the worker pool if this cache created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "MemoizedFetchCache[K, T]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


Awaitable = Union[RemoteResult[Any], Computed[RemoteSnapshot[Any]]]


def _snapshot_of(awaitable: Awaitable) -> RemoteSnapshot[Any]:
    if isinstance(awaitable, Computed):
        return awaitable.get()
    return awaitable.snapshot()


def remote_data(
    await_: Callable[[], Sequence[Awaitable]],
    invoke: Callable[[], T],
    name: str = "",
) -> Computed[RemoteSnapshot[T]]:
    """
    Derived asynchronous value.

    ``await_`` lists the inputs for the current state; ``invoke`` computes
    the result once all of them are COMPLETE. Any ERROR input short-circuits
    to ERROR, otherwise any PENDING input yields PENDING. Exceptions raised
    by ``invoke`` become an ERROR snapshot.
    """

    def derive() -> RemoteSnapshot[T]:
        snapshots = [_snapshot_of(a) for a in await_()]
        for snapshot in snapshots:
            if snapshot.is_error:
                return RemoteSnapshot.failed(snapshot.error)
        if any(s.is_pending for s in snapshots):
            return RemoteSnapshot.pending()
        try:
            return RemoteSnapshot.complete(invoke())
        except Exception as exc:
            logger.warning(f"{name or 'remote_data'} failed: {exc}")
            return RemoteSnapshot.failed(exc)

    return Computed(derive, name=name)
