"""
Minimal dependency-tracking layer for derived state.

Every derived value is a pure function of the observables it reads. Reads
are recorded while a derivation runs; the derivation keeps a snapshot of the
version stamps it saw and recomputes lazily, on the next read, once any of
those stamps moved. Nothing is recomputed eagerly except reactions.

Building blocks:
    Observable  - mutable cell with a version stamp
    Computed    - lazily cached derivation, itself readable as a dependency
    Reaction    - side-effecting derivation re-run after each settled change
    transaction - batch of writes; reactions run once the outermost batch ends

Readers never observe a half-updated derived value: writes inside a
transaction only bump version stamps, and reactions (the only eager
consumers) run after the batch closes.

All state lives behind one re-entrant lock, so completion callbacks arriving
from fetch worker threads are serialized with the caller's own writes.

Examples:
    >>> a = Observable(1)
    >>> doubled = Computed(lambda: a.get() * 2)
    >>> seen = []
    >>> reaction = autorun(lambda: seen.append(doubled.get()))
    >>> with transaction():
    ...     a.set(2)
    ...     a.set(3)
    >>> seen
    [2, 6]
    >>> reaction.dispose()
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

__all__ = [
    'Observable',
    'Computed',
    'Reaction',
    'autorun',
    'transaction',
    'untracked',
    'MAX_REACTION_PASSES',
]

T = TypeVar('T')

MAX_REACTION_PASSES = 100

_lock = threading.RLock()
_local = threading.local()
_reactions: "Dict[int, Reaction]" = {}
_batch_depth = 0
_running_reactions = False


def _tracking_stack() -> List[Optional[Dict[Any, int]]]:
    stack = getattr(_local, 'stack', None)
    if stack is None:
        stack = _local.stack = []
    return stack


def _report_read(source: Any) -> None:
    stack = _tracking_stack()
    if stack and stack[-1] is not None:
        frame = stack[-1]
        if source not in frame:
            frame[source] = source.version


@contextmanager
def _tracking(frame: Optional[Dict[Any, int]]) -> Iterator[None]:
    stack = _tracking_stack()
    stack.append(frame)
    try:
        yield
    finally:
        stack.pop()


@contextmanager
def untracked() -> Iterator[None]:
    """Read observables without recording them as dependencies."""
    with _tracking(None):
        yield


@contextmanager
def transaction() -> Iterator[None]:
    """Group writes so reactions run once, after the outermost block exits."""
    global _batch_depth
    with _lock:
        _batch_depth += 1
        try:
            yield
        finally:
            _batch_depth -= 1
        if _batch_depth == 0:
            _run_reactions()


def _run_reactions() -> None:
    global _running_reactions
    if _running_reactions:
        return
    _running_reactions = True
    try:
        for _ in range(MAX_REACTION_PASSES):
            stale = [r for r in list(_reactions.values()) if r.is_stale()]
            if not stale:
                return
            for reaction in stale:
                reaction.run()
        stale = [r for r in list(_reactions.values()) if r.is_stale()]
        if not stale:
            return
        # Stop the offenders so later transactions are not poisoned
        for reaction in stale:
            reaction.dispose()
        names = ", ".join(r.name for r in stale)
        logger.warning(f"Disposed non-converging reactions: {names}")
        raise RuntimeError(
            f"Reactions did not converge after {MAX_REACTION_PASSES} passes ({names}); "
            f"a reaction is probably writing to a value it reads"
        )
    finally:
        _running_reactions = False


class Observable(Generic[T]):
    """A mutable value whose readers are tracked."""

    def __init__(self, value: T = None, name: str = ""):
        self._value = value
        self.version = 0
        self.name = name

    def get(self) -> T:
        with _lock:
            _report_read(self)
            return self._value

    def set(self, value: T) -> None:
        with transaction():
            if value is self._value:
                return
            self._value = value
            self.version += 1

    def __repr__(self) -> str:
        return f"Observable({self.name or self._value!r})"


class Computed(Generic[T]):
    """
    A cached derivation recomputed on read when its inputs changed.

    The version stamp only moves when a recomputation produces a different
    object, so downstream derivations that depend on an unchanged result are
    not invalidated.
    """

    def __init__(self, fn: Callable[[], T], name: str = ""):
        self._fn = fn
        self.name = name or getattr(fn, '__name__', 'computed')
        self._value: Optional[T] = None
        self._deps: Dict[Any, int] = {}
        self._fresh = False
        self._version = 0

    def _is_stale(self) -> bool:
        if not self._fresh:
            return True
        return any(dep.version != seen for dep, seen in self._deps.items())

    def _refresh(self) -> None:
        # Reactions triggered by writes during the derivation wait until it finished
        with transaction():
            if not self._is_stale():
                return
            frame: Dict[Any, int] = {}
            with _tracking(frame):
                value = self._fn()
            self._deps = frame
            self._fresh = True
            if value is not self._value or self._version == 0:
                self._value = value
                self._version += 1
                logger.debug(f"Recomputed {self.name} (version {self._version})")

    @property
    def version(self) -> int:
        with _lock:
            self._refresh()
            return self._version

    def get(self) -> T:
        with _lock:
            self._refresh()
            _report_read(self)
            return self._value

    def invalidate(self) -> None:
        with _lock:
            self._fresh = False

    def __repr__(self) -> str:
        return f"Computed({self.name})"


class Reaction:
    """
    Side effect re-run whenever an observable it read has changed.

    Registered reactions are held until ``dispose()``; a disposed reaction
    never runs again and releases its dependencies.
    """

    def __init__(self, effect: Callable[[], None], name: str = ""):
        self._effect = effect
        self.name = name or getattr(effect, '__name__', 'reaction')
        self._deps: Dict[Any, int] = {}
        self._ran = False
        self.disposed = False

    def is_stale(self) -> bool:
        if self.disposed:
            return False
        if not self._ran:
            return True
        return any(dep.version != seen for dep, seen in self._deps.items())

    def run(self) -> None:
        if self.disposed:
            return
        frame: Dict[Any, int] = {}
        with transaction():
            with _tracking(frame):
                try:
                    self._effect()
                except Exception:
                    logger.exception(f"Reaction {self.name} failed")
            # Versions are captured at read time: a value the effect writes
            # after reading it leaves the reaction stale for one more pass.
            self._deps = frame
            self._ran = True

    def dispose(self) -> None:
        with _lock:
            self.disposed = True
            self._deps = {}
            _reactions.pop(id(self), None)

    def __call__(self) -> None:
        self.dispose()


def autorun(effect: Callable[[], None], name: str = "") -> Reaction:
    """Run *effect* now and again after every change to what it read.

    Returns the Reaction; call ``dispose()`` on it (or call it) to stop.
    """
    reaction = Reaction(effect, name=name)
    with transaction():
        _reactions[id(reaction)] = reaction
    return reaction
