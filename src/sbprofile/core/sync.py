"""
Locks handed to the sandboxed-call runtime.

Both locks expose the same scoped interface::

    with lock.shared():
        ...  # many holders at once (SharedLock only)
    with lock.exclusive():
        ...  # excludes every other holder

Release happens on every exit path, including exceptions.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class SharedLock:
    """
    Cooperative shared/exclusive lock.

    Any number of shared holders, or exactly one exclusive holder.  Waiting
    writers block new readers so a steady stream of readers cannot starve
    a writer.  Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_shared(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_shared(self) -> None:
        with self._cond:
            if self._readers == 0:
                raise RuntimeError("release_shared() without a shared holder")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_exclusive(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
                if not self._waiting_writers:
                    self._cond.notify_all()
            self._writer = True

    def release_exclusive(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_exclusive() without an exclusive holder")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def shared(self) -> Iterator[None]:
        self.acquire_shared()
        try:
            yield
        finally:
            self.release_shared()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        self.acquire_exclusive()
        try:
            yield
        finally:
            self.release_exclusive()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def locked_exclusive(self) -> bool:
        return self._writer


class SerialLock:
    """Single mutex behind the shared/exclusive interface; shared scopes serialise too."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._lock:
            yield

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._lock:
            yield

    def locked(self) -> bool:
        return self._lock.locked()
