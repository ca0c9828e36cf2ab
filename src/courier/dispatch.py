"""Execution contexts for handler chains.

Two contexts cooperate when a task's response is processed:

- ``HandlerQueue``: a per-task, strictly FIFO, serially executed queue that
  starts *held* and is released exactly once. Entries run on a background
  executor shared by all tasks, but never concurrently with another entry of
  the same queue.
- ``UIContext``: the single designated context UI callbacks are handed to.
  Hand-off is asynchronous; the background queue does not wait for it.
"""

from __future__ import annotations

from collections import deque
from concurrent.futures import Executor, ThreadPoolExecutor
import logging
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_DEFAULT_HANDLER_WORKERS = 4

# ---------------------------------------------------------------------------
# Shared executors (created lazily, process-wide)
# ---------------------------------------------------------------------------

_executor_lock = threading.Lock()
_handler_executor: ThreadPoolExecutor | None = None
_ui_context: ThreadUIContext | None = None


def shared_handler_executor() -> ThreadPoolExecutor:
    """Return the process-wide background executor for handler queues."""
    global _handler_executor
    if _handler_executor is None:
        with _executor_lock:
            # Double-checked locking
            if _handler_executor is None:
                _handler_executor = ThreadPoolExecutor(
                    max_workers=_DEFAULT_HANDLER_WORKERS,
                    thread_name_prefix="courier-handlers",
                )
    return _handler_executor


def default_ui_context() -> ThreadUIContext:
    """Return the process-wide UI context used when none is injected."""
    global _ui_context
    if _ui_context is None:
        with _executor_lock:
            if _ui_context is None:
                _ui_context = ThreadUIContext()
    return _ui_context


# ---------------------------------------------------------------------------
# UI contexts
# ---------------------------------------------------------------------------


@runtime_checkable
class UIContext(Protocol):
    """A single execution context that runs callbacks in submission order."""

    def call_soon(self, callback: Callable[[], None]) -> None:
        """Schedule *callback* without waiting for it to run."""
        ...


class ThreadUIContext:
    """Runs callbacks in FIFO order on one dedicated thread.

    Stands in for a main/UI thread in applications that have none.
    """

    def __init__(self, name: str = "courier-ui") -> None:
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def call_soon(self, callback: Callable[[], None]) -> None:
        self._executor.submit(callback)

    def shutdown(self, *, wait: bool = True) -> None:
        """Stop accepting callbacks; optionally wait for queued ones."""
        self._executor.shutdown(wait=wait)


class AsyncioUIContext:
    """Hands callbacks to an asyncio event loop, from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop

    def call_soon(self, callback: Callable[[], None]) -> None:
        self.loop.call_soon_threadsafe(callback)


class ImmediateUIContext:
    """Runs callbacks inline on the calling thread.

    Useful in tests where deterministic, synchronous delivery matters more
    than thread affinity.
    """

    def call_soon(self, callback: Callable[[], None]) -> None:
        callback()


# ---------------------------------------------------------------------------
# Handler queue
# ---------------------------------------------------------------------------


class HandlerQueue:
    """Serial FIFO queue that is held until ``release()`` is called.

    Entries may be added from any thread at any time. While held, entries
    only accumulate. After release, one drain job at a time runs entries in
    order on the executor; the queue never becomes held again.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor
        self._entries: deque[Callable[[], None]] = deque()
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._held = True
        self._draining = False
        self._added = 0
        self._finished = 0

    @property
    def held(self) -> bool:
        """Whether the queue is still waiting to be released."""
        with self._lock:
            return self._held

    @property
    def pending(self) -> int:
        """Number of entries not yet run."""
        with self._lock:
            return self._added - self._finished

    def add(self, entry: Callable[[], None]) -> None:
        """Append *entry*; it runs after every previously added entry."""
        with self._lock:
            self._entries.append(entry)
            self._added += 1
            start = not self._held and not self._draining
            if start:
                self._draining = True
        if start:
            self._schedule()

    def release(self) -> None:
        """Let queued entries run. Calling it again has no effect."""
        with self._lock:
            if not self._held:
                return
            self._held = False
            start = bool(self._entries) and not self._draining
            if start:
                self._draining = True
            self._changed.notify_all()
        if start:
            self._schedule()

    def join(self, timeout: float | None = None) -> bool:
        """Block until released and every entry added so far has run.

        Returns:
            False if *timeout* elapsed first, True otherwise.
        """
        with self._changed:
            target = self._added
            return self._changed.wait_for(
                lambda: not self._held and self._finished >= target, timeout
            )

    def _schedule(self) -> None:
        executor = self._executor or shared_handler_executor()
        try:
            executor.submit(self._drain)
        except RuntimeError:
            # Executor shut down; leave the queue restartable.
            with self._lock:
                self._draining = False
            raise

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._entries:
                    self._draining = False
                    self._changed.notify_all()
                    return
                entry = self._entries.popleft()
            try:
                entry()
            except Exception:
                logger.exception("Handler queue entry raised")
            finally:
                with self._lock:
                    self._finished += 1
                    self._changed.notify_all()
