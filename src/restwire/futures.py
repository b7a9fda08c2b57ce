#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Single-assignment asynchronous results.

A :py:class:`Promise` is the write side and a :py:class:`Future` the read side of the
same cell. The cell starts out pending and moves exactly once to either resolved or
failed. Awaiting a future parks only the awaiting coroutine, so any number of
requests can be in flight on one event loop. Promises may be completed from any
thread, which lets callback-driven transports hand results back to asyncio code.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine, Generator
from enum import Enum
from threading import Lock
from typing import Any, cast

from .exceptions import FuturePendingError, PromiseAlreadyResolvedError

_LOGGER = logging.getLogger(__name__)

# Tasks started by future_from_coroutine. The event loop only keeps weak references
# to tasks, so they're held here until they finish.
_BACKGROUND_TASKS: set[asyncio.Task[Any]] = set()


class FutureState(Enum):
    """The states of a future's underlying cell."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class Future[T]:
    """The read side of a single-assignment asynchronous result."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._state = FutureState.PENDING
        self._value: T | None = None
        self._error: BaseException | None = None
        self._callbacks: list[Callable[["Future[T]"], None]] = []
        self._waiters: list[asyncio.Future[None]] = []

    @classmethod
    def resolved(cls, value: T) -> "Future[T]":
        """Create a future that is already resolved with ``value``."""
        future = cls()
        future._transition(FutureState.RESOLVED, value=value)
        return future

    @classmethod
    def failed(cls, error: BaseException) -> "Future[T]":
        """Create a future that has already failed with ``error``."""
        future = cls()
        future._transition(FutureState.FAILED, error=error)
        return future

    @property
    def state(self) -> FutureState:
        return self._state

    def done(self) -> bool:
        """Whether the future has reached a terminal state."""
        return self._state is not FutureState.PENDING

    def result(self) -> T:
        """Return the resolved value, or raise the error the future failed with.

        :raises FuturePendingError: If the future is still pending.
        """
        match self._state:
            case FutureState.PENDING:
                raise FuturePendingError("Future is still pending.")
            case FutureState.FAILED:
                raise cast(BaseException, self._error)
            case FutureState.RESOLVED:
                return cast(T, self._value)

    def exception(self) -> BaseException | None:
        """Return the error the future failed with, if any.

        :raises FuturePendingError: If the future is still pending.
        """
        if self._state is FutureState.PENDING:
            raise FuturePendingError("Future is still pending.")
        return self._error

    def add_done_callback(self, fn: Callable[["Future[T]"], None]) -> None:
        """Call ``fn`` with this future once it reaches a terminal state.

        If the future is already done, ``fn`` is called immediately. Otherwise it's
        called on whichever thread completes the promise.
        """
        with self._lock:
            if self._state is FutureState.PENDING:
                self._callbacks.append(fn)
                return
        self._run_callback(fn)

    async def wait(self) -> T:
        """Suspend the calling coroutine until the future is done, then return its
        value or raise its error."""
        with self._lock:
            if self._state is FutureState.PENDING:
                waiter: asyncio.Future[None] | None = (
                    asyncio.get_running_loop().create_future()
                )
                self._waiters.append(waiter)
            else:
                waiter = None

        if waiter is not None:
            try:
                await waiter
            finally:
                # A cancelled or timed-out awaiter must not stay registered.
                with self._lock:
                    if waiter in self._waiters:
                        self._waiters.remove(waiter)
        return self.result()

    def __await__(self) -> Generator[Any, None, T]:
        return self.wait().__await__()

    def _transition(
        self,
        state: FutureState,
        *,
        value: T | None = None,
        error: BaseException | None = None,
    ) -> None:
        with self._lock:
            if self._state is not FutureState.PENDING:
                raise PromiseAlreadyResolvedError(
                    f"Future was already {self._state.value}, can't mark it "
                    f"{state.value}."
                )
            self._state = state
            self._value = value
            self._error = error
            callbacks, self._callbacks = self._callbacks, []
            waiters, self._waiters = self._waiters, []

        for waiter in waiters:
            loop = waiter.get_loop()
            if not loop.is_closed():
                loop.call_soon_threadsafe(_wake, waiter)
        for callback in callbacks:
            self._run_callback(callback)

    def _run_callback(self, fn: Callable[["Future[T]"], None]) -> None:
        try:
            fn(self)
        except Exception:
            _LOGGER.exception("Exception in done callback %r for %r", fn, self)

    def __repr__(self) -> str:
        match self._state:
            case FutureState.RESOLVED:
                return f"Future(resolved={self._value!r})"
            case FutureState.FAILED:
                return f"Future(failed={self._error!r})"
            case _:
                return "Future(pending)"


class Promise[T]:
    """The write side of a single-assignment asynchronous result."""

    def __init__(self, future: Future[T] | None = None) -> None:
        self._future: Future[T] = future if future is not None else Future()

    @property
    def future(self) -> Future[T]:
        """The future that observes this promise."""
        return self._future

    def resolve(self, value: T) -> None:
        """Resolve the linked future with ``value``.

        :raises PromiseAlreadyResolvedError: If the promise was already resolved or
            failed. The value observers already saw is left untouched.
        """
        self._future._transition(FutureState.RESOLVED, value=value)  # pyright: ignore[reportPrivateUsage]

    def fail(self, error: BaseException) -> None:
        """Fail the linked future with ``error``.

        :raises PromiseAlreadyResolvedError: If the promise was already resolved or
            failed.
        """
        self._future._transition(FutureState.FAILED, error=error)  # pyright: ignore[reportPrivateUsage]

    def done(self) -> bool:
        return self._future.done()


def new_promise[T]() -> tuple[Future[T], Promise[T]]:
    """Create a linked future and promise pair."""
    future: Future[T] = Future()
    return future, Promise(future)


def future_from_coroutine[T](coro: Coroutine[Any, Any, T]) -> Future[T]:
    """Run a coroutine as a task on the running event loop and expose its outcome as a
    :py:class:`Future`.

    :param coro: The coroutine to schedule.
    :raises RuntimeError: If there is no running event loop.
    """
    future: Future[T] = Future()
    promise = Promise(future)
    try:
        task = asyncio.get_running_loop().create_task(coro)
    except RuntimeError:
        coro.close()
        raise
    _BACKGROUND_TASKS.add(task)

    def _settle(finished: asyncio.Task[T]) -> None:
        _BACKGROUND_TASKS.discard(finished)
        if finished.cancelled():
            promise.fail(asyncio.CancelledError())
        elif (error := finished.exception()) is not None:
            promise.fail(error)
        else:
            promise.resolve(finished.result())

    task.add_done_callback(_settle)
    return future


def _wake(waiter: asyncio.Future[None]) -> None:
    if not waiter.done():
        waiter.set_result(None)
