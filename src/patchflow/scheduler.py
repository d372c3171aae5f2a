"""Resource-bounded FIFO task queue.

A :class:`ResourceQueue` owns a fixed set of opaque resources (model sessions,
worker handles, ...). Each submitted task borrows exactly one resource for the
duration of its run; tasks that find no idle resource wait in submission order.
Cancellation through a :class:`CancellationToken` is only observed before a task
has been given a resource.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from functools import partial
from typing import Any, Generic, TypeVar, Union

from patchflow.errors import Cancelled, InvalidConfiguration

logger = logging.getLogger(__name__)

R = TypeVar("R")
T = TypeVar("T")

Task = Callable[[R], Union[Awaitable[T], T]]


class CancellationToken:
    """Cooperative cancellation signal shared between a caller and the queue."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Any = None
        self._callbacks: list[Callable[[], None]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._detach: list[Callable[[], None]] = []

    @classmethod
    def timeout(cls, seconds: float) -> CancellationToken:
        """Token that cancels itself after ``seconds`` on the running event loop."""
        loop = asyncio.get_running_loop()
        token = cls()
        token._timer = loop.call_later(seconds, token.cancel, f"timed out after {seconds}s")
        return token

    @classmethod
    def linked(cls, *parents: CancellationToken | None) -> CancellationToken:
        """Token that fires as soon as any of ``parents`` fires.

        Call :meth:`detach` once the token is no longer needed to unregister it
        from its parents.
        """
        token = cls()
        for parent in parents:
            if parent is None:
                continue
            forward = partial(token._forward, parent)
            parent.add_callback(forward)
            token._detach.append(partial(parent.remove_callback, forward))
        return token

    def _forward(self, parent: CancellationToken) -> None:
        self.cancel(parent.reason)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Any:
        return self._reason

    def cancel(self, reason: Any = None) -> None:
        """Fire the token. Later calls are no-ops."""
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback %r failed", callback)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation, immediately if already cancelled."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise Cancelled(self._reason)

    def detach(self) -> None:
        """Stop listening to parent tokens (see :meth:`linked`)."""
        for detach in self._detach:
            detach()
        self._detach.clear()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def __repr__(self) -> str:
        state = f"cancelled, reason={self._reason!r}" if self._cancelled else "active"
        return f"CancellationToken({state})"


@dataclass(eq=False)
class _Waiter:
    future: asyncio.Future
    token: CancellationToken | None
    on_cancel: Callable[[], None] | None = None
    started: bool = False


class ResourceQueue(Generic[R]):
    """FIFO task queue bounded by a pool of resources.

    Parameters
    ----------
    resources : Iterable[R]
        The pool. Each resource is lent to at most one running task at a time,
        so the pool size is the concurrency limit.

    Examples
    --------
    >>> queue = ResourceQueue([session_a, session_b])
    >>> result = await queue.submit(lambda session: session.run(batch))
    """

    def __init__(self, resources: Iterable[R]) -> None:
        self._resources: tuple[R, ...] = tuple(resources)
        if not self._resources:
            raise InvalidConfiguration("ResourceQueue needs at least one resource")
        self._idle: deque[R] = deque(self._resources)
        self._waiting: deque[_Waiter] = deque()

    @property
    def resources(self) -> tuple[R, ...]:
        return self._resources

    @property
    def pool_size(self) -> int:
        return len(self._resources)

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def busy_count(self) -> int:
        return len(self._resources) - len(self._idle)

    @property
    def pending_count(self) -> int:
        """Tasks queued and still waiting for a resource."""
        return sum(1 for waiter in self._waiting if not waiter.future.done())

    def submit(self, task: Task[R, T], cancel_token: CancellationToken | None = None) -> asyncio.Future[T]:
        """Schedule ``task(resource)`` and return a future for its result.

        Must be called with a running event loop. The dispatch decision is
        made before this method returns: the task either takes an idle
        resource or joins the end of the queue, so submission order is the
        start order. The task may be a plain function or return an awaitable.
        Its own exceptions propagate unchanged; the resource is released in
        every case.

        The returned future raises
        :class:`~patchflow.errors.Cancelled` if ``cancel_token`` fires before
        a resource was assigned.
        """
        loop = asyncio.get_running_loop()
        if cancel_token is not None and cancel_token.cancelled:
            rejected = loop.create_future()
            rejected.set_exception(Cancelled(cancel_token.reason))
            return rejected

        waiter = _Waiter(loop.create_future(), cancel_token)
        if self._idle:
            waiter.future.set_result(self._idle.popleft())
            logger.debug("Dispatching task immediately (%d/%d busy)", self.busy_count, self.pool_size)
        else:
            self._waiting.append(waiter)
            logger.debug("All %d resources busy, task queued at position %d", self.pool_size, len(self._waiting))
            if cancel_token is not None:
                waiter.on_cancel = partial(self._cancel_waiter, waiter)
                cancel_token.add_callback(waiter.on_cancel)

        runner = loop.create_task(self._run(task, waiter))
        runner.add_done_callback(partial(self._on_runner_done, waiter))
        return runner

    async def _run(self, task: Task[R, T], waiter: _Waiter) -> T:
        waiter.started = True
        try:
            resource = await waiter.future
        except asyncio.CancelledError:
            # The runner itself was cancelled while waiting.
            self._abandon(waiter)
            raise
        finally:
            self._forget_token(waiter)

        try:
            result = task(resource)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            self._release(resource)

    def _on_runner_done(self, waiter: _Waiter, runner: asyncio.Future) -> None:
        # cancelled before its first step, _run never saw the resource
        if not waiter.started:
            self._forget_token(waiter)
            self._abandon(waiter)

    def _forget_token(self, waiter: _Waiter) -> None:
        if waiter.token is not None and waiter.on_cancel is not None:
            waiter.token.remove_callback(waiter.on_cancel)
            waiter.on_cancel = None

    def _abandon(self, waiter: _Waiter) -> None:
        future = waiter.future
        if not future.done():
            self._discard(waiter)
            future.cancel()
        elif not future.cancelled() and future.exception() is None:
            self._release(future.result())

    def _cancel_waiter(self, waiter: _Waiter) -> None:
        if waiter.future.done():
            return
        self._discard(waiter)
        reason = waiter.token.reason if waiter.token is not None else None
        waiter.future.set_exception(Cancelled(reason))
        logger.debug("Queued task cancelled before dispatch: %s", reason)

    def _discard(self, waiter: _Waiter) -> None:
        try:
            self._waiting.remove(waiter)
        except ValueError:
            pass

    def _release(self, resource: R) -> None:
        while self._waiting:
            waiter = self._waiting.popleft()
            if waiter.future.done():
                continue
            waiter.future.set_result(resource)
            logger.debug("Resource handed to next queued task (%d still queued)", len(self._waiting))
            return
        self._idle.append(resource)

    def __repr__(self) -> str:
        return (
            f"ResourceQueue(pool_size={self.pool_size}, busy={self.busy_count}, "
            f"pending={self.pending_count})"
        )
