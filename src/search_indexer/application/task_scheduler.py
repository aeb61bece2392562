import asyncio
from collections import deque
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")
TaskFactory = Callable[[], Awaitable[T]]


class BoundedTaskScheduler:
    """Runs coroutine factories with at most ``concurrency`` in flight.

    Waiting tasks are admitted in FIFO order. When a running task finishes its
    slot is handed straight to the oldest waiter, so a late arrival can never
    overtake a queued task. A task's failure only affects its own awaiter.
    """

    def __init__(self, concurrency: int = 5) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency
        self._active = 0
        self._peak_active = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    @property
    def peak_active(self) -> int:
        return self._peak_active

    @property
    def is_idle(self) -> bool:
        return self._active == 0 and self.pending == 0

    async def add(self, task: TaskFactory[T]) -> T:
        await self._acquire()
        try:
            return await task()
        finally:
            self._release()

    def submit(self, task: TaskFactory[T]) -> "asyncio.Task[T]":
        return asyncio.ensure_future(self.add(task))

    async def add_batch(self, tasks: Iterable[TaskFactory[T]]) -> list[T]:
        # siblings keep running when one fails; the first error is raised after all settle
        results = await asyncio.gather(*(self.add(task) for task in tasks), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results

    async def _acquire(self) -> None:
        if self._active < self.concurrency and not self.pending:
            self._take_slot()
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # the slot was already handed over; pass it on
                self._release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def _take_slot(self) -> None:
        self._active += 1
        self._peak_active = max(self._peak_active, self._active)

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # slot handoff: the active count stays the same
                waiter.set_result(None)
                return
        self._active -= 1
