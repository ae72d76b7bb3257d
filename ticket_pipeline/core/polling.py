"""
Polling for long-running background jobs.

A trigger endpoint either answers with the finished result or with an
acknowledgement (``processing`` / ``already_running``). An acknowledgement
starts a polling loop: the first check runs after a start-up delay, then one
check per interval until the terminal predicate holds. The completion
callback fires exactly once, and the loop ends there.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

import structlog

from ..enums import TriggerStatus
from ..errors import NotFoundError, TransientFetchError
from ..schemas import TriggerAck

logger = structlog.get_logger()

ResultT = TypeVar("ResultT")

CheckFn = Callable[[], Awaitable[Optional[ResultT]]]
TerminalFn = Callable[[ResultT], bool]
CompleteFn = Callable[[ResultT], Awaitable[None]]


class PollHandle:
    """Handle on one running polling loop.

    ``cancel()`` is idempotent and safe to call after the loop has finished.
    """

    def __init__(self, name: str):
        self.name = name
        self.checks = 0
        self.completed = False
        self.cancelled = False
        self._task: Optional[asyncio.Task] = None

    def _attach(self, task: asyncio.Task) -> None:
        self._task = task

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the loop to finish (or to be cancelled)."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning("poll_loop_failed", poller=self.name, error=repr(e))


class PollingController(Generic[ResultT]):
    """
    Runs at most one polling loop at a time.

    Starting a new loop cancels the previous one. Not-found responses read
    as "not started yet". Any other failed check is logged at debug level
    and retried on the next tick.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        startup_delay: float,
        log: Any = None,
    ):
        self.name = name
        self.interval = interval
        self.startup_delay = startup_delay
        self.handle: Optional[PollHandle] = None
        self.log = log or logger.bind(poller=name)

    @property
    def is_polling(self) -> bool:
        return self.handle is not None and self.handle.active

    async def run(
        self,
        trigger: Callable[[], Awaitable[Union[TriggerAck, ResultT]]],
        check: CheckFn,
        is_terminal: TerminalFn,
        on_complete: CompleteFn,
    ) -> Union[TriggerAck, ResultT]:
        """
        Fire a background job and follow it to completion.

        Args:
            trigger: Issues the trigger request (called exactly once)
            check: Fetches the latest result, None if there is none yet
            is_terminal: True when a fetched result ends the job
            on_complete: Receives the terminal (or direct) result

        Returns:
            The trigger response, as an acknowledgement or a direct result
        """
        response = await trigger()

        if isinstance(response, TriggerAck):
            if response.status == TriggerStatus.ALREADY_RUNNING:
                self.log.info("job_already_running")
            self.start(check, is_terminal, on_complete)
            return response

        self.log.info("job_completed_directly")
        await on_complete(response)
        return response

    def start(
        self,
        check: CheckFn,
        is_terminal: TerminalFn,
        on_complete: CompleteFn,
    ) -> PollHandle:
        """Start a polling loop, replacing any loop already running."""
        self.cancel()

        handle = PollHandle(self.name)
        handle._attach(
            asyncio.create_task(self._loop(handle, check, is_terminal, on_complete))
        )
        self.handle = handle
        self.log.info(
            "poll_started", interval=self.interval, startup_delay=self.startup_delay
        )
        return handle

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()

    async def close(self) -> None:
        """Cancel the current loop and wait for it to unwind."""
        handle = self.handle
        if handle is None:
            return
        handle.cancel()
        await handle.wait()

    async def wait(self) -> None:
        if self.handle is not None:
            await self.handle.wait()

    async def _loop(
        self,
        handle: PollHandle,
        check: CheckFn,
        is_terminal: TerminalFn,
        on_complete: CompleteFn,
    ) -> None:
        await asyncio.sleep(self.startup_delay)

        while True:
            handle.checks += 1
            try:
                result = await check()
            except NotFoundError:
                result = None
            except TransientFetchError as e:
                self.log.debug("poll_check_failed", check=handle.checks, error=e.message)
                result = None
            except Exception as e:
                self.log.debug("poll_check_failed", check=handle.checks, error=repr(e))
                result = None

            if result is not None and is_terminal(result):
                break

            await asyncio.sleep(self.interval)

        handle.completed = True
        self.log.info("poll_completed", checks=handle.checks)
        try:
            await on_complete(result)
        except Exception as e:
            self.log.error("poll_completion_failed", error=str(e))
