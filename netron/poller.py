"""
Status Poller - Fire-and-Forget Periodic Refresh

Every ``interval`` seconds a new fetch is started without waiting for
the previous one, so a slow device leads to overlapping requests. Each
result is applied when it resolves; the last one to resolve wins.
Failed polls are logged and skipped.
"""

from typing import Any, Awaitable, Callable, Optional, Set
import asyncio
import logging

logger = logging.getLogger(__name__)


class StatusPoller:
    """
    Periodic fire-and-forget fetch.

    Attributes:
        interval: Seconds between poll starts
        started: Number of polls started
        applied: Number of results applied
        last_result: Most recently applied result
    """

    DEFAULT_INTERVAL = 1.0

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        apply: Callable[[Any], Any],
        interval: float = DEFAULT_INTERVAL,
        name: str = "status"
    ):
        self.fetch = fetch
        self.apply = apply
        self.interval = interval
        self.name = name
        self.started = 0
        self.applied = 0
        self.last_result: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def start(self) -> None:
        """Start polling on the running loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Started {self.name} polling every {self.interval}s")

    async def stop(self) -> None:
        """Stop scheduling polls and cancel the ones still in flight."""
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        pending = list(self._in_flight)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info(f"Stopped {self.name} polling")

    def poll_now(self) -> asyncio.Task:
        """Start one poll immediately."""
        self.started += 1
        task = asyncio.get_running_loop().create_task(self._poll_once(self.started))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _run(self) -> None:
        while True:
            self.poll_now()
            await asyncio.sleep(self.interval)

    async def _poll_once(self, sequence: int) -> None:
        try:
            result = await self.fetch()
        except Exception as e:
            logger.warning(f"{self.name} poll #{sequence} failed: {e}")
            return

        try:
            self.apply(result)
        except Exception as e:
            logger.error(f"Error applying {self.name} poll #{sequence}: {e}")
            return
        self.applied += 1
        self.last_result = result
