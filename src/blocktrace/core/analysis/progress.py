"""Typed progress event channel for block analysis runs."""

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable

import structlog

from blocktrace.models.block import AnalysisProgress

log = structlog.get_logger(__name__)

ProgressListener = Callable[[AnalysisProgress], Awaitable[None] | None]


class ProgressChannel:
    """Fan-out of AnalysisProgress events to listeners and streams.

    Listeners may be plain functions or coroutine functions. A listener
    that raises is logged and skipped; it never aborts the analysis run.

    Example:
        channel = ProgressChannel()
        channel.subscribe(lambda event: print(event.percent, event.message))

        async for event in channel.stream():
            ...
    """

    def __init__(self) -> None:
        self._listeners: list[ProgressListener] = []
        self._queues: list[asyncio.Queue[AnalysisProgress]] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: ProgressListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ProgressListener) -> bool:
        """Remove a listener.

        Returns:
            True if the listener was subscribed
        """
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    async def publish(
        self,
        event: AnalysisProgress,
        extra_listener: ProgressListener | None = None,
    ) -> None:
        """Deliver an event to every listener and open stream.

        Args:
            event: Progress event to deliver.
            extra_listener: One-off listener for this event only.
        """
        for queue in self._queues:
            queue.put_nowait(event)

        listeners = list(self._listeners)
        if extra_listener is not None:
            listeners.append(extra_listener)

        for listener in listeners:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.warning(
                    "progress_listener_failed",
                    block_identifier=event.block_identifier,
                    stage=event.stage.value,
                    error=str(e),
                )

    async def stream(self) -> AsyncIterator[AnalysisProgress]:
        """Iterate over published events until a terminal stage.

        The stream must be opened before the run starts publishing;
        events published earlier are not replayed.
        """
        queue: asyncio.Queue[AnalysisProgress] = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.stage.is_terminal:
                    return
        finally:
            self._queues.remove(queue)
