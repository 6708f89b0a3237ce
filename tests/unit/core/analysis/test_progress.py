"""Tests for ProgressChannel."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from blocktrace.core.analysis.progress import ProgressChannel
from blocktrace.models.block import AnalysisProgress, AnalysisStage


def event(stage: AnalysisStage = AnalysisStage.FETCHING, percent: int = 0) -> AnalysisProgress:
    return AnalysisProgress(block_identifier="18500000", stage=stage, percent=percent, message="...")


class TestSubscriptions:
    """Tests for listener registration."""

    def test_subscribe_is_idempotent(self) -> None:
        channel = ProgressChannel()
        listener = MagicMock()

        channel.subscribe(listener)
        channel.subscribe(listener)

        assert channel.listener_count == 1

    def test_unsubscribe(self) -> None:
        channel = ProgressChannel()
        listener = MagicMock()
        channel.subscribe(listener)

        assert channel.unsubscribe(listener) is True
        assert channel.unsubscribe(listener) is False
        assert channel.listener_count == 0


class TestPublish:
    """Tests for event delivery."""

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self) -> None:
        """
        Given: A plain listener, a coroutine listener and a one-off listener
        When: An event is published
        Then: All three receive it
        """
        channel = ProgressChannel()
        sync_listener = MagicMock(return_value=None)
        async_listener = AsyncMock()
        extra = MagicMock(return_value=None)
        channel.subscribe(sync_listener)
        channel.subscribe(async_listener)

        published = event()
        await channel.publish(published, extra_listener=extra)

        sync_listener.assert_called_once_with(published)
        async_listener.assert_awaited_once_with(published)
        extra.assert_called_once_with(published)

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_delivery(self) -> None:
        channel = ProgressChannel()
        broken = MagicMock(side_effect=RuntimeError("listener bug"))
        healthy = MagicMock(return_value=None)
        channel.subscribe(broken)
        channel.subscribe(healthy)

        await channel.publish(event())

        healthy.assert_called_once()

    @pytest.mark.asyncio
    async def test_extra_listener_is_not_retained(self) -> None:
        channel = ProgressChannel()
        extra = MagicMock(return_value=None)

        await channel.publish(event(), extra_listener=extra)
        await channel.publish(event())

        assert extra.call_count == 1
        assert channel.listener_count == 0


class TestStream:
    """Tests for the async event stream."""

    @pytest.mark.asyncio
    async def test_stream_ends_after_terminal_stage(self) -> None:
        """
        Given: A consumer iterating the stream
        When: A fetching event and then a complete event are published
        Then: The consumer receives both and the stream closes
        """
        channel = ProgressChannel()
        received: list[AnalysisProgress] = []

        async def consume() -> None:
            async for item in channel.stream():
                received.append(item)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)

        await channel.publish(event(AnalysisStage.FETCHING, 0))
        await channel.publish(event(AnalysisStage.COMPLETE, 100))
        await asyncio.wait_for(consumer, timeout=1)

        assert [item.stage for item in received] == [AnalysisStage.FETCHING, AnalysisStage.COMPLETE]
        assert channel._queues == []

    @pytest.mark.asyncio
    async def test_error_stage_is_terminal(self) -> None:
        channel = ProgressChannel()
        received: list[AnalysisProgress] = []

        async def consume() -> None:
            async for item in channel.stream():
                received.append(item)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)

        await channel.publish(event(AnalysisStage.ERROR, 0))
        await asyncio.wait_for(consumer, timeout=1)

        assert [item.stage for item in received] == [AnalysisStage.ERROR]
