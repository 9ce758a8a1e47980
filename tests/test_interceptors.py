"""
Unit tests for interception chains and metric interceptors.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from resource_metrics.interceptors import (
    ExceptionMeteredInterceptor,
    MeteredInterceptor,
    ReaderInterceptor,
    ReaderInterceptorContext,
    TimedInterceptor,
    WriterInterceptor,
    WriterInterceptorContext,
)


class RecordingInterceptor(ReaderInterceptor, WriterInterceptor):
    """Appends its label to a shared list on both paths."""

    def __init__(self, label, calls):
        self.label = label
        self.calls = calls

    async def around_read_from(self, context):
        self.calls.append(self.label)
        return await context.proceed()

    async def around_write_to(self, context):
        self.calls.append(self.label)
        return await context.proceed()


class TestInterceptorContexts:
    """Test cases for reader and writer contexts."""

    @pytest.mark.asyncio
    async def test_writer_chain_runs_in_order(self):
        calls = []
        response = MagicMock()
        handler = AsyncMock(return_value=response)
        request = MagicMock()
        context = WriterInterceptorContext(
            request,
            [RecordingInterceptor("first", calls), RecordingInterceptor("second", calls)],
            handler
        )

        assert await context.proceed() is response
        assert calls == ["first", "second"]
        assert context.response is response
        handler.assert_awaited_once_with(request)

    @pytest.mark.asyncio
    async def test_reader_chain_runs_in_order(self):
        calls = []
        reader = AsyncMock(return_value=b"body")
        context = ReaderInterceptorContext(
            MagicMock(),
            [RecordingInterceptor("first", calls), RecordingInterceptor("second", calls)],
            reader
        )

        assert await context.proceed() == b"body"
        assert calls == ["first", "second"]
        reader.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_chain_calls_terminal_step(self):
        handler = AsyncMock(return_value="response")
        context = WriterInterceptorContext(MagicMock(), [], handler)

        assert await context.proceed() == "response"


class TestTimedInterceptor:
    """Test cases for TimedInterceptor."""

    @pytest.mark.asyncio
    async def test_times_successful_write(self, registry):
        timer = registry.timer("resource.timed")
        context = WriterInterceptorContext(MagicMock(), [TimedInterceptor(timer)], AsyncMock())

        await context.proceed()

        assert timer.count == 1

    @pytest.mark.asyncio
    async def test_times_failed_write(self, registry):
        timer = registry.timer("resource.timed")
        handler = AsyncMock(side_effect=RuntimeError("boom"))
        context = WriterInterceptorContext(MagicMock(), [TimedInterceptor(timer)], handler)

        with pytest.raises(RuntimeError):
            await context.proceed()

        assert timer.count == 1


class TestMeteredInterceptor:
    """Test cases for MeteredInterceptor."""

    @pytest.mark.asyncio
    async def test_marks_before_proceeding(self, registry):
        meter = registry.meter("resource.metered")
        counts = []

        async def handler(request):
            counts.append(meter.count)
            return "response"

        context = WriterInterceptorContext(MagicMock(), [MeteredInterceptor(meter)], handler)

        assert await context.proceed() == "response"
        assert counts == [1]
        assert meter.count == 1


class TestExceptionMeteredInterceptor:
    """Test cases for ExceptionMeteredInterceptor."""

    @pytest.fixture
    def meter(self, registry):
        return registry.meter("resource.exceptions")

    @pytest.mark.asyncio
    async def test_write_without_exception_is_not_counted(self, meter):
        interceptor = ExceptionMeteredInterceptor(meter, IOError)
        context = WriterInterceptorContext(MagicMock(), [interceptor], AsyncMock(return_value="ok"))

        assert await context.proceed() == "ok"
        assert meter.count == 0

    @pytest.mark.asyncio
    async def test_write_matching_exception_is_counted_and_raised(self, meter):
        error = IOError("AUGH")
        interceptor = ExceptionMeteredInterceptor(meter, IOError)
        context = WriterInterceptorContext(MagicMock(), [interceptor], AsyncMock(side_effect=error))

        with pytest.raises(IOError) as exc_info:
            await context.proceed()

        assert exc_info.value is error
        assert meter.count == 1

    @pytest.mark.asyncio
    async def test_write_subclass_of_cause_is_counted(self, meter):
        interceptor = ExceptionMeteredInterceptor(meter, LookupError)
        context = WriterInterceptorContext(MagicMock(), [interceptor], AsyncMock(side_effect=KeyError("k")))

        with pytest.raises(KeyError):
            await context.proceed()

        assert meter.count == 1

    @pytest.mark.asyncio
    async def test_write_other_exception_is_raised_uncounted(self, meter):
        interceptor = ExceptionMeteredInterceptor(meter, IOError)
        context = WriterInterceptorContext(MagicMock(), [interceptor], AsyncMock(side_effect=ValueError("bad")))

        with pytest.raises(ValueError):
            await context.proceed()

        assert meter.count == 0

    @pytest.mark.asyncio
    async def test_read_counts_matching_cause(self, meter):
        async def reader():
            try:
                raise IOError("disconnected")
            except IOError as e:
                raise RuntimeError("could not read body") from e

        interceptor = ExceptionMeteredInterceptor(meter, IOError)
        context = ReaderInterceptorContext(MagicMock(), [interceptor], reader)

        with pytest.raises(RuntimeError):
            await context.proceed()

        assert meter.count == 1

    @pytest.mark.asyncio
    async def test_read_ignores_unrelated_exception(self, meter):
        interceptor = ExceptionMeteredInterceptor(meter, IOError)
        context = ReaderInterceptorContext(
            MagicMock(), [interceptor], AsyncMock(side_effect=ValueError("no cause"))
        )

        with pytest.raises(ValueError):
            await context.proceed()

        assert meter.count == 0

    @pytest.mark.asyncio
    async def test_read_passes_body_through(self, meter):
        interceptor = ExceptionMeteredInterceptor(meter, IOError)
        context = ReaderInterceptorContext(MagicMock(), [interceptor], AsyncMock(return_value=b"{}"))

        assert await context.proceed() == b"{}"
        assert meter.count == 0

    @pytest.mark.asyncio
    async def test_read_counts_matching_exception(self, meter):
        interceptor = ExceptionMeteredInterceptor(meter, ValueError)
        context = ReaderInterceptorContext(
            MagicMock(), [interceptor], AsyncMock(side_effect=json.JSONDecodeError("bad", "{x", 1))
        )

        with pytest.raises(json.JSONDecodeError):
            await context.proceed()

        assert meter.count == 1

    @pytest.mark.asyncio
    async def test_failure_counted_on_read_is_not_counted_again_on_write(self, meter):
        interceptor = ExceptionMeteredInterceptor(meter, Exception)
        read_context = ReaderInterceptorContext(
            MagicMock(), [interceptor], AsyncMock(side_effect=json.JSONDecodeError("bad", "{x", 1))
        )

        async def handler(request):
            try:
                await read_context.proceed()
            except json.JSONDecodeError as e:
                raise RuntimeError("invalid body") from e

        write_context = WriterInterceptorContext(MagicMock(), [interceptor], handler)

        with pytest.raises(RuntimeError):
            await write_context.proceed()

        assert meter.count == 1

    @pytest.mark.asyncio
    async def test_each_interceptor_counts_shared_failure(self, registry):
        first = registry.meter("first.exceptions")
        second = registry.meter("second.exceptions")
        context = WriterInterceptorContext(
            MagicMock(),
            [ExceptionMeteredInterceptor(first, IOError), ExceptionMeteredInterceptor(second, IOError)],
            AsyncMock(side_effect=IOError("AUGH"))
        )

        with pytest.raises(IOError):
            await context.proceed()

        assert first.count == 1
        assert second.count == 1
