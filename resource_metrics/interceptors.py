"""
Reader/writer interception chains and the metric interceptors.

A reader chain wraps each read of the request entity (body bytes, decoded
JSON or form data), a writer chain wraps invoking the route handler that
produces the response. Each interceptor receives the context and continues
the chain with ``await context.proceed()``.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Sequence, Type

from starlette.requests import Request
from starlette.responses import Response

from .registry import Meter, Timer


class ReaderInterceptorContext:
    """Runs reader interceptors around the terminal body read."""

    def __init__(self, request: Request, interceptors: Sequence["ReaderInterceptor"],
                 reader: Callable[[], Awaitable[Any]]):
        self.request = request
        self._interceptors = interceptors
        self._reader = reader
        self._index = 0

    async def proceed(self) -> Any:
        if self._index < len(self._interceptors):
            interceptor = self._interceptors[self._index]
            self._index += 1
            return await interceptor.around_read_from(self)
        return await self._reader()


class WriterInterceptorContext:
    """Runs writer interceptors around the terminal route handler."""

    def __init__(self, request: Request, interceptors: Sequence["WriterInterceptor"],
                 handler: Callable[[Request], Awaitable[Response]]):
        self.request = request
        self.response = None
        self._interceptors = interceptors
        self._handler = handler
        self._index = 0

    async def proceed(self) -> Response:
        if self._index < len(self._interceptors):
            interceptor = self._interceptors[self._index]
            self._index += 1
            return await interceptor.around_write_to(self)
        self.response = await self._handler(self.request)
        return self.response


class ReaderInterceptor(ABC):
    @abstractmethod
    async def around_read_from(self, context: ReaderInterceptorContext) -> Any:
        """Wrap the request body read."""


class WriterInterceptor(ABC):
    @abstractmethod
    async def around_write_to(self, context: WriterInterceptorContext) -> Response:
        """Wrap the response write."""


class TimedInterceptor(WriterInterceptor):

    def __init__(self, timer: Timer):
        self.timer = timer

    async def around_write_to(self, context: WriterInterceptorContext) -> Response:
        timer_context = self.timer.time()
        try:
            return await context.proceed()
        finally:
            timer_context.stop()


class MeteredInterceptor(WriterInterceptor):

    def __init__(self, meter: Meter):
        self.meter = meter

    async def around_write_to(self, context: WriterInterceptorContext) -> Response:
        self.meter.mark()
        return await context.proceed()


class ExceptionMeteredInterceptor(ReaderInterceptor, WriterInterceptor):
    """Counts failures of type ``cause``; the exception always propagates.

    On the read path the exception or its ``__cause__`` is matched, on the
    write path the exception itself. A failure already counted while reading
    is not counted again when the framework re-raises it from the handler.
    """

    _COUNTED_ATTR = "__resource_metrics_counted__"

    def __init__(self, meter: Meter, cause: Type[BaseException]):
        self.meter = meter
        self.cause = cause

    async def around_read_from(self, context: ReaderInterceptorContext) -> Any:
        try:
            return await context.proceed()
        except Exception as e:
            if isinstance(e, self.cause) or isinstance(e.__cause__, self.cause):
                self._mark(e)
            raise

    async def around_write_to(self, context: WriterInterceptorContext) -> Response:
        try:
            return await context.proceed()
        except Exception as e:
            if isinstance(e, self.cause) and not self._counted(e):
                self._mark(e)
            raise

    def _mark(self, exc: BaseException) -> None:
        self.meter.mark()
        counted = getattr(exc, self._COUNTED_ATTR, ())
        setattr(exc, self._COUNTED_ATTR, counted + (self.meter,))

    def _counted(self, exc: Optional[BaseException]) -> bool:
        seen = set()
        while exc is not None and id(exc) not in seen:
            if self.meter in getattr(exc, self._COUNTED_ATTR, ()):
                return True
            seen.add(id(exc))
            exc = exc.__cause__ or exc.__context__
        return False
